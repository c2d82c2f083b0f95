from django.urls import path
from . import views

urlpatterns = [
    path("auth/register/", views.register, name="register"),
    path("auth/login/", views.user_login, name="login"),
    path("auth/logout/", views.user_logout, name="logout"),
    path("auth/csrf/", views.csrf, name="csrf"),
    path("auth/me/", views.me, name="me"),
    path("auth/profile/", views.profile, name="profile"),
    path("users/<int:user_id>/", views.user_detail, name="user_detail"),
    path("skills/", views.skill_list, name="skill_list"),
    path("notifications/", views.notifications, name="notifications"),
    path("notifications/<int:notification_id>/", views.notification_mark_read, name="notification_mark_read"),
    path("health/", views.health, name="health"),
]
