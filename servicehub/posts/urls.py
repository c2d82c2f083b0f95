from django.urls import path
from . import views

urlpatterns = [
    path("posts/", views.posts, name="posts"),
    path("posts/my/", views.my_posts, name="my_posts"),
    path("posts/<int:post_id>/", views.post_detail, name="post_detail"),
    path("posts/<int:post_id>/applications/", views.post_applications, name="post_applications"),
    path("applications/", views.applications, name="applications"),
    path("applications/<int:application_id>/", views.application_detail, name="application_detail"),
    path("dashboard/", views.dashboard, name="dashboard"),
]
