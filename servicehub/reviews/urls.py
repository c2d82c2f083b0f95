from django.urls import path
from . import views

urlpatterns = [
    path("reviews/", views.reviews, name="reviews"),
    path("reviews/my/", views.my_reviews, name="my_reviews"),
    path("reviews/<int:review_id>/", views.review_detail, name="review_detail"),
]
