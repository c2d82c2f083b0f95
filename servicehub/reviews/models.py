from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from posts.models import Application


class ReviewQuerySet(models.QuerySet):
    def for_provider(self, provider_id):
        return self.filter(provider_id=provider_id)

    def by_seeker(self, user):
        return self.filter(seeker=user)

    def recent(self):
        return self.order_by("-created_at", "-id")


class Review(models.Model):
    seeker = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="reviews_given")
    provider = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="reviews_received")
    # One review per application. Deleting the post (and so its applications)
    # keeps the review and the provider's rating.
    application = models.OneToOneField(
        Application,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="review",
    )
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(max_length=500, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReviewQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["provider", "-created_at"], name="review_provider_created_idx"),
            models.Index(fields=["seeker"], name="review_seeker_idx"),
        ]

    def __str__(self):
        return f"{self.seeker} → {self.provider} ({self.rating})"
