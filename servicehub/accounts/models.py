from datetime import timedelta

from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinLengthValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from .constants import SKILL_CATEGORIES


class User(AbstractUser):
    class Role(models.TextChoices):
        SEEKER = "seeker", "Service Seeker"
        PROVIDER = "provider", "Service Provider"

    role = models.CharField(max_length=20, choices=Role.choices)
    name = models.CharField(max_length=50, validators=[MinLengthValidator(2)])
    email = models.EmailField(unique=True)
    bio = models.TextField(max_length=500, blank=True, default="")
    skills = models.ManyToManyField("accounts.Skill", blank=True, related_name="users")
    location_city = models.CharField(max_length=100, blank=True, default="")
    location_country = models.CharField(max_length=100, blank=True, default="")
    location_remote = models.BooleanField(default=False)
    verified_at = models.DateTimeField(blank=True, null=True)

    # Derived from reviews.Review; only RatingAggregator writes these.
    average_rating = models.DecimalField(
        max_digits=2,
        decimal_places=1,
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(5)],
    )
    review_count = models.PositiveIntegerField(default=0)

    @property
    def is_seeker(self):
        return self.role == self.Role.SEEKER

    @property
    def is_provider(self):
        return self.role == self.Role.PROVIDER

    @property
    def is_verified(self):
        return self.verified_at is not None

    def location_dict(self):
        return {
            "city": self.location_city,
            "country": self.location_country,
            "remote": self.location_remote,
        }

    def __str__(self):
        return self.name or self.username


class Skill(models.Model):
    name = models.CharField(max_length=50, unique=True)
    category = models.CharField(max_length=30, choices=[(c, c) for c in SKILL_CATEGORIES])

    class Meta:
        ordering = ["category", "name"]
        indexes = [models.Index(fields=["category", "name"], name="skill_category_name_idx")]

    def __str__(self):
        return self.name


class NotificationQuerySet(models.QuerySet):
    def for_user(self, user):
        return self.filter(user=user)

    def unread(self):
        return self.filter(is_read=False)

    def expired(self, ttl_days: int):
        return self.filter(created_at__lt=timezone.now() - timedelta(days=ttl_days))


class Notification(models.Model):
    class Kind(models.TextChoices):
        NEW_APPLICATION = "NEW_APPLICATION", "New application"
        STATUS_CHANGED = "STATUS_CHANGED", "Status changed"
        NEW_REVIEW = "NEW_REVIEW", "New review"
        NEW_POST_MATCH = "NEW_POST_MATCH", "New post match"

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="notifications")
    kind = models.CharField(max_length=20, choices=Kind.choices)
    title = models.CharField(max_length=100)
    message = models.CharField(max_length=300)
    url = models.CharField(max_length=200, blank=True, null=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["user", "is_read", "-created_at"], name="notif_user_read_created_idx")]

    def __str__(self):
        return f"{self.user} - {self.title}"
