from django.conf import settings
from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from .constants import CATEGORY_CHOICES


class PostStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    CLOSED = "CLOSED", "Closed"


class ApplicationStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    ACCEPTED = "ACCEPTED", "Accepted"
    REJECTED = "REJECTED", "Rejected"


class PostQuerySet(models.QuerySet):
    def open(self):
        return self.filter(status=PostStatus.OPEN)

    def for_owner(self, user):
        return self.filter(owner=user)

    def recent(self):
        return self.order_by("-created_at", "-id")

    def search(self, *, q=None, category=None, skills=None, city=None, country=None, remote=None):
        qs = self
        if category:
            qs = qs.filter(category=category)
        if q:
            qs = qs.filter(Q(title__icontains=q) | Q(description__icontains=q))
        if skills:
            qs = qs.filter(required_skills__in=skills).distinct()
        if city:
            qs = qs.filter(location_city__icontains=city)
        if country:
            qs = qs.filter(location_country__icontains=country)
        if remote:
            qs = qs.filter(location_remote=True)
        return qs


class Post(models.Model):
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="posts")
    title = models.CharField(max_length=100, validators=[MinLengthValidator(5)])
    description = models.TextField(max_length=2000, validators=[MinLengthValidator(20)])
    category = models.CharField(max_length=40, choices=CATEGORY_CHOICES)
    budget = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    status = models.CharField(max_length=10, choices=PostStatus.choices, default=PostStatus.OPEN)
    required_skills = models.ManyToManyField("accounts.Skill", blank=True, related_name="posts")
    location_city = models.CharField(max_length=100, blank=True, default="")
    location_country = models.CharField(max_length=100, blank=True, default="")
    location_remote = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PostQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status", "category", "-created_at"], name="post_status_category_idx"),
            models.Index(fields=["owner", "-created_at"], name="post_owner_created_idx"),
        ]

    @property
    def is_open(self):
        return self.status == PostStatus.OPEN

    def location_dict(self):
        return {
            "city": self.location_city,
            "country": self.location_country,
            "remote": self.location_remote,
        }

    def __str__(self):
        return self.title


class Milestone(models.Model):
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="milestones")
    position = models.PositiveIntegerField(default=0)
    title = models.CharField(max_length=100)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    due_date = models.DateField(blank=True, null=True)
    completed = models.BooleanField(default=False)

    class Meta:
        ordering = ["post", "position", "id"]

    def __str__(self):
        return f"{self.post.title} / {self.title}"


class ApplicationQuerySet(models.QuerySet):
    def for_provider(self, user):
        return self.filter(provider=user)

    def for_post(self, post):
        return self.filter(post=post)

    def pending(self):
        return self.filter(status=ApplicationStatus.PENDING)

    def recent(self):
        return self.order_by("-created_at", "-id")


class Application(models.Model):
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name="applications")
    provider = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="applications")
    message = models.TextField(max_length=1000, validators=[MinLengthValidator(10)])
    status = models.CharField(max_length=10, choices=ApplicationStatus.choices, default=ApplicationStatus.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ApplicationQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["post", "provider"], name="unique_application_per_provider"),
        ]
        indexes = [
            models.Index(fields=["provider", "-created_at"], name="app_provider_created_idx"),
            models.Index(fields=["post", "status"], name="app_post_status_idx"),
        ]

    @property
    def is_pending(self):
        return self.status == ApplicationStatus.PENDING

    def __str__(self):
        return f"{self.provider} → {self.post.title}"
