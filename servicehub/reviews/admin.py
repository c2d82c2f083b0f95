from django.contrib import admin

from .models import Review


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("id", "provider", "seeker", "rating", "application", "created_at")
    list_filter = ("rating",)
    search_fields = ("provider__name", "seeker__name", "comment")
    raw_id_fields = ("seeker", "provider", "application")
