from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User, Skill, Notification


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    # show extra fields in admin; rating fields are derived, never edited here
    fieldsets = DjangoUserAdmin.fieldsets + (
        ("ServiceHub", {"fields": ("role", "name", "bio", "skills", "verified_at", "average_rating", "review_count")}),
    )
    readonly_fields = ("average_rating", "review_count")
    list_display = ("username", "email", "name", "role", "average_rating", "review_count", "is_active")


@admin.register(Skill)
class SkillAdmin(admin.ModelAdmin):
    list_display = ("name", "category")
    list_filter = ("category",)


admin.site.register(Notification)
