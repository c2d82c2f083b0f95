from django.contrib import admin

from .models import Application, Milestone, Post


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "category", "budget", "status", "created_at")
    list_filter = ("status", "category", "location_remote")
    search_fields = ("title", "description", "owner__name", "owner__email")
    filter_horizontal = ("required_skills",)
    inlines = [MilestoneInline]


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("post", "provider", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("post__title", "provider__name", "provider__email")
    raw_id_fields = ("post", "provider")
