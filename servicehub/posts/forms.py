from django import forms

from accounts.models import Skill

from .models import ApplicationStatus, Milestone, Post, PostStatus


class PostForm(forms.ModelForm):
    required_skills = forms.ModelMultipleChoiceField(queryset=Skill.objects.all(), required=False)

    class Meta:
        model = Post
        fields = [
            "title",
            "description",
            "category",
            "budget",
            "required_skills",
            "location_city",
            "location_country",
            "location_remote",
        ]
        error_messages = {
            "title": {"min_length": "Title must be at least 5 characters"},
            "description": {"min_length": "Description must be at least 20 characters"},
            "category": {"invalid_choice": "Invalid category"},
            "budget": {"min_value": "Budget must be a positive number"},
        }


class PostUpdateForm(PostForm):
    status = forms.ChoiceField(choices=PostStatus.choices)

    class Meta(PostForm.Meta):
        fields = PostForm.Meta.fields + ["status"]


class MilestoneForm(forms.ModelForm):
    class Meta:
        model = Milestone
        fields = ["title", "amount", "due_date"]


class ApplicationForm(forms.Form):
    post_id = forms.IntegerField(error_messages={"required": "PostId is required"})
    message = forms.CharField(
        min_length=10,
        max_length=1000,
        error_messages={
            "required": "Cover message is required",
            "min_length": "Message must be at least 10 characters",
            "max_length": "Message cannot exceed 1000 characters",
        },
    )


class ApplicationStatusForm(forms.Form):
    status = forms.ChoiceField(
        choices=[
            (ApplicationStatus.ACCEPTED, "Accepted"),
            (ApplicationStatus.REJECTED, "Rejected"),
        ]
    )

