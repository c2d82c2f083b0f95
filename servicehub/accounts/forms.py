from django import forms
from django.contrib.auth import get_user_model
from django.contrib.auth.forms import AuthenticationForm

from .models import Skill

User = get_user_model()


class RegistrationForm(forms.ModelForm):
    password = forms.CharField(min_length=6, widget=forms.PasswordInput)

    class Meta:
        model = User
        fields = ["name", "email", "role"]

    def clean_email(self):
        return self.cleaned_data["email"].strip().lower()

    def save(self, commit=True):
        user = super().save(commit=False)
        user.username = user.email
        user.set_password(self.cleaned_data["password"])
        if commit:
            user.save()
        return user


class LoginForm(AuthenticationForm):
    username = forms.CharField(label="Email")
    password = forms.CharField(widget=forms.PasswordInput)

    def clean_username(self):
        return self.cleaned_data["username"].strip().lower()


class ProfileForm(forms.ModelForm):
    skills = forms.ModelMultipleChoiceField(queryset=Skill.objects.all(), required=False)

    class Meta:
        model = User
        fields = ["name", "bio", "skills", "location_city", "location_country", "location_remote"]
