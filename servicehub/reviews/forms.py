from django import forms


class ReviewForm(forms.Form):
    application_id = forms.IntegerField(error_messages={"required": "ApplicationId is required"})
    rating = forms.IntegerField(
        min_value=1,
        max_value=5,
        error_messages={
            "required": "Rating is required",
            "invalid": "Rating must be a whole number",
            "min_value": "Rating must be between 1 and 5",
            "max_value": "Rating must be between 1 and 5",
        },
    )
    comment = forms.CharField(
        required=False,
        max_length=500,
        error_messages={"max_length": "Comment cannot exceed 500 characters"},
    )
