from django.conf import settings
from django.db import migrations, models
import django.core.validators
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Post",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=100, validators=[django.core.validators.MinLengthValidator(5)])),
                ("description", models.TextField(max_length=2000, validators=[django.core.validators.MinLengthValidator(20)])),
                ("category", models.CharField(choices=[("Web Development", "Web Development"), ("Mobile Development", "Mobile Development"), ("Design & Creative", "Design & Creative"), ("Writing & Content", "Writing & Content"), ("Data & Analytics", "Data & Analytics"), ("Digital Marketing", "Digital Marketing"), ("Other", "Other")], max_length=40)),
                ("budget", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("status", models.CharField(choices=[("OPEN", "Open"), ("CLOSED", "Closed")], default="OPEN", max_length=10)),
                ("location_city", models.CharField(blank=True, default="", max_length=100)),
                ("location_country", models.CharField(blank=True, default="", max_length=100)),
                ("location_remote", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("owner", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="posts", to=settings.AUTH_USER_MODEL)),
                ("required_skills", models.ManyToManyField(blank=True, related_name="posts", to="accounts.skill")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["status", "category", "-created_at"], name="post_status_category_idx"),
                    models.Index(fields=["owner", "-created_at"], name="post_owner_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Milestone",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                ("title", models.CharField(max_length=100)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("due_date", models.DateField(blank=True, null=True)),
                ("completed", models.BooleanField(default=False)),
                ("post", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="milestones", to="posts.post")),
            ],
            options={"ordering": ["post", "position", "id"]},
        ),
        migrations.CreateModel(
            name="Application",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("message", models.TextField(max_length=1000, validators=[django.core.validators.MinLengthValidator(10)])),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("ACCEPTED", "Accepted"), ("REJECTED", "Rejected")], default="PENDING", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("post", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="applications", to="posts.post")),
                ("provider", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="applications", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["provider", "-created_at"], name="app_provider_created_idx"),
                    models.Index(fields=["post", "status"], name="app_post_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("post", "provider"), name="unique_application_per_provider"),
                ],
            },
        ),
    ]
