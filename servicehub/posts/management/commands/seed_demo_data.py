import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from accounts.constants import SKILL_SEEDS
from accounts.models import Notification, Skill
from posts.constants import CATEGORIES
from posts.models import Application, ApplicationStatus, Milestone, Post, PostStatus
from reviews.models import Review
from reviews.services import RatingAggregator
from servicehub.persistence import build_store

User = get_user_model()


class Command(BaseCommand):
    help = "Seed realistic demo/test data (skills, seekers, providers, posts, applications, reviews)."

    def add_arguments(self, parser):
        parser.add_argument("--prefix", type=str, default="demo")
        parser.add_argument("--seekers", type=int, default=4)
        parser.add_argument("--providers", type=int, default=8)
        parser.add_argument("--posts-per-seeker", type=int, default=3)
        parser.add_argument("--applications-per-provider", type=int, default=3)
        parser.add_argument("--password", type=str, default="DemoPass123!")
        parser.add_argument("--seed", type=int, default=42)
        parser.add_argument("--wipe", action="store_true", help="Delete existing users whose email starts with prefix before seeding.")

    def _make_user(self, email, name, role, password):
        user, _ = User.objects.get_or_create(
            username=email,
            defaults={"email": email, "name": name, "role": role, "is_active": True},
        )
        # Keep demo credentials predictable.
        user.email = email
        user.name = name
        user.role = role
        user.is_active = True
        user.set_password(password)
        user.save()
        return user

    @transaction.atomic
    def handle(self, *args, **opts):
        rnd = random.Random(opts["seed"])
        prefix = (opts["prefix"] or "demo").strip().lower()
        seekers_n = max(1, int(opts["seekers"]))
        providers_n = max(1, int(opts["providers"]))
        posts_per_seeker = max(1, int(opts["posts_per_seeker"]))
        apps_per_provider = max(0, int(opts["applications_per_provider"]))
        password = opts["password"]

        if opts["wipe"]:
            User.objects.filter(email__startswith=f"{prefix}_").delete()

        Skill.objects.bulk_create(
            [Skill(name=name, category=category) for name, category in SKILL_SEEDS],
            ignore_conflicts=True,
        )
        skills = list(Skill.objects.all())

        post_templates = [
            ("Build a company landing page", "Need a responsive marketing site with a contact form and basic SEO setup."),
            ("Mobile app for appointment booking", "Looking for a cross-platform app with calendar sync and push notifications."),
            ("Logo and brand kit", "Create a logo, colour palette and typography guide for a new coffee roastery."),
            ("Blog articles on cloud costs", "Write four long-form articles explaining cloud cost optimisation for startups."),
            ("Sales dashboard in Python", "Turn our CSV exports into an interactive dashboard with weekly trend charts."),
            ("Social media campaign", "Plan and run a three-week launch campaign across two social platforms."),
        ]
        cities = [("Berlin", "Germany"), ("Lisbon", "Portugal"), ("Toronto", "Canada"), ("Nairobi", "Kenya"), ("", "")]

        seekers = []
        for i in range(1, seekers_n + 1):
            seekers.append(self._make_user(f"{prefix}_seeker_{i}@example.com", f"Demo Seeker {i}", User.Role.SEEKER, password))

        providers = []
        for i in range(1, providers_n + 1):
            city, country = rnd.choice(cities)
            provider = self._make_user(f"{prefix}_provider_{i}@example.com", f"Demo Provider {i}", User.Role.PROVIDER, password)
            provider.bio = "Freelancer available for short and medium engagements."
            provider.location_city = city
            provider.location_country = country
            provider.location_remote = not city
            provider.verified_at = timezone.now() if rnd.random() < 0.5 else None
            provider.save()
            provider.skills.set(rnd.sample(skills, k=min(len(skills), rnd.randint(3, 6))))
            providers.append(provider)

        created_posts = []
        for i, seeker in enumerate(seekers):
            for j in range(posts_per_seeker):
                title, description = post_templates[(i + j) % len(post_templates)]
                city, country = rnd.choice(cities)
                post, created = Post.objects.get_or_create(
                    owner=seeker,
                    title=f"{title} #{i + 1}.{j + 1}",
                    defaults={
                        "description": description,
                        "category": CATEGORIES[(i + j) % len(CATEGORIES)],
                        "budget": Decimal(rnd.randrange(200, 5000, 50)),
                        "location_city": city,
                        "location_country": country,
                        "location_remote": not city,
                    },
                )
                if created:
                    post.required_skills.set(rnd.sample(skills, k=min(len(skills), rnd.randint(1, 3))))
                    half = (post.budget / 2).quantize(Decimal("0.01"))
                    Milestone.objects.create(post=post, position=0, title="First delivery", amount=half)
                    Milestone.objects.create(post=post, position=1, title="Final delivery", amount=post.budget - half)
                created_posts.append(post)

        for provider in providers:
            for post in rnd.sample(created_posts, k=min(apps_per_provider, len(created_posts))):
                Application.objects.get_or_create(
                    post=post,
                    provider=provider,
                    defaults={"message": "I have delivered similar projects and can start this week."},
                )

        # Accept one application on some posts, close them and leave a review.
        for post in created_posts:
            pending = list(post.applications.filter(status=ApplicationStatus.PENDING))
            if not pending or post.status != PostStatus.OPEN or rnd.random() < 0.4:
                continue
            chosen = rnd.choice(pending)
            chosen.status = ApplicationStatus.ACCEPTED
            chosen.save(update_fields=["status", "updated_at"])
            post.status = PostStatus.CLOSED
            post.save(update_fields=["status", "updated_at"])
            Review.objects.get_or_create(
                application=chosen,
                defaults={
                    "seeker": post.owner,
                    "provider": chosen.provider,
                    "rating": rnd.choices([3, 4, 5], weights=[15, 35, 50], k=1)[0],
                    "comment": "Seeded demo review",
                },
            )

        aggregator = RatingAggregator(build_store())
        for provider in providers:
            aggregator.recompute(provider.pk)

        for seeker in seekers:
            Notification.objects.create(
                user=seeker,
                kind=Notification.Kind.NEW_APPLICATION,
                title="Seeker account ready",
                message="Your seeded dashboard includes posts and applications.",
                url="/dashboard/seeker",
            )

        self.stdout.write(self.style.SUCCESS("Seeded demo data successfully."))
        self.stdout.write(f"Created/updated seekers: {seekers_n}")
        self.stdout.write(f"Created/updated providers: {providers_n}")
        self.stdout.write(f"Created/updated posts target: {seekers_n * posts_per_seeker}")
        self.stdout.write("")
        self.stdout.write("Sample credentials:")
        for user in (seekers[:2] + providers[:2]):
            self.stdout.write(f"  {user.email} / {password}")
