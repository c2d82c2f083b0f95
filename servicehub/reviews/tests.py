import json
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse

from accounts.models import Notification, User
from accounts.notifications import NotificationSink
from posts.models import Application, ApplicationStatus, Post, PostStatus
from posts.services import ApplicationManager, PostManager
from servicehub.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from servicehub.persistence import Store

from .models import Review
from .services import RatingAggregator, ReviewManager, round_rating


def make_user(email, role, name=None):
    return User.objects.create_user(
        username=email, email=email, password="pass1234", role=role, name=name or email.split("@")[0].title()
    )


class RoundRatingTests(TestCase):
    def test_half_up(self):
        self.assertEqual(round_rating(4.25), Decimal("4.3"))
        self.assertEqual(round_rating(Decimal("4.666")), Decimal("4.7"))
        self.assertEqual(round_rating(None), Decimal("0.0"))


class ReviewLifecycleTests(TestCase):
    def setUp(self):
        self.store = Store()
        self.sink = NotificationSink(self.store, email=False)
        self.aggregator = RatingAggregator(self.store)
        self.manager = ReviewManager(self.store, self.sink, self.aggregator)
        self.seeker = make_user("seeker@example.com", User.Role.SEEKER, name="Sam Seeker")
        self.provider = make_user("provider@example.com", User.Role.PROVIDER)
        self._n = 0

    def _application(self, status=ApplicationStatus.ACCEPTED, owner=None, provider=None):
        self._n += 1
        post = Post.objects.create(
            owner=owner or self.seeker,
            title=f"Engagement number {self._n}",
            description="Ongoing maintenance of an online shop.",
            category="Web Development",
            budget=300,
            status=PostStatus.CLOSED if status == ApplicationStatus.ACCEPTED else PostStatus.OPEN,
        )
        return Application.objects.create(
            post=post, provider=provider or self.provider, message="Ready to start tomorrow.", status=status
        )

    def _review(self, application, rating, comment=""):
        return self.manager.create(self.seeker, {"application_id": application.id, "rating": rating, "comment": comment})

    def _projection(self):
        self.provider.refresh_from_db()
        return self.provider.average_rating, self.provider.review_count

    def test_create_updates_rating_and_notifies_provider(self):
        review = self._review(self._application(), 5, "Great work")

        self.assertEqual(review.provider, self.provider)
        self.assertEqual(self._projection(), (Decimal("5.0"), 1))
        notification = Notification.objects.get(user=self.provider)
        self.assertEqual(notification.kind, Notification.Kind.NEW_REVIEW)
        self.assertEqual(notification.title, "You received a new review")
        self.assertEqual(notification.message, "Sam Seeker left you a 5-star review.")

    def test_create_succeeds_when_notifier_fails(self):
        notifier = mock.Mock()
        notifier.send.side_effect = RuntimeError("notification backend down")
        manager = ReviewManager(self.store, notifier, self.aggregator)

        review = manager.create(self.seeker, {"application_id": self._application().id, "rating": 4})

        notifier.send.assert_called_once()
        self.assertTrue(Review.objects.filter(pk=review.pk).exists())
        self.assertEqual(self._projection(), (Decimal("4.0"), 1))

    def test_failed_recompute_rolls_back_review(self):
        application = self._application()
        with mock.patch.object(self.aggregator, "recompute", side_effect=DatabaseError("lock timeout")):
            with self.assertRaises(DatabaseError):
                self._review(application, 5)
        self.assertFalse(Review.objects.exists())
        self.assertEqual(self._projection(), (Decimal("0.0"), 0))

    def test_failed_recompute_keeps_deleted_review(self):
        review = self._review(self._application(), 5)
        with mock.patch.object(self.aggregator, "recompute", side_effect=DatabaseError("lock timeout")):
            with self.assertRaises(DatabaseError):
                self.manager.delete(self.seeker, review.id)
        self.assertTrue(Review.objects.filter(pk=review.pk).exists())
        self.assertEqual(self._projection(), (Decimal("5.0"), 1))

    def test_only_accepted_applications_can_be_reviewed(self):
        for status in (ApplicationStatus.PENDING, ApplicationStatus.REJECTED):
            with self.assertRaises(InvalidState) as ctx:
                self._review(self._application(status=status), 4)
            self.assertEqual(ctx.exception.message, "Can only review accepted applications")
        self.assertFalse(Review.objects.exists())

    def test_second_review_for_same_application_is_conflict(self):
        application = self._application()
        self._review(application, 5)
        with self.assertRaises(Conflict) as ctx:
            self._review(application, 1)
        self.assertEqual(ctx.exception.message, "Review already submitted for this application")
        self.assertEqual(self._projection(), (Decimal("5.0"), 1))

    def test_review_race_maps_to_conflict(self):
        application = self._application()
        self._review(application, 5)
        # Skip the pre-check so the one-to-one constraint is what rejects the write.
        original_query = self.store.query

        def query(model):
            qs = original_query(model)
            return qs.none() if model is Review else qs

        with mock.patch.object(self.store, "query", side_effect=query):
            with self.assertRaises(Conflict):
                self._review(application, 2)
        self.assertEqual(Review.objects.count(), 1)

    def test_create_rules(self):
        application = self._application()
        with self.assertRaises(Forbidden):
            self.manager.create(self.provider, {"application_id": application.id, "rating": 5})
        with self.assertRaises(NotFound):
            self._review(Application(id=application.id + 100), 5)
        with self.assertRaises(ValidationFailed) as ctx:
            self._review(application, 6)
        self.assertEqual(ctx.exception.message, "rating: Rating must be between 1 and 5")
        with self.assertRaises(ValidationFailed):
            self._review(application, 5, "x" * 501)

        other_seeker = make_user("other@example.com", User.Role.SEEKER)
        with self.assertRaises(Forbidden):
            self.manager.create(other_seeker, {"application_id": application.id, "rating": 5})

    def test_rating_examples(self):
        reviews = [self._review(self._application(), r) for r in (5, 5, 4, 3)]
        self.assertEqual(self._projection(), (Decimal("4.3"), 4))

        self.manager.delete(self.seeker, reviews[3].id)
        self.assertEqual(self._projection(), (Decimal("4.7"), 3))

        for review in reviews[:3]:
            self.manager.delete(self.seeker, review.id)
        self.assertEqual(self._projection(), (Decimal("0.0"), 0))

    def test_recompute_is_idempotent(self):
        for rating in (4, 5):
            self._review(self._application(), rating)
        first = self.aggregator.recompute(self.provider.pk)
        second = self.aggregator.recompute(self.provider.pk)
        self.assertEqual(first, second)
        self.assertEqual(self._projection(), (Decimal("4.5"), 2))

    def test_delete_rules(self):
        review = self._review(self._application(), 5)
        other_seeker = make_user("other@example.com", User.Role.SEEKER)
        with self.assertRaises(Forbidden):
            self.manager.delete(other_seeker, review.id)
        with self.assertRaises(NotFound):
            self.manager.delete(self.seeker, review.id + 100)

    def test_listings(self):
        first = self._review(self._application(), 4, "Good")
        second = self._review(self._application(), 5, "Great")

        listed = self.manager.list_for_provider(self.provider.pk)
        self.assertEqual([r.id for r in listed], [second.id, first.id])
        self.assertEqual(listed[0].seeker.name, "Sam Seeker")

        own = self.manager.list_own(self.seeker)
        self.assertEqual([r.id for r in own], [second.id, first.id])
        self.assertEqual(own[0].application.post.title, second.application.post.title)

    def test_deleting_post_keeps_reviews_and_rating(self):
        application = self._application()
        self._review(application, 4)
        PostManager(self.store, self.sink).delete(self.seeker, application.post_id)

        review = Review.objects.get()
        self.assertIsNone(review.application_id)
        self.assertEqual(self._projection(), (Decimal("4.0"), 1))

    def test_end_to_end_scenario(self):
        post = Post.objects.create(
            owner=self.seeker,
            title="Fix checkout flow",
            description="Checkout fails for some card payments.",
            category="Web Development",
            budget=400,
        )
        applications = ApplicationManager(self.store, self.sink)

        application = applications.create(
            self.provider, {"post_id": post.id, "message": "I have 5 years experience in this field"}
        )
        self.assertEqual(application.status, ApplicationStatus.PENDING)

        applications.update_status(self.seeker, application.id, {"status": ApplicationStatus.ACCEPTED})
        post.refresh_from_db()
        self.assertEqual(post.status, PostStatus.CLOSED)
        self.assertTrue(
            Notification.objects.filter(user=self.provider, kind=Notification.Kind.STATUS_CHANGED).exists()
        )

        review = self.manager.create(
            self.seeker, {"application_id": application.id, "rating": 5, "comment": "Great work"}
        )
        self.assertEqual(self._projection(), (Decimal("5.0"), 1))

        self.manager.delete(self.seeker, review.id)
        self.assertEqual(self._projection(), (Decimal("0.0"), 0))


class ReviewApiTests(TestCase):
    def setUp(self):
        self.seeker = make_user("seeker@example.com", User.Role.SEEKER, name="Sam Seeker")
        self.provider = make_user("provider@example.com", User.Role.PROVIDER, name="Pat Provider")
        post = Post.objects.create(
            owner=self.seeker,
            title="Fix checkout flow",
            description="Checkout fails for some card payments.",
            category="Web Development",
            budget=400,
            status=PostStatus.CLOSED,
        )
        self.application = Application.objects.create(
            post=post, provider=self.provider, message="Ready to start tomorrow.", status=ApplicationStatus.ACCEPTED
        )

    def test_review_flow_over_http(self):
        self.client.force_login(self.seeker)
        resp = self.client.post(
            reverse("reviews"),
            data=json.dumps({"application_id": self.application.id, "rating": 4, "comment": "Solid"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 201)
        review_id = resp.json()["review"]["id"]

        self.client.logout()
        resp = self.client.get(reverse("reviews"), {"provider": self.provider.id})
        body = resp.json()
        self.assertEqual(body["review_count"], 1)
        self.assertEqual(body["average_rating"], 4.0)
        self.assertEqual(body["reviews"][0]["seeker"]["name"], "Sam Seeker")

        self.client.force_login(self.seeker)
        resp = self.client.get(reverse("my_reviews"))
        self.assertEqual(resp.json()["reviews"][0]["post"]["title"], "Fix checkout flow")

        resp = self.client.delete(reverse("review_detail", args=[review_id]))
        self.assertEqual(resp.status_code, 200)
        self.provider.refresh_from_db()
        self.assertEqual(self.provider.review_count, 0)

    def test_provider_listing_requires_provider_param(self):
        resp = self.client.get(reverse("reviews"))
        self.assertEqual(resp.status_code, 400)
        resp = self.client.get(reverse("reviews"), {"provider": 999})
        self.assertEqual(resp.status_code, 404)

    def test_provider_cannot_review(self):
        self.client.force_login(self.provider)
        resp = self.client.post(
            reverse("reviews"),
            data=json.dumps({"application_id": self.application.id, "rating": 4}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error"], "Only seekers can write reviews")
