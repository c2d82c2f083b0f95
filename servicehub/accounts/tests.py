import json
from datetime import timedelta
from io import StringIO
from unittest import mock

from django.core import mail
from django.core.management import call_command
from django.db import DatabaseError
from django.test import Client, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from servicehub.persistence import Store

from .constants import SKILL_SEEDS
from .models import Notification, Skill, User
from .notifications import NotificationSink


def make_user(email, role, name="Test User"):
    return User.objects.create_user(username=email, email=email, password="pass1234", role=role, name=name)


class JsonClientMixin:
    def _json(self, method, url, data=None):
        return getattr(self.client, method)(url, data=json.dumps(data or {}), content_type="application/json")


class RegistrationAndLoginTests(JsonClientMixin, TestCase):
    def test_register_logs_in_and_returns_profile(self):
        resp = self._json(
            "post",
            reverse("register"),
            {"name": "Ada Lovelace", "email": "Ada@Example.com", "password": "secret1", "role": "provider"},
        )
        self.assertEqual(resp.status_code, 201)
        body = resp.json()["user"]
        self.assertEqual(body["email"], "ada@example.com")
        self.assertEqual(body["role"], "provider")
        self.assertEqual(body["average_rating"], 0.0)

        user = User.objects.get(email="ada@example.com")
        self.assertEqual(user.username, "ada@example.com")
        self.assertEqual(self.client.get(reverse("me")).json()["user"]["id"], user.id)

    def test_register_rejects_bad_input(self):
        resp = self._json("post", reverse("register"), {"name": "Ada", "email": "ada@example.com", "password": "123", "role": "provider"})
        self.assertEqual(resp.status_code, 400)
        self.assertTrue(resp.json()["error"].startswith("password:"))

        resp = self._json("post", reverse("register"), {"name": "Ada", "email": "ada@example.com", "password": "secret1", "role": "admin"})
        self.assertEqual(resp.status_code, 400)

    def test_register_duplicate_email(self):
        make_user("ada@example.com", User.Role.SEEKER)
        resp = self._json("post", reverse("register"), {"name": "Ada", "email": "ada@example.com", "password": "secret1", "role": "seeker"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(User.objects.count(), 1)

    def test_login_and_logout(self):
        make_user("ada@example.com", User.Role.SEEKER)
        resp = self._json("post", reverse("login"), {"email": "ADA@example.com", "password": "pass1234"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["email"], "ada@example.com")

        resp = self._json("post", reverse("logout"))
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(self.client.get(reverse("me")).json()["user"])

    def test_login_wrong_password(self):
        make_user("ada@example.com", User.Role.SEEKER)
        resp = self._json("post", reverse("login"), {"email": "ada@example.com", "password": "nope"})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])

    def test_bad_json_body(self):
        resp = self.client.post(reverse("login"), data="{not json", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "Request body must be valid JSON")


class CsrfTests(TestCase):
    def setUp(self):
        self.client = Client(enforce_csrf_checks=True)
        self.payload = json.dumps({"name": "Ada Lovelace", "email": "ada@example.com", "password": "secret1", "role": "seeker"})

    def test_unsafe_request_without_token_is_rejected(self):
        resp = self.client.post(reverse("register"), data=self.payload, content_type="application/json")
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(User.objects.exists())

    def test_register_with_token_from_csrf_endpoint(self):
        resp = self.client.get(reverse("csrf"))
        self.assertIn("csrftoken", self.client.cookies)

        resp = self.client.post(
            reverse("register"),
            data=self.payload,
            content_type="application/json",
            HTTP_X_CSRFTOKEN=resp.json()["csrf_token"],
        )
        self.assertEqual(resp.status_code, 201)

    def test_me_sets_csrf_cookie(self):
        self.client.get(reverse("me"))
        self.assertIn("csrftoken", self.client.cookies)


class ProfileTests(JsonClientMixin, TestCase):
    def setUp(self):
        self.provider = make_user("pro@example.com", User.Role.PROVIDER, name="Pat Provider")
        self.seeker = make_user("seek@example.com", User.Role.SEEKER, name="Sam Seeker")
        self.skill = Skill.objects.create(name="Django", category="Backend")

    def test_profile_requires_login(self):
        resp = self.client.get(reverse("profile"))
        self.assertEqual(resp.status_code, 401)

    def test_provider_updates_profile_and_skills(self):
        self.client.force_login(self.provider)
        resp = self._json(
            "patch",
            reverse("profile"),
            {"bio": "Backend freelancer", "skills": [self.skill.id], "location": {"city": "Lisbon", "remote": True}},
        )
        self.assertEqual(resp.status_code, 200)
        self.provider.refresh_from_db()
        self.assertEqual(self.provider.name, "Pat Provider")
        self.assertEqual(self.provider.bio, "Backend freelancer")
        self.assertEqual(list(self.provider.skills.all()), [self.skill])
        self.assertEqual(self.provider.location_city, "Lisbon")
        self.assertTrue(self.provider.location_remote)

    def test_rating_fields_are_not_settable(self):
        self.client.force_login(self.provider)
        self._json("patch", reverse("profile"), {"average_rating": 5, "review_count": 99})
        self.provider.refresh_from_db()
        self.assertEqual(self.provider.review_count, 0)

    def test_seeker_cannot_set_skills(self):
        self.client.force_login(self.seeker)
        resp = self._json("patch", reverse("profile"), {"skills": [self.skill.id]})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error"], "Only providers can set skills")

    def test_public_profile(self):
        resp = self.client.get(reverse("user_detail", args=[self.provider.id]))
        self.assertEqual(resp.status_code, 200)
        self.assertNotIn("email", resp.json()["user"])
        resp = self.client.get(reverse("user_detail", args=[999]))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"], "User not found")


class SkillCatalogueTests(TestCase):
    def test_first_listing_seeds_catalogue(self):
        resp = self.client.get(reverse("skill_list"))
        body = resp.json()
        self.assertEqual(body["total"], len(SKILL_SEEDS))
        self.assertEqual(Skill.objects.count(), len(SKILL_SEEDS))
        self.assertTrue(all(group["skills"] for group in body["grouped"]))

    def test_existing_catalogue_is_not_reseeded(self):
        Skill.objects.create(name="COBOL", category="Other")
        body = self.client.get(reverse("skill_list")).json()
        self.assertEqual(body["total"], 1)


class NotificationSinkTests(TestCase):
    def setUp(self):
        self.user = make_user("pro@example.com", User.Role.PROVIDER)

    def test_send_saves_notification_and_mirrors_email(self):
        sink = NotificationSink(Store(), email=True)
        notification = sink.send(self.user, Notification.Kind.NEW_REVIEW, "You received a new review", "Five stars", "/users/1")

        self.assertIsNotNone(notification)
        self.assertEqual(notification.url, "/users/1")
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["pro@example.com"])

    def test_email_failure_is_swallowed(self):
        sink = NotificationSink(Store(), email=True)
        with mock.patch("accounts.notifications.send_email", side_effect=ConnectionError("smtp down")):
            notification = sink.send(self.user.pk, Notification.Kind.NEW_APPLICATION, "Title", "Message")
        self.assertIsNotNone(notification)
        self.assertEqual(Notification.objects.count(), 1)

    def test_storage_failure_is_swallowed(self):
        sink = NotificationSink(Store(), email=False)
        with mock.patch.object(Store, "save", side_effect=DatabaseError("database is down")):
            self.assertIsNone(sink.send(self.user, Notification.Kind.NEW_APPLICATION, "Title", "Message"))
        self.assertEqual(Notification.objects.count(), 0)

    @override_settings(MARKETPLACE_NOTIFICATION_EMAILS=False)
    def test_email_mirror_follows_setting(self):
        NotificationSink(Store()).send(self.user, Notification.Kind.NEW_APPLICATION, "Title", "Message")
        self.assertEqual(len(mail.outbox), 0)


class NotificationApiTests(JsonClientMixin, TestCase):
    def setUp(self):
        self.user = make_user("pro@example.com", User.Role.PROVIDER)
        self.other = make_user("other@example.com", User.Role.PROVIDER)
        for i in range(3):
            Notification.objects.create(user=self.user, kind=Notification.Kind.STATUS_CHANGED, title=f"N{i}", message="m")
        self.foreign = Notification.objects.create(user=self.other, kind=Notification.Kind.STATUS_CHANGED, title="X", message="m")
        self.client.force_login(self.user)

    def test_list_newest_first_with_unread_count(self):
        body = self.client.get(reverse("notifications"), {"limit": 2}).json()
        self.assertEqual([n["title"] for n in body["notifications"]], ["N2", "N1"])
        self.assertEqual(body["unread_count"], 3)

    def test_mark_one_and_all_read(self):
        target = Notification.objects.filter(user=self.user).first()
        resp = self._json("patch", reverse("notification_mark_read", args=[target.id]))
        self.assertTrue(resp.json()["notification"]["read"])

        resp = self._json("patch", reverse("notification_mark_read", args=[self.foreign.id]))
        self.assertEqual(resp.status_code, 404)

        self._json("patch", reverse("notifications"))
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())
        self.assertFalse(Notification.objects.get(pk=self.foreign.pk).is_read)

    def test_clear(self):
        self.client.delete(reverse("notifications"))
        self.assertFalse(Notification.objects.filter(user=self.user).exists())
        self.assertTrue(Notification.objects.filter(pk=self.foreign.pk).exists())

    def test_purge_command_removes_expired_only(self):
        old = Notification.objects.filter(user=self.user).first()
        Notification.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=120))

        out = StringIO()
        call_command("purge_notifications", "--days", "90", stdout=out)

        self.assertFalse(Notification.objects.filter(pk=old.pk).exists())
        self.assertEqual(Notification.objects.count(), 3)
        self.assertIn("Deleted 1", out.getvalue())


class HealthTests(TestCase):
    def test_health_ok(self):
        resp = self.client.get(reverse("health"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")
