import json
from unittest import mock

from django.test import TestCase
from django.urls import reverse

from accounts.models import Notification, Skill, User
from reviews.models import Review
from servicehub.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from servicehub.persistence import Store

from .models import Application, ApplicationStatus, Milestone, Post, PostStatus
from .services import ApplicationManager, PostManager


def make_user(email, role, name=None, **extra):
    return User.objects.create_user(
        username=email,
        email=email,
        password="pass1234",
        role=role,
        name=name or email.split("@")[0].title(),
        **extra,
    )


def make_post(owner, title="Build a booking website", **extra):
    fields = {
        "description": "A small site with a calendar and a contact form.",
        "category": "Web Development",
        "budget": 500,
    }
    fields.update(extra)
    return Post.objects.create(owner=owner, title=title, **fields)


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, target, kind, title, message, link=""):
        self.sent.append({"target": getattr(target, "pk", target), "kind": kind, "title": title, "message": message, "link": link})


class BrokenNotifier:
    def send(self, *args, **kwargs):
        raise RuntimeError("notification backend down")


class PostManagerTests(TestCase):
    def setUp(self):
        self.store = Store()
        self.notifier = RecordingNotifier()
        self.manager = PostManager(self.store, self.notifier)
        self.seeker = make_user("seeker@example.com", User.Role.SEEKER)
        self.provider = make_user("provider@example.com", User.Role.PROVIDER)
        self.react = Skill.objects.create(name="React", category="Frontend")
        self.django = Skill.objects.create(name="Django", category="Backend")

    def _payload(self, **overrides):
        data = {
            "title": "Build a booking website",
            "description": "A small site with a calendar and a contact form.",
            "category": "Web Development",
            "budget": 750,
            "required_skills": [self.react.id],
            "location": {"city": "Berlin", "country": "Germany", "remote": True},
            "milestones": [
                {"title": "Design", "amount": 250},
                {"title": "Launch", "amount": 500, "due_date": "2030-01-31"},
            ],
        }
        data.update(overrides)
        return data

    def test_create_post_with_skills_location_and_milestones(self):
        post = self.manager.create(self.seeker, self._payload())

        self.assertEqual(post.status, PostStatus.OPEN)
        self.assertEqual(post.owner, self.seeker)
        self.assertEqual(list(post.required_skills.all()), [self.react])
        self.assertEqual(post.location_city, "Berlin")
        self.assertTrue(post.location_remote)
        self.assertEqual(list(post.milestones.values_list("title", flat=True)), ["Design", "Launch"])

    def test_provider_cannot_create_post(self):
        with self.assertRaises(Forbidden) as ctx:
            self.manager.create(self.provider, self._payload())
        self.assertEqual(ctx.exception.message, "Only Service Seekers can create posts")

    def test_create_validates_fields(self):
        with self.assertRaises(ValidationFailed) as ctx:
            self.manager.create(self.seeker, self._payload(title="Hey"))
        self.assertEqual(ctx.exception.field, "title")

        with self.assertRaises(ValidationFailed):
            self.manager.create(self.seeker, self._payload(category="Plumbing"))
        with self.assertRaises(ValidationFailed):
            self.manager.create(self.seeker, self._payload(budget=-5))
        with self.assertRaises(ValidationFailed) as ctx:
            self.manager.create(self.seeker, self._payload(milestones=[{"title": "No amount"}]))
        self.assertTrue(ctx.exception.message.startswith("milestones[0]."))
        self.assertFalse(Post.objects.exists())

    def test_create_notifies_providers_with_matching_skills(self):
        self.provider.skills.add(self.react)
        other = make_user("other@example.com", User.Role.PROVIDER)
        other.skills.add(self.django)

        post = self.manager.create(self.seeker, self._payload())

        matches = [n for n in self.notifier.sent if n["kind"] == Notification.Kind.NEW_POST_MATCH]
        self.assertEqual([n["target"] for n in matches], [self.provider.pk])
        self.assertEqual(matches[0]["link"], f"/posts/{post.id}")
        self.assertIn("React", matches[0]["message"])

    def test_create_succeeds_when_match_notifications_fail(self):
        self.provider.skills.add(self.react)
        manager = PostManager(self.store, BrokenNotifier())
        post = manager.create(self.seeker, self._payload())
        self.assertTrue(Post.objects.filter(pk=post.pk).exists())

    def test_browse_returns_open_posts_newest_first_with_filters(self):
        older = make_post(self.seeker, title="Logo for a bakery", category="Design & Creative")
        newer = make_post(self.seeker, title="React dashboard", location_remote=True)
        newer.required_skills.add(self.react)
        make_post(self.seeker, title="Closed post here", status=PostStatus.CLOSED)

        items, pagination = self.manager.browse()
        self.assertEqual([p.id for p in items], [newer.id, older.id])
        self.assertEqual(pagination["total"], 2)

        items, _ = self.manager.browse(category="Design & Creative")
        self.assertEqual([p.id for p in items], [older.id])
        items, _ = self.manager.browse(q="dashboard")
        self.assertEqual([p.id for p in items], [newer.id])
        items, _ = self.manager.browse(skills=[self.react.id])
        self.assertEqual([p.id for p in items], [newer.id])
        items, _ = self.manager.browse(remote=True)
        self.assertEqual([p.id for p in items], [newer.id])

        # Unknown categories are ignored, not rejected.
        items, _ = self.manager.browse(category="Plumbing")
        self.assertEqual(len(items), 2)

    def test_browse_paginates(self):
        for i in range(3):
            make_post(self.seeker, title=f"Website number {i}")
        items, pagination = self.manager.browse(page=2, limit=2)
        self.assertEqual(len(items), 1)
        self.assertEqual(pagination, {"total": 3, "page": 2, "limit": 2, "total_pages": 2})

    def test_update_is_partial_and_owner_only(self):
        post = self.manager.create(self.seeker, self._payload())
        updated = self.manager.update(self.seeker, post.id, {"budget": 900, "status": PostStatus.CLOSED})

        self.assertEqual(updated.title, "Build a booking website")
        self.assertEqual(int(updated.budget), 900)
        self.assertEqual(updated.status, PostStatus.CLOSED)
        self.assertEqual(updated.milestones.count(), 2)

        intruder = make_user("intruder@example.com", User.Role.SEEKER)
        with self.assertRaises(Forbidden):
            self.manager.update(intruder, post.id, {"budget": 1})
        with self.assertRaises(NotFound):
            self.manager.update(self.seeker, post.id + 100, {"budget": 1})

    def test_update_replaces_milestones_only_when_given(self):
        post = self.manager.create(self.seeker, self._payload())
        self.manager.update(self.seeker, post.id, {"milestones": [{"title": "All at once", "amount": 750}]})
        self.assertEqual(list(Milestone.objects.filter(post=post).values_list("title", flat=True)), ["All at once"])

    def test_delete_cascades_to_applications(self):
        post = make_post(self.seeker)
        Application.objects.create(post=post, provider=self.provider, message="I can do this next week.")

        self.manager.delete(self.seeker, post.id)

        self.assertFalse(Post.objects.filter(pk=post.id).exists())
        self.assertFalse(Application.objects.filter(post_id=post.id).exists())

    def test_list_own_counts_applications(self):
        post = make_post(self.seeker)
        Application.objects.create(post=post, provider=self.provider, message="I can do this next week.")
        other = make_user("p2@example.com", User.Role.PROVIDER)
        Application.objects.create(post=post, provider=other, message="Happy to help with it.", status=ApplicationStatus.REJECTED)

        [own] = self.manager.list_own(self.seeker)
        self.assertEqual(own.application_count, 2)
        self.assertEqual(own.pending_count, 1)


class ApplicationManagerTests(TestCase):
    def setUp(self):
        self.store = Store()
        self.notifier = RecordingNotifier()
        self.manager = ApplicationManager(self.store, self.notifier)
        self.seeker = make_user("seeker@example.com", User.Role.SEEKER)
        self.provider = make_user("provider@example.com", User.Role.PROVIDER)
        self.post = make_post(self.seeker)

    def _apply(self, provider=None, post=None, message="I have 5 years experience in this field"):
        return self.manager.create(provider or self.provider, {"post_id": (post or self.post).id, "message": message})

    def test_apply_creates_pending_application_and_notifies_owner(self):
        application = self._apply()

        self.assertEqual(application.status, ApplicationStatus.PENDING)
        [sent] = self.notifier.sent
        self.assertEqual(sent["target"], self.seeker.pk)
        self.assertEqual(sent["kind"], Notification.Kind.NEW_APPLICATION)
        self.assertEqual(sent["title"], "New Application Received")
        self.assertEqual(sent["link"], "/dashboard/seeker")

    def test_apply_twice_is_conflict(self):
        self._apply()
        with self.assertRaises(Conflict) as ctx:
            self._apply()
        self.assertEqual(ctx.exception.message, "You have already applied to this post")
        self.assertEqual(Application.objects.count(), 1)

    def test_constraint_race_maps_to_conflict(self):
        self._apply()
        with mock.patch.object(ApplicationManager, "_has_applied", return_value=False):
            with self.assertRaises(Conflict):
                self._apply()
        self.assertEqual(Application.objects.count(), 1)

    def test_apply_to_closed_post_is_invalid_state(self):
        self.post.status = PostStatus.CLOSED
        self.post.save()
        with self.assertRaises(InvalidState):
            self._apply()

    def test_apply_rules(self):
        with self.assertRaises(Forbidden):
            self.manager.create(self.seeker, {"post_id": self.post.id, "message": "Let me do it myself."})
        with self.assertRaises(NotFound):
            self.manager.create(self.provider, {"post_id": self.post.id + 100, "message": "I can help with this."})
        with self.assertRaises(ValidationFailed) as ctx:
            self._apply(message="short")
        self.assertEqual(ctx.exception.field, "message")

    def test_apply_to_own_post_is_forbidden(self):
        # Roles can change after a post was made; ownership is still checked.
        User.objects.filter(pk=self.seeker.pk).update(role=User.Role.PROVIDER)
        self.seeker.refresh_from_db()
        with self.assertRaises(Forbidden) as ctx:
            self._apply(provider=self.seeker)
        self.assertEqual(ctx.exception.message, "You cannot apply to your own post")

    def test_apply_succeeds_when_notifier_fails(self):
        manager = ApplicationManager(self.store, BrokenNotifier())
        application = manager.create(self.provider, {"post_id": self.post.id, "message": "I can help with this."})
        self.assertTrue(Application.objects.filter(pk=application.pk).exists())

    def test_status_change_succeeds_when_notifier_fails(self):
        application = self._apply()
        manager = ApplicationManager(self.store, BrokenNotifier())

        manager.update_status(self.seeker, application.id, {"status": ApplicationStatus.ACCEPTED})

        application.refresh_from_db()
        self.post.refresh_from_db()
        self.assertEqual(application.status, ApplicationStatus.ACCEPTED)
        self.assertEqual(self.post.status, PostStatus.CLOSED)

    def test_accept_closes_post_without_rejecting_others(self):
        first = self._apply()
        other = make_user("p2@example.com", User.Role.PROVIDER)
        second = self._apply(provider=other)
        self.notifier.sent.clear()

        self.manager.update_status(self.seeker, first.id, {"status": ApplicationStatus.ACCEPTED})

        first.refresh_from_db()
        second.refresh_from_db()
        self.post.refresh_from_db()
        self.assertEqual(first.status, ApplicationStatus.ACCEPTED)
        self.assertEqual(second.status, ApplicationStatus.PENDING)
        self.assertEqual(self.post.status, PostStatus.CLOSED)
        [sent] = self.notifier.sent
        self.assertEqual(sent["target"], self.provider.pk)
        self.assertEqual(sent["title"], "Application Accepted!")
        self.assertEqual(sent["link"], "/dashboard/provider")

    def test_reject_keeps_post_open(self):
        application = self._apply()
        self.manager.update_status(self.seeker, application.id, {"status": ApplicationStatus.REJECTED})
        self.post.refresh_from_db()
        self.assertEqual(self.post.status, PostStatus.OPEN)
        self.assertIn("was not selected", self.notifier.sent[-1]["message"])

    def test_update_status_rules(self):
        application = self._apply()
        stranger = make_user("stranger@example.com", User.Role.SEEKER)
        with self.assertRaises(Forbidden):
            self.manager.update_status(stranger, application.id, {"status": ApplicationStatus.ACCEPTED})
        with self.assertRaises(NotFound):
            self.manager.update_status(self.seeker, application.id + 100, {"status": ApplicationStatus.ACCEPTED})
        with self.assertRaises(ValidationFailed):
            self.manager.update_status(self.seeker, application.id, {"status": ApplicationStatus.PENDING})

        self.manager.update_status(self.seeker, application.id, {"status": ApplicationStatus.REJECTED})
        with self.assertRaises(InvalidState):
            self.manager.update_status(self.seeker, application.id, {"status": ApplicationStatus.ACCEPTED})

    def test_withdraw_only_pending_own_application(self):
        application = self._apply()
        other = make_user("p2@example.com", User.Role.PROVIDER)
        with self.assertRaises(Forbidden):
            self.manager.withdraw(other, application.id)

        self.manager.withdraw(self.provider, application.id)
        self.assertFalse(Application.objects.filter(pk=application.id).exists())
        with self.assertRaises(NotFound):
            self.manager.withdraw(self.provider, application.id)

        accepted = self._apply()
        self.manager.update_status(self.seeker, accepted.id, {"status": ApplicationStatus.ACCEPTED})
        with self.assertRaises(InvalidState):
            self.manager.withdraw(self.provider, accepted.id)

    def test_list_for_post_owner_only(self):
        application = self._apply()
        [listed] = self.manager.list_for_post(self.seeker, self.post.id)
        self.assertEqual(listed.id, application.id)
        self.assertFalse(listed.has_review)

        stranger = make_user("stranger@example.com", User.Role.SEEKER)
        with self.assertRaises(Forbidden):
            self.manager.list_for_post(stranger, self.post.id)

    def test_list_for_post_flags_reviewed_applications(self):
        application = self._apply()
        self.manager.update_status(self.seeker, application.id, {"status": ApplicationStatus.ACCEPTED})
        Review.objects.create(seeker=self.seeker, provider=self.provider, application=application, rating=4)

        [listed] = self.manager.list_for_post(self.seeker, self.post.id)
        self.assertTrue(listed.has_review)

    def test_list_own_newest_first(self):
        first = self._apply()
        second = self._apply(post=make_post(self.seeker, title="Another website"))
        self.assertEqual([a.id for a in self.manager.list_own(self.provider)], [second.id, first.id])


class PostApiTests(TestCase):
    def setUp(self):
        self.seeker = make_user("seeker@example.com", User.Role.SEEKER, name="Sam Seeker")
        self.provider = make_user("provider@example.com", User.Role.PROVIDER, name="Pat Provider")

    def _json(self, method, url, data=None):
        return getattr(self.client, method)(url, data=json.dumps(data or {}), content_type="application/json")

    def test_create_requires_login(self):
        resp = self._json("post", reverse("posts"), {"title": "Anything"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"success": False, "error": "Unauthorized access"})

    def test_create_and_read_post(self):
        self.client.force_login(self.seeker)
        resp = self._json(
            "post",
            reverse("posts"),
            {
                "title": "Build a booking website",
                "description": "A small site with a calendar and a contact form.",
                "category": "Web Development",
                "budget": 500,
            },
        )
        self.assertEqual(resp.status_code, 201)
        post_id = resp.json()["post"]["id"]

        self.client.logout()
        resp = self.client.get(reverse("post_detail", args=[post_id]))
        self.assertEqual(resp.status_code, 200)
        body = resp.json()["post"]
        self.assertEqual(body["owner"]["name"], "Sam Seeker")
        self.assertEqual(body["budget"], 500.0)
        self.assertEqual(body["milestones"], [])

    def test_create_validation_error_shape(self):
        self.client.force_login(self.seeker)
        resp = self._json("post", reverse("posts"), {"title": "Hey"})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])

    def test_browse_is_public(self):
        make_post(self.seeker)
        resp = self.client.get(reverse("posts"), {"limit": 5})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.json()["posts"]), 1)
        self.assertEqual(resp.json()["pagination"]["limit"], 5)

    def test_browse_search_parameter(self):
        make_post(self.seeker, title="Logo for a bakery", category="Design & Creative")
        wanted = make_post(self.seeker, title="React dashboard")

        for param in ("search", "q"):
            resp = self.client.get(reverse("posts"), {param: "dashboard"})
            self.assertEqual([p["id"] for p in resp.json()["posts"]], [wanted.id])

    def test_missing_post_is_404(self):
        resp = self.client.get(reverse("post_detail", args=[999]))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"], "Post not found")

    def test_application_flow_over_http(self):
        post = make_post(self.seeker)
        self.client.force_login(self.provider)
        resp = self._json("post", reverse("applications"), {"post_id": post.id, "message": "I have 5 years experience in this field"})
        self.assertEqual(resp.status_code, 201)
        app_id = resp.json()["application"]["id"]

        resp = self._json("post", reverse("applications"), {"post_id": post.id, "message": "I have 5 years experience in this field"})
        self.assertEqual(resp.status_code, 409)

        resp = self.client.get(reverse("applications"))
        self.assertEqual(resp.json()["applications"][0]["post"]["title"], post.title)

        self.client.force_login(self.seeker)
        resp = self.client.get(reverse("post_applications", args=[post.id]))
        self.assertEqual(resp.json()["applications"][0]["provider"]["name"], "Pat Provider")

        resp = self._json("patch", reverse("application_detail", args=[app_id]), {"status": "ACCEPTED"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["post_status"], PostStatus.CLOSED)
        self.assertTrue(Notification.objects.filter(user=self.provider, kind=Notification.Kind.STATUS_CHANGED).exists())

    def test_my_posts_and_dashboard(self):
        post = make_post(self.seeker)
        Application.objects.create(post=post, provider=self.provider, message="I can do this next week.")

        self.client.force_login(self.seeker)
        resp = self.client.get(reverse("my_posts"))
        self.assertEqual(resp.json()["posts"][0]["application_count"], 1)
        resp = self.client.get(reverse("dashboard"))
        self.assertEqual(resp.json()["dashboard"]["pending_applications"], 1)

        self.client.force_login(self.provider)
        resp = self.client.get(reverse("my_posts"))
        self.assertEqual(resp.status_code, 403)
        resp = self.client.get(reverse("dashboard"))
        self.assertEqual(resp.json()["dashboard"]["applications_count"], 1)

    def test_delete_post_over_http(self):
        post = make_post(self.seeker)
        self.client.force_login(self.seeker)
        resp = self.client.delete(reverse("post_detail", args=[post.id]))
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(Post.objects.filter(pk=post.id).exists())
