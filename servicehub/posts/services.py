"""Post and application lifecycle.

Both managers receive their collaborators explicitly: a ``Store`` for every
database access and a notifier exposing ``send(target, kind, title, message,
link)``. Notifications are best-effort; a failing notifier is logged and never
changes the outcome of the operation that triggered it.
"""

import logging

from django.conf import settings
from django.core.paginator import Paginator
from django.db import IntegrityError
from django.db.models import BooleanField, Count, ExpressionWrapper, Q
from django.utils import timezone

from accounts.models import Notification, User
from accounts.notifications import notify
from servicehub.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from servicehub.persistence import Store

from .constants import CATEGORIES
from .forms import ApplicationForm, ApplicationStatusForm, MilestoneForm, PostForm, PostUpdateForm
from .models import Application, ApplicationStatus, Milestone, Post, PostStatus
from .utils import notify_matching_providers

logger = logging.getLogger(__name__)

DUPLICATE_APPLICATION = "You have already applied to this post"


def _require_role(actor, role, message="Forbidden"):
    if getattr(actor, "role", None) != role:
        raise Forbidden(message)


def _post_form_data(data, post=None):
    """Flatten the JSON post payload into form fields, keeping current values for absent keys."""
    current = {}
    if post is not None:
        current = {
            "title": post.title,
            "description": post.description,
            "category": post.category,
            "budget": post.budget,
            "status": post.status,
            "required_skills": list(post.required_skills.values_list("id", flat=True)),
            "location_city": post.location_city,
            "location_country": post.location_country,
            "location_remote": post.location_remote,
        }
    merged = dict(current)
    for key in ("title", "description", "category", "budget", "status"):
        if key in data:
            merged[key] = data[key]
    if "required_skills" in data:
        merged["required_skills"] = data["required_skills"] or []
    location = data.get("location")
    if isinstance(location, dict):
        if "city" in location:
            merged["location_city"] = location["city"] or ""
        if "country" in location:
            merged["location_country"] = location["country"] or ""
        if "remote" in location:
            merged["location_remote"] = bool(location["remote"])
    return merged


def _clean_milestones(raw):
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationFailed("milestones must be a list", field="milestones")
    cleaned = []
    for index, item in enumerate(raw):
        item = item if isinstance(item, dict) else {}
        form = MilestoneForm(
            {"title": item.get("title"), "amount": item.get("amount"), "due_date": item.get("due_date")}
        )
        if not form.is_valid():
            error = ValidationFailed.from_form(form)
            raise ValidationFailed(f"milestones[{index}].{error.message}", field="milestones")
        cleaned.append(form.cleaned_data)
    return cleaned


class PostManager:
    def __init__(self, store: Store, notifier):
        self.store = store
        self.notifier = notifier

    def _get_owned(self, actor, post_id):
        _require_role(actor, User.Role.SEEKER)
        post = self.store.get(Post, post_id)
        if post is None:
            raise NotFound("Post not found")
        if post.owner_id != actor.pk:
            raise Forbidden("Forbidden: not your post")
        return post

    def _replace_milestones(self, post, milestones):
        self.store.query(Milestone).filter(post=post).delete()
        for position, item in enumerate(milestones):
            self.store.save(Milestone(post=post, position=position, **item))

    def create(self, actor, data):
        _require_role(actor, User.Role.SEEKER, "Only Service Seekers can create posts")

        form = PostForm(_post_form_data(data))
        if not form.is_valid():
            raise ValidationFailed.from_form(form)
        milestones = _clean_milestones(data.get("milestones"))

        with self.store.atomic():
            post = form.save(commit=False)
            post.owner = actor
            post.status = PostStatus.OPEN
            self.store.save(post)
            post.required_skills.set(form.cleaned_data["required_skills"])
            self._replace_milestones(post, milestones)

        logger.info("Post created: post_id=%s owner=%s", post.id, actor.pk)
        notify_matching_providers(post, self.notifier, self.store)
        return post

    def get(self, post_id):
        post = (
            self.store.query(Post)
            .select_related("owner")
            .prefetch_related("required_skills", "milestones")
            .filter(pk=post_id)
            .first()
        )
        if post is None:
            raise NotFound("Post not found")
        return post

    def browse(self, *, q=None, category=None, skills=None, city=None, country=None, remote=False, page=1, limit=None):
        """Open posts matching the filters, newest first, one page at a time.

        Unknown categories are ignored rather than rejected.
        """
        max_limit = getattr(settings, "MARKETPLACE_POSTS_MAX_PAGE_SIZE", 50)
        limit = limit or getattr(settings, "MARKETPLACE_POSTS_PAGE_SIZE", 10)
        limit = max(1, min(max_limit, limit))
        if category not in CATEGORIES:
            category = None

        qs = (
            self.store.query(Post)
            .open()
            .search(q=q, category=category, skills=skills, city=city, country=country, remote=remote)
            .select_related("owner")
            .prefetch_related("required_skills")
            .recent()
        )
        paginator = Paginator(qs, limit)
        page_obj = paginator.get_page(max(1, page or 1))
        pagination = {
            "total": paginator.count,
            "page": page_obj.number,
            "limit": limit,
            "total_pages": paginator.num_pages if paginator.count else 0,
        }
        return list(page_obj.object_list), pagination

    def list_own(self, actor):
        _require_role(actor, User.Role.SEEKER)
        return list(
            self.store.query(Post)
            .for_owner(actor)
            .annotate(
                application_count=Count("applications"),
                pending_count=Count("applications", filter=Q(applications__status=ApplicationStatus.PENDING)),
            )
            .prefetch_related("required_skills")
            .recent()
        )

    def update(self, actor, post_id, data):
        post = self._get_owned(actor, post_id)

        form = PostUpdateForm(_post_form_data(data, post), instance=post)
        if not form.is_valid():
            raise ValidationFailed.from_form(form)
        milestones = _clean_milestones(data.get("milestones")) if "milestones" in data else None

        with self.store.atomic():
            post = form.save(commit=False)
            self.store.save(post)
            post.required_skills.set(form.cleaned_data["required_skills"])
            if milestones is not None:
                self._replace_milestones(post, milestones)

        logger.info("Post updated: post_id=%s status=%s fields=%s", post.id, post.status, sorted(data))
        return post

    def delete(self, actor, post_id):
        post = self._get_owned(actor, post_id)
        with self.store.atomic():
            # Reviews keep their provider/seeker and lose the application link.
            removed, _ = self.store.query(Application).filter(post=post).delete()
            self.store.delete(post)
        logger.info("Post deleted: post_id=%s applications_removed=%s", post_id, removed)


class ApplicationManager:
    def __init__(self, store: Store, notifier):
        self.store = store
        self.notifier = notifier

    def _has_applied(self, post, provider):
        return self.store.query(Application).filter(post=post, provider=provider).exists()

    def create(self, actor, data):
        _require_role(actor, User.Role.PROVIDER, "Only Service Providers can apply to posts")

        form = ApplicationForm(data)
        if not form.is_valid():
            raise ValidationFailed.from_form(form)

        post = self.store.get(Post, form.cleaned_data["post_id"])
        if post is None:
            raise NotFound("Post not found")
        if not post.is_open:
            raise InvalidState("This post is no longer accepting applications")
        if post.owner_id == actor.pk:
            raise Forbidden("You cannot apply to your own post")
        if self._has_applied(post, actor):
            raise Conflict(DUPLICATE_APPLICATION)

        try:
            with self.store.atomic():
                application = self.store.save(
                    Application(post=post, provider=actor, message=form.cleaned_data["message"])
                )
        except IntegrityError:
            # Concurrent apply won the race on the (post, provider) constraint.
            raise Conflict(DUPLICATE_APPLICATION)

        logger.info("Application created: app_id=%s post_id=%s provider=%s", application.id, post.id, actor.pk)
        notify(
            self.notifier,
            post.owner_id,
            Notification.Kind.NEW_APPLICATION,
            "New Application Received",
            f'A provider applied to your post "{post.title}"',
            "/dashboard/seeker",
        )
        return application

    def list_own(self, actor):
        _require_role(actor, User.Role.PROVIDER)
        return list(
            self.store.query(Application)
            .for_provider(actor)
            .select_related("post", "post__owner")
            .recent()
        )

    def list_for_post(self, actor, post_id):
        _require_role(actor, User.Role.SEEKER)
        post = self.store.get(Post, post_id)
        if post is None:
            raise NotFound("Post not found")
        if post.owner_id != actor.pk:
            raise Forbidden("Forbidden: not your post")
        return list(
            self.store.query(Application)
            .for_post(post)
            .select_related("provider")
            .annotate(has_review=ExpressionWrapper(Q(review__isnull=False), output_field=BooleanField()))
            .recent()
        )

    def update_status(self, actor, application_id, data):
        _require_role(actor, User.Role.SEEKER)
        application = self.store.get(Application, application_id, select_related=("post",))
        if application is None:
            raise NotFound("Application not found")
        post = application.post
        if post.owner_id != actor.pk:
            raise Forbidden("Forbidden: you do not own this post")

        form = ApplicationStatusForm(data)
        if not form.is_valid():
            raise ValidationFailed.from_form(form)
        status = form.cleaned_data["status"]
        if not application.is_pending:
            raise InvalidState("Only pending applications can be accepted or rejected")

        # No guard against accepting on a post an earlier accept already closed.
        with self.store.atomic():
            application.status = status
            self.store.save(application, update_fields=["status", "updated_at"])
            if status == ApplicationStatus.ACCEPTED:
                self.store.query(Post).filter(pk=post.pk).update(status=PostStatus.CLOSED, updated_at=timezone.now())
                post.status = PostStatus.CLOSED

        logger.info("Application status changed: app_id=%s status=%s post_id=%s", application.id, status, post.id)
        accepted = status == ApplicationStatus.ACCEPTED
        notify(
            self.notifier,
            application.provider_id,
            Notification.Kind.STATUS_CHANGED,
            "Application Accepted!" if accepted else "Application Update",
            (
                f'Your application for "{post.title}" has been accepted!'
                if accepted
                else f'Your application for "{post.title}" was not selected.'
            ),
            "/dashboard/provider",
        )
        return application

    def withdraw(self, actor, application_id):
        _require_role(actor, User.Role.PROVIDER)
        application = self.store.get(Application, application_id)
        if application is None:
            raise NotFound("Application not found")
        if application.provider_id != actor.pk:
            raise Forbidden("Forbidden: not your application")
        if not application.is_pending:
            raise InvalidState("Only pending applications can be withdrawn")

        self.store.delete(application)
        logger.info("Application withdrawn: app_id=%s provider=%s", application_id, actor.pk)
