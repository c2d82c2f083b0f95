import logging

from accounts.models import Notification, Skill, User
from accounts.utils import skill_dict, user_summary

logger = logging.getLogger(__name__)


def _money(value):
    return float(value) if value is not None else None


def milestone_dict(milestone):
    return {
        "id": milestone.id,
        "title": milestone.title,
        "amount": _money(milestone.amount),
        "due_date": milestone.due_date,
        "completed": milestone.completed,
    }


def post_dict(post, *, owner=True, milestones=False):
    data = {
        "id": post.id,
        "title": post.title,
        "description": post.description,
        "category": post.category,
        "budget": _money(post.budget),
        "status": post.status,
        "required_skills": [skill_dict(s) for s in post.required_skills.all()],
        "location": post.location_dict(),
        "created_at": post.created_at,
        "updated_at": post.updated_at,
    }
    if owner:
        data["owner"] = {
            **user_summary(post.owner),
            "verified_at": post.owner.verified_at,
            "average_rating": float(post.owner.average_rating),
            "review_count": post.owner.review_count,
        }
    else:
        data["owner_id"] = post.owner_id
    if milestones:
        data["milestones"] = [milestone_dict(m) for m in post.milestones.all()]
    if hasattr(post, "application_count"):
        data["application_count"] = post.application_count
        data["pending_count"] = post.pending_count
    return data


def application_dict(application):
    return {
        "id": application.id,
        "post_id": application.post_id,
        "provider_id": application.provider_id,
        "message": application.message,
        "status": application.status,
        "created_at": application.created_at,
        "updated_at": application.updated_at,
    }


def own_application_dict(application):
    """Provider's view: the application joined with its post and the post owner's name."""
    data = application_dict(application)
    post = application.post
    data["post"] = {
        "id": post.id,
        "title": post.title,
        "category": post.category,
        "budget": _money(post.budget),
        "status": post.status,
        "owner": user_summary(post.owner),
    }
    return data


def applicant_dict(application):
    """Post owner's view: the application joined with the applicant's public profile."""
    data = application_dict(application)
    provider = application.provider
    data["provider"] = {
        "id": provider.id,
        "name": provider.name,
        "bio": provider.bio,
        "average_rating": float(provider.average_rating),
        "review_count": provider.review_count,
        "verified_at": provider.verified_at,
    }
    data["has_review"] = bool(getattr(application, "has_review", False))
    return data


def notify_matching_providers(post, notifier, store) -> int:
    """When a new post is created, notify providers whose skills match its requirements.

    Returns count of providers notified.
    """
    skill_ids = list(store.query(Skill).filter(posts=post).values_list("id", flat=True))
    if not skill_ids:
        return 0

    notified = 0
    try:
        providers = (
            store.query(User)
            .filter(role=User.Role.PROVIDER, is_active=True, skills__in=skill_ids)
            .exclude(pk=post.owner_id)
            .distinct()
        )
        for provider in providers:
            matched = sorted(
                store.query(Skill).filter(users=provider, id__in=skill_ids).values_list("name", flat=True)
            )
            try:
                notifier.send(
                    provider,
                    Notification.Kind.NEW_POST_MATCH,
                    f"New post match: {post.title}",
                    f"Matches your skills: {', '.join(matched)}",
                    f"/posts/{post.id}",
                )
                notified += 1
            except Exception:
                logger.exception("Post match notification failed: post_id=%s provider=%s", post.id, provider.pk)
    except Exception:
        logger.exception("Failed to match providers for post: post_id=%s", post.id)
    return notified
