import logging

from django.conf import settings
from django.contrib.auth import login, logout
from django.db import connections
from django.http import JsonResponse
from django.utils import timezone
from django.middleware.csrf import get_token
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from servicehub.errors import Forbidden, NotFound, ValidationFailed
from servicehub.persistence import build_store

from .constants import SKILL_CATEGORIES, SKILL_SEEDS
from .decorators import api_view, current_identity, login_required_json, parse_json_body
from .forms import LoginForm, ProfileForm, RegistrationForm
from .models import Notification, Skill, User
from .utils import notification_dict, private_profile, public_profile, skill_dict

logger = logging.getLogger(__name__)


# -----------------------------
# Register / Login / Logout
# -----------------------------
@api_view
@require_POST
def register(request):
    form = RegistrationForm(parse_json_body(request))
    if not form.is_valid():
        logger.warning("Registration failed: errors=%s", form.errors.as_json())
        raise ValidationFailed.from_form(form)

    user = form.save()
    login(request, user)
    request.session.set_expiry(getattr(settings, "SESSION_COOKIE_AGE", 7 * 24 * 3600))
    logger.info("User registered: user_id=%s role=%s", user.id, user.role)
    return JsonResponse({"success": True, "user": private_profile(user)}, status=201)


@api_view
@require_POST
def user_login(request):
    data = parse_json_body(request)
    form = LoginForm(request, data={"username": data.get("email", ""), "password": data.get("password", "")})
    if not form.is_valid():
        logger.info("Login failed: email=%s", data.get("email"))
        raise ValidationFailed.from_form(form)

    user = form.get_user()
    login(request, user)
    # Session management: explicit expiry
    request.session.set_expiry(getattr(settings, "SESSION_COOKIE_AGE", 7 * 24 * 3600))
    request.session["role"] = user.role
    logger.info("Login success: user_id=%s role=%s", user.id, user.role)
    return JsonResponse({"success": True, "user": private_profile(user)})


@api_view
@require_POST
def user_logout(request):
    user_id = request.user.id if request.user.is_authenticated else None
    logout(request)
    if user_id:
        logger.info("Logout: user_id=%s", user_id)
    return JsonResponse({"success": True})


@ensure_csrf_cookie
@require_GET
def csrf(request):
    """Hand out the CSRF token; unsafe requests must echo it in ``X-CSRFToken``."""
    return JsonResponse({"success": True, "csrf_token": get_token(request)})


@ensure_csrf_cookie
@require_GET
def me(request):
    if not request.user.is_authenticated:
        return JsonResponse({"user": None})
    user = request.user
    return JsonResponse({"user": {"id": user.id, "name": user.name, "email": user.email, "role": user.role}})


# -----------------------------
# Profiles
# -----------------------------
@api_view
@login_required_json
@require_http_methods(["GET", "PATCH"])
def profile(request):
    user = current_identity(request)
    if request.method == "GET":
        return JsonResponse({"success": True, "user": private_profile(user)})

    data = parse_json_body(request)
    if "skills" in data and not user.is_provider:
        raise Forbidden("Only providers can set skills")

    location = data.get("location") or {}
    merged = {
        "name": data.get("name", user.name),
        "bio": data.get("bio", user.bio),
        "skills": data.get("skills", list(user.skills.values_list("id", flat=True))),
        "location_city": location.get("city", user.location_city),
        "location_country": location.get("country", user.location_country),
        "location_remote": location.get("remote", user.location_remote),
    }
    form = ProfileForm(merged, instance=user)
    if not form.is_valid():
        raise ValidationFailed.from_form(form)
    user = form.save()
    logger.info("Profile updated: user_id=%s fields=%s", user.id, sorted(data))
    return JsonResponse({"success": True, "user": private_profile(user)})


@api_view
@require_GET
def user_detail(request, user_id: int):
    user = build_store().query(User).prefetch_related("skills").filter(pk=user_id).first()
    if user is None:
        raise NotFound("User not found")
    return JsonResponse({"success": True, "user": public_profile(user)})


# -----------------------------
# Skills
# -----------------------------
@require_GET
def skill_list(request):
    store = build_store()
    if not store.query(Skill).exists():
        # First call on a fresh database seeds the catalogue.
        Skill.objects.db_manager(store.alias).bulk_create(
            [Skill(name=name, category=category) for name, category in SKILL_SEEDS],
            ignore_conflicts=True,
        )
        logger.info("Skill catalogue seeded: count=%s", len(SKILL_SEEDS))

    skills = [skill_dict(s) for s in store.query(Skill).order_by("category", "name")]
    grouped = [
        {"category": category, "skills": [s for s in skills if s["category"] == category]}
        for category in SKILL_CATEGORIES
    ]
    grouped = [g for g in grouped if g["skills"]]
    return JsonResponse({"success": True, "skills": skills, "grouped": grouped, "total": len(skills)})


# -----------------------------
# Notifications
# -----------------------------
@api_view
@login_required_json
@require_http_methods(["GET", "PATCH", "DELETE"])
def notifications(request):
    store = build_store()
    qs = store.query(Notification).for_user(request.user)

    if request.method == "PATCH":
        updated = qs.unread().update(is_read=True)
        logger.info("Notifications marked read: user_id=%s count=%s", request.user.id, updated)
        return JsonResponse({"success": True})

    if request.method == "DELETE":
        deleted, _ = qs.delete()
        logger.info("Notifications cleared: user_id=%s count=%s", request.user.id, deleted)
        return JsonResponse({"success": True})

    try:
        limit = int(request.GET.get("limit") or 20)
    except (TypeError, ValueError):
        raise ValidationFailed("limit must be an integer")
    limit = max(1, limit)
    items = [notification_dict(n) for n in qs.order_by("-created_at", "-id")[:limit]]
    return JsonResponse({"success": True, "notifications": items, "unread_count": qs.unread().count()})


@api_view
@login_required_json
@require_http_methods(["PATCH"])
def notification_mark_read(request, notification_id: int):
    store = build_store()
    notif = store.query(Notification).for_user(request.user).filter(pk=notification_id).first()
    if notif is None:
        raise NotFound("Notification not found")
    notif.is_read = True
    store.save(notif, update_fields=["is_read"])
    return JsonResponse({"success": True, "notification": notification_dict(notif)})


# -----------------------------
# Health
# -----------------------------
@require_GET
def health(request):
    alias = build_store().alias
    try:
        connections[alias].ensure_connection()
    except Exception as exc:
        logger.exception("Health check failed: alias=%s", alias)
        return JsonResponse(
            {"status": "error", "message": "Database connection failed", "error": str(exc)},
            status=500,
        )
    return JsonResponse(
        {"status": "ok", "message": "Database connected successfully", "timestamp": timezone.now().isoformat()}
    )
