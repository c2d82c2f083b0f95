import logging

from django.db.models import Count, Q
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods

from accounts.decorators import api_view, current_identity, login_required_json, parse_json_body, seeker_required
from accounts.notifications import NotificationSink
from servicehub.persistence import build_store

from .models import Application, ApplicationStatus, Post, PostStatus
from .services import ApplicationManager, PostManager
from .utils import applicant_dict, application_dict, own_application_dict, post_dict

logger = logging.getLogger(__name__)


def _safe_int(v):
    try:
        if v is None or v == "":
            return None
        return int(v)
    except (TypeError, ValueError):
        return None


def _id_list(v: str | None) -> list[int]:
    """Comma separated ids from a query string; junk entries are dropped."""
    ids = [_safe_int(part.strip()) for part in (v or "").split(",")]
    return [i for i in ids if i is not None]


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "on"}


def _post_manager():
    store = build_store()
    return PostManager(store, NotificationSink(store))


def _application_manager():
    store = build_store()
    return ApplicationManager(store, NotificationSink(store))


# -----------------------------
# Posts
# -----------------------------
@api_view
@require_http_methods(["GET", "POST"])
def posts(request):
    manager = _post_manager()
    if request.method == "POST":
        actor = current_identity(request)
        post = manager.create(actor, parse_json_body(request))
        return JsonResponse({"success": True, "post": post_dict(post, milestones=True)}, status=201)

    items, pagination = manager.browse(
        q=(request.GET.get("search") or request.GET.get("q") or "").strip() or None,
        category=request.GET.get("category") or None,
        skills=_id_list(request.GET.get("skills")),
        city=(request.GET.get("city") or "").strip() or None,
        country=(request.GET.get("country") or "").strip() or None,
        remote=_truthy(request.GET.get("remote")),
        page=_safe_int(request.GET.get("page")) or 1,
        limit=_safe_int(request.GET.get("limit")),
    )
    return JsonResponse({"success": True, "posts": [post_dict(p) for p in items], "pagination": pagination})


@api_view
@seeker_required
@require_GET
def my_posts(request):
    items = _post_manager().list_own(request.user)
    return JsonResponse({"success": True, "posts": [post_dict(p, owner=False) for p in items]})


@api_view
@require_http_methods(["GET", "PATCH", "DELETE"])
def post_detail(request, post_id: int):
    manager = _post_manager()
    if request.method == "GET":
        post = manager.get(post_id)
        return JsonResponse({"success": True, "post": post_dict(post, milestones=True)})

    actor = current_identity(request)
    if request.method == "DELETE":
        manager.delete(actor, post_id)
        return JsonResponse({"success": True})

    manager.update(actor, post_id, parse_json_body(request))
    post = manager.get(post_id)
    return JsonResponse({"success": True, "post": post_dict(post, milestones=True)})


@api_view
@seeker_required
@require_GET
def post_applications(request, post_id: int):
    items = _application_manager().list_for_post(request.user, post_id)
    return JsonResponse({"success": True, "applications": [applicant_dict(a) for a in items]})


# -----------------------------
# Applications
# -----------------------------
@api_view
@login_required_json
@require_http_methods(["GET", "POST"])
def applications(request):
    manager = _application_manager()
    if request.method == "POST":
        application = manager.create(request.user, parse_json_body(request))
        return JsonResponse({"success": True, "application": application_dict(application)}, status=201)

    items = manager.list_own(request.user)
    return JsonResponse({"success": True, "applications": [own_application_dict(a) for a in items]})


@api_view
@login_required_json
@require_http_methods(["PATCH", "DELETE"])
def application_detail(request, application_id: int):
    manager = _application_manager()
    if request.method == "DELETE":
        manager.withdraw(request.user, application_id)
        return JsonResponse({"success": True})

    application = manager.update_status(request.user, application_id, parse_json_body(request))
    return JsonResponse(
        {
            "success": True,
            "application": application_dict(application),
            "post_status": application.post.status,
        }
    )


# -----------------------------
# Dashboard
# -----------------------------
@api_view
@login_required_json
@require_GET
def dashboard(request):
    """Counts for the signed-in user, shaped by role."""
    user = request.user
    store = build_store()
    if user.is_seeker:
        post_stats = store.query(Post).for_owner(user).aggregate(
            total=Count("id"),
            open=Count("id", filter=Q(status=PostStatus.OPEN)),
        )
        app_stats = store.query(Application).filter(post__owner=user).aggregate(
            total=Count("id"),
            pending=Count("id", filter=Q(status=ApplicationStatus.PENDING)),
        )
        data = {
            "role": user.role,
            "posts_count": post_stats["total"],
            "open_posts_count": post_stats["open"],
            "applications_received": app_stats["total"],
            "pending_applications": app_stats["pending"],
        }
    else:
        apps_qs = store.query(Application).for_provider(user)
        data = {
            "role": user.role,
            "applications_count": apps_qs.count(),
            "pending_count": apps_qs.pending().count(),
            "accepted_count": apps_qs.filter(status=ApplicationStatus.ACCEPTED).count(),
            "rejected_count": apps_qs.filter(status=ApplicationStatus.REJECTED).count(),
            "average_rating": float(user.average_rating),
            "review_count": user.review_count,
        }
    return JsonResponse({"success": True, "dashboard": data})
