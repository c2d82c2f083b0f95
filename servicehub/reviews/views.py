import logging

from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods

from accounts.decorators import api_view, current_identity, login_required_json, parse_json_body, seeker_required
from accounts.models import User
from accounts.notifications import NotificationSink
from servicehub.errors import NotFound, ValidationFailed
from servicehub.persistence import build_store

from .services import RatingAggregator, ReviewManager
from .utils import own_review_dict, provider_review_dict, review_dict

logger = logging.getLogger(__name__)


def _manager():
    store = build_store()
    return ReviewManager(store, NotificationSink(store), RatingAggregator(store))


@api_view
@require_http_methods(["GET", "POST"])
def reviews(request):
    if request.method == "POST":
        actor = current_identity(request)
        review = _manager().create(actor, parse_json_body(request))
        return JsonResponse({"success": True, "review": review_dict(review)}, status=201)

    provider_id = request.GET.get("provider")
    if not provider_id:
        raise ValidationFailed("provider is required", field="provider")
    try:
        provider_id = int(provider_id)
    except (TypeError, ValueError):
        raise ValidationFailed("provider must be an integer", field="provider")

    manager = _manager()
    provider = manager.store.get(User, provider_id)
    if provider is None:
        raise NotFound("User not found")
    items = [provider_review_dict(r) for r in manager.list_for_provider(provider_id)]
    return JsonResponse(
        {
            "success": True,
            "reviews": items,
            "average_rating": float(provider.average_rating),
            "review_count": provider.review_count,
        }
    )


@api_view
@seeker_required
@require_GET
def my_reviews(request):
    items = [own_review_dict(r) for r in _manager().list_own(request.user)]
    return JsonResponse({"success": True, "reviews": items})


@api_view
@login_required_json
@require_http_methods(["DELETE"])
def review_detail(request, review_id: int):
    _manager().delete(request.user, review_id)
    return JsonResponse({"success": True})
