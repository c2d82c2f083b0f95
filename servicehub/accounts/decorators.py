import json
import logging
from functools import wraps

from django.http import JsonResponse

from servicehub.errors import Forbidden, MarketplaceError, Unauthenticated, ValidationFailed

from .models import User

logger = logging.getLogger(__name__)


def api_view(view_func):
    """Render ``MarketplaceError`` raised by a JSON view as an error response."""
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except MarketplaceError as exc:
            if exc.status_code >= 403:
                logger.info(
                    "Request refused: %s %s status=%s error=%s",
                    request.method,
                    request.path,
                    exc.status_code,
                    exc.message,
                )
            return JsonResponse({"success": False, "error": exc.message}, status=exc.status_code)
    return _wrapped


def current_identity(request):
    """Return the authenticated user of ``request`` or raise ``Unauthenticated``."""
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        raise Unauthenticated()
    return user


def login_required_json(view_func):
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        current_identity(request)
        return view_func(request, *args, **kwargs)
    return _wrapped


def role_required(role: str):
    """Ensure logged-in user has the given role."""
    def decorator(view_func):
        @login_required_json
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            if getattr(request.user, "role", None) != role:
                raise Forbidden()
            return view_func(request, *args, **kwargs)
        return _wrapped
    return decorator


seeker_required = role_required(User.Role.SEEKER)


def parse_json_body(request) -> dict:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (TypeError, ValueError):
        raise ValidationFailed("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ValidationFailed("Request body must be a JSON object")
    return data
