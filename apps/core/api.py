"""
JSON envelope shared by every API endpoint.

Success: {"success": true, "data": ...}
Failure: {"success": false, "error": {"code": ..., "message": ...}}
"""

import json
import logging
from functools import wraps

from django.http import JsonResponse

from .exceptions import RentFlowError, ValidationError

logger = logging.getLogger(__name__)


def api_success(data=None, status=200):
    return JsonResponse({"success": True, "data": data}, status=status)


def api_error(code, message, status=400, details=None):
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JsonResponse({"success": False, "error": error}, status=status)


def parse_json_body(request):
    """Decode a JSON object body. Empty bodies decode to {}."""
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body.")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object.")
    return data


def form_error_message(form):
    """Flatten Django form errors into one readable line."""
    parts = []
    for field, errors in form.errors.items():
        label = "request" if field == "__all__" else field
        parts.append(f"{label}: {' '.join(errors)}")
    return "; ".join(parts)


def api_view(view_func):
    """Translate errors raised by a view into the JSON error envelope."""

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except RentFlowError as e:
            if e.http_status >= 500:
                logger.error("%s %s failed: %s", request.method, request.path, e.message)
            return JsonResponse({"success": False, "error": e.to_dict()}, status=e.http_status)
        except Exception:
            logger.exception("%s %s raised an unhandled error", request.method, request.path)
            return api_error("INTERNAL_ERROR", "Internal server error.", status=500)

    return wrapper
