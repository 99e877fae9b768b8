from functools import wraps

from .api import api_error


def login_required_json(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return api_error("AUTHENTICATION_REQUIRED", "Authentication required.", status=401)
        return view_func(request, *args, **kwargs)
    return wrapper


def manager_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return api_error("AUTHENTICATION_REQUIRED", "Authentication required.", status=401)
        if not request.user.is_manager_user:
            return api_error("FORBIDDEN", "Access denied.", status=403)
        return view_func(request, *args, **kwargs)
    return wrapper
