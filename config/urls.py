from django.conf import settings
from django.contrib import admin
from django.urls import include, path

from apps.core.views import health_check, liveness_check, readiness_check

urlpatterns = [
    # Health check endpoints for container orchestration
    path("health/", health_check, name="health_check"),
    path("live/", liveness_check, name="liveness_check"),
    path("ready/", readiness_check, name="readiness_check"),
    # Django admin
    path("django-admin/", admin.site.urls),
    # JSON API
    path("api/", include("apps.leases.urls_api")),
    path("api/", include("apps.billing.urls_api")),
]

if settings.DEBUG:
    # Django Debug Toolbar
    try:
        import debug_toolbar

        urlpatterns = [
            path("__debug__/", include(debug_toolbar.urls)),
        ] + urlpatterns
    except ImportError:
        pass
