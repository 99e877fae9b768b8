"""
Health check endpoints for container orchestration.
"""

import logging

from django.conf import settings
from django.db import connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def health_check(request):
    """
    Full health report: database, optional Redis, payment network.

    Returns 200 with {"status": "healthy"} or 503 when a critical check fails.
    The payment network is reported but never makes the service unhealthy,
    since transfers already tolerate provider outages.

    Usage:
        curl http://localhost:8000/health/
    """
    health_data = {
        "status": "healthy",
        "checks": {},
    }
    status_code = 200

    try:
        _check_database()
        health_data["checks"]["database"] = "connected"
    except Exception as e:
        health_data["status"] = "unhealthy"
        health_data["checks"]["database"] = f"error: {e}"
        status_code = 503

    redis_url = getattr(settings, "REDIS_URL", None)
    if redis_url:
        try:
            import redis

            redis.from_url(redis_url).ping()
            health_data["checks"]["redis"] = "connected"
        except Exception as e:
            health_data["status"] = "unhealthy"
            health_data["checks"]["redis"] = f"error: {e}"
            status_code = 503

    from apps.core.services.payments.factory import get_transfer_gateway

    try:
        ok, message = get_transfer_gateway().test_connection()
        health_data["checks"]["payment_network"] = message if ok else f"degraded: {message}"
    except Exception as e:
        logger.exception("Payment network health check failed")
        health_data["checks"]["payment_network"] = f"error: {e}"

    return JsonResponse(health_data, status=status_code)


def liveness_check(request):
    """Liveness probe: the process is up."""
    return JsonResponse({"status": "alive"})


def readiness_check(request):
    """Readiness probe: the database accepts queries."""
    try:
        _check_database()
        return JsonResponse({"status": "ready"})
    except Exception as e:
        return JsonResponse({"status": "not_ready", "error": str(e)}, status=503)
