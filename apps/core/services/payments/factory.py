import logging

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

GATEWAY_MAP = {
    "circle": "apps.core.services.payments.circle.CircleGateway",
    "simulated": "apps.core.services.payments.simulated.SimulatedGateway",
}


def get_gateway_class(provider):
    path = GATEWAY_MAP.get(provider)
    if not path:
        raise ValueError(f"Unknown payment network provider: {provider}")
    return import_string(path)


def get_gateway_config():
    return {
        "url": settings.PAYMENT_NETWORK_URL,
        "api_key": settings.PAYMENT_NETWORK_API_KEY,
        "chain": settings.PAYMENT_NETWORK_CHAIN,
        "timeout": settings.PAYMENT_NETWORK_TIMEOUT,
    }


def get_transfer_gateway():
    provider = settings.PAYMENT_NETWORK_PROVIDER
    if provider == "circle" and not settings.PAYMENT_NETWORK_API_KEY:
        logger.warning("PAYMENT_NETWORK_API_KEY not set; Circle requests will be rejected")
    cls = get_gateway_class(provider)
    return cls(get_gateway_config())
