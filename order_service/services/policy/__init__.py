"""
Policy Client Factory

Usage:
    from order_service.services.policy import get_policy_client

    policy = get_policy_client()
    decision = await policy.authorize("cancel_order", resource, subject)

OPA_URL set   → OPAPolicyClient
OPA_URL empty → AllowAllPolicyClient
"""

import logging
from functools import lru_cache

from order_service.core.config import Settings, get_settings
from order_service.services.policy.base import (
    AllowAllPolicyClient,
    AuthorizationResult,
    BasePolicyClient,
)
from order_service.services.policy.opa import OPAPolicyClient

logger = logging.getLogger(__name__)


def build_policy_client(settings: Settings) -> BasePolicyClient:
    if not settings.opa_url:
        logger.info("Policy Client: no OPA_URL, every action is allowed")
        return AllowAllPolicyClient()
    return OPAPolicyClient(
        base_url=settings.opa_url,
        policy_path=settings.opa_policy_path,
        timeout=settings.opa_timeout_seconds,
        fail_open=settings.opa_fail_open,
    )


@lru_cache()
def get_policy_client() -> BasePolicyClient:
    """Get the configured policy client (cached)."""
    return build_policy_client(get_settings())


def reset_policy_client() -> None:
    get_policy_client.cache_clear()


__all__ = [
    "build_policy_client",
    "get_policy_client",
    "reset_policy_client",
    "AllowAllPolicyClient",
    "AuthorizationResult",
    "BasePolicyClient",
    "OPAPolicyClient",
]
