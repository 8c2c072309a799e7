"""
Core module initialization.
Exports configuration, logging and error utilities.
"""

from order_service.core.config import get_settings, Settings, EnvironmentMode
from order_service.core.exceptions import OrderServiceError

__all__ = ["get_settings", "Settings", "EnvironmentMode", "OrderServiceError"]
