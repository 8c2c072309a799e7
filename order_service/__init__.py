"""
                Food Delivery Order Service

Order lifecycle and payment-settlement backend: order state machine,
idempotent payments across interchangeable gateways, and webhook
reconciliation of provider events.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
