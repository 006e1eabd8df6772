"""
Agent services module.

Provides the external collaborators of the agent layer.

Services:
- erp_client: Customer validation, order submission and ERP lookups (mock or production)
- escalation_service: Human escalation webhook (fire-and-forget)
- fixtures: Reference customers used when the ERP is unreachable
"""

from agent.services.erp_client import ErpClient, customer_display_name, validation_from_record
from agent.services.escalation_service import (
    build_escalation_payload,
    fire_escalation_webhook,
    send_escalation_webhook,
)
from agent.services.fixtures import FIXTURE_CUSTOMERS

__all__ = [
    # ERP
    "ErpClient",
    "FIXTURE_CUSTOMERS",
    "customer_display_name",
    "validation_from_record",
    # Escalation
    "build_escalation_payload",
    "fire_escalation_webhook",
    "send_escalation_webhook",
]
