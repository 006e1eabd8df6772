"""
FSM module for deterministic order capture.

The order flow runs without the LLM: a rule-based classifier labels each
message and the OrderFSM walks product -> document -> quantity -> confirmation,
calling the OrderBackend only to validate the customer and submit the order.

Public exports:
    - OrderFSM: Order state machine
    - OrderBackend: Protocol for customer validation / order submission
    - OrderSession / OrderState: Immutable order progress and its states
    - IntentType: Enum of recognized intent labels
    - classify / extract_quantity: Rule-based intent classification helpers
    - apply_template / build_order_flow_messages: Reply templates
"""

from agent.fsm.intent_classifier import (
    INTENT_RULES,
    IntentRule,
    classify,
    extract_quantity,
    mentions_transfer,
)
from agent.fsm.models import (
    ORDER_START_INTENTS,
    CustomerStatus,
    CustomerValidation,
    FlowResult,
    IntentType,
    OrderLine,
    OrderReceipt,
    OrderRequest,
    OrderSession,
    OrderState,
    OrderSubmissionError,
    ProductSnapshot,
)
from agent.fsm.order_fsm import OrderBackend, OrderFSM, settle
from agent.fsm.order_messages import (
    DEFAULT_ORDER_FLOW_MESSAGES,
    apply_template,
    build_order_flow_messages,
)

__all__ = [
    # Intent classification
    "INTENT_RULES",
    "IntentRule",
    "IntentType",
    "ORDER_START_INTENTS",
    "classify",
    "extract_quantity",
    "mentions_transfer",
    # Order flow
    "CustomerStatus",
    "CustomerValidation",
    "FlowResult",
    "OrderBackend",
    "OrderFSM",
    "OrderLine",
    "OrderReceipt",
    "OrderRequest",
    "OrderSession",
    "OrderState",
    "OrderSubmissionError",
    "ProductSnapshot",
    "settle",
    # Templates
    "DEFAULT_ORDER_FLOW_MESSAGES",
    "apply_template",
    "build_order_flow_messages",
]
