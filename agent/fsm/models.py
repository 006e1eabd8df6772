"""
Data models for the intent classifier and the order flow.

This module defines the core data structures used by the OrderFSM:
- IntentType: Enum of recognized intent labels
- OrderState: States of the order flow
- ProductSnapshot: Product data captured from a stock lookup
- OrderSession: Immutable order progress embedded in a conversation session
- FlowResult: Result of one order-flow transition
- CustomerValidation / OrderRequest / OrderReceipt: collaborator contracts
"""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class IntentType(str, Enum):
    """Coarse intent labels, produced by the rule-based classifier."""

    PROVIDE_DOCUMENT = "provide_document"
    PROVIDE_QUANTITY = "provide_quantity"
    START_ORDER_WITH_QUANTITY = "start_order_with_quantity"
    CONFIRM = "confirm"
    DENY = "deny"
    HUMAN_AGENT = "human_agent"
    START_ORDER = "start_order"
    FINANCIAL = "financial"
    ORDER_STATUS = "order_status"
    STOCK_QUERY = "stock_query"
    GREETING = "greeting"
    UNKNOWN = "unknown"


ORDER_START_INTENTS = frozenset({IntentType.START_ORDER, IntentType.START_ORDER_WITH_QUANTITY})


class OrderState(str, Enum):
    """States of the order flow FSM."""

    IDLE = "idle"  # No order in progress
    AWAITING_CPF = "awaiting_cpf"  # Waiting for CPF/CNPJ
    AWAITING_QUANTITY = "awaiting_quantity"  # Customer validated, waiting for quantity
    AWAITING_CONFIRMATION = "awaiting_confirmation"  # Summary shown, waiting for yes/no
    COMPLETED = "completed"  # Terminal, replaced by a fresh IDLE session on the same turn


class ProductSnapshot(BaseModel):
    """
    Product captured from the last stock lookup.

    Accepts the stock tool's Portuguese keys (nome, estoque_disponivel,
    preco_unitario/preco_tabela, preco_promocional) or the field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(validation_alias=AliasChoices("name", "nome"))
    sku: str = ""
    available: int = Field(
        default=0, validation_alias=AliasChoices("available", "estoque_disponivel")
    )
    unit_price: float = Field(
        default=0.0,
        validation_alias=AliasChoices("unit_price", "preco_unitario", "preco_tabela"),
    )
    promo_price: float | None = Field(
        default=None, validation_alias=AliasChoices("promo_price", "preco_promocional")
    )

    @property
    def effective_price(self) -> float:
        """Promotional price when present, list price otherwise."""
        return self.promo_price or self.unit_price


class OrderSession(BaseModel):
    """
    Progress of one in-flight purchase.

    Invariants:
        - quantity is only set when product is set
        - customer_name is only set after a successful validation
    Never mutated: transitions return a new instance via model_copy().
    """

    model_config = ConfigDict(frozen=True)

    state: OrderState = OrderState.IDLE
    product: ProductSnapshot | None = None
    document: str | None = None
    quantity: int | None = None
    customer_name: str | None = None


@dataclass(frozen=True)
class FlowResult:
    """Reply text plus the next order session."""

    reply: str
    session: OrderSession


# =============================================================================
# Collaborator contracts (customer validation / order submission)
# =============================================================================


class CustomerStatus(str, Enum):
    VALID = "valid"
    BLOCKED = "blocked"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class CustomerValidation:
    """Three-way result of a customer lookup."""

    status: CustomerStatus
    name: str | None = None
    reason: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.status is CustomerStatus.VALID


@dataclass(frozen=True)
class OrderLine:
    sku: str
    name: str
    quantity: int
    unit_price: float


@dataclass(frozen=True)
class OrderRequest:
    document: str
    customer_name: str | None
    items: list[OrderLine] = field(default_factory=list)


@dataclass(frozen=True)
class OrderReceipt:
    order_id: str = "—"
    message: str = "Obrigada pela preferência!"


class OrderSubmissionError(Exception):
    """Order backend rejected or could not receive the order."""
