"""
OrderFSM - deterministic order capture without the LLM.

States:
    IDLE -> AWAITING_CPF -> AWAITING_QUANTITY -> AWAITING_CONFIRMATION -> COMPLETED

The FSM never mutates the session it receives: every transition returns a
new OrderSession inside a FlowResult. COMPLETED is terminal and is replaced
by a fresh IDLE session by the conversation orchestrator on the same turn.

Customer validation and order submission are reached through the
OrderBackend protocol (implemented by agent.services.erp_client.ErpClient).
"""

import logging
import re
from collections.abc import Mapping
from typing import Protocol

from agent.fsm.intent_classifier import extract_quantity
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
    ProductSnapshot,
)
from agent.fsm.order_messages import apply_template, build_order_flow_messages
from agent.utils.document import extract_document, mask_document
from agent.utils.money import format_amount

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


class OrderBackend(Protocol):
    """Collaborators the order flow depends on."""

    async def validate_customer(self, document: str) -> CustomerValidation: ...

    async def submit_order(self, request: OrderRequest) -> OrderReceipt: ...


class OrderFSM:
    """
    Order flow state machine.

    Args:
        backend: Customer validation / order submission collaborator
        messages: Tenant overrides for the reply templates
    """

    def __init__(self, backend: OrderBackend, messages: Mapping[str, str] | None = None):
        self.backend = backend
        self.messages = build_order_flow_messages(messages)

    async def process(
        self, message: str, session: OrderSession, intent: IntentType
    ) -> FlowResult:
        """
        Run one transition.

        Args:
            message: Raw user message
            session: Current order session (not modified)
            intent: Classified intent of the message

        Returns:
            FlowResult with the reply and the next session
        """
        logger.info(
            f"Order flow | state={session.state.value} | intent={intent.value} | "
            f"message={message[:30]!r}"
        )

        if session.state == OrderState.IDLE or intent in ORDER_START_INTENTS:
            return self._start(message, session, intent)

        if session.product is None:
            # Non-idle session without a product cannot continue
            logger.warning(f"Order session without product | state={session.state.value}")
            return FlowResult(self.messages["askProduct"], OrderSession())

        if session.state == OrderState.AWAITING_CPF:
            return await self._handle_document(message, session)

        if session.state == OrderState.AWAITING_QUANTITY:
            return self._handle_quantity(message, session)

        if session.state == OrderState.AWAITING_CONFIRMATION:
            return await self._handle_confirmation(session, intent)

        logger.warning(f"Order flow received terminal state | state={session.state.value}")
        return FlowResult(self.messages["askProduct"], OrderSession())

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _start(self, message: str, session: OrderSession, intent: IntentType) -> FlowResult:
        product = session.product
        if product is None:
            return FlowResult(
                self.messages["askProduct"],
                session.model_copy(update={"state": OrderState.IDLE}),
            )

        if intent == IntentType.START_ORDER_WITH_QUANTITY:
            qty = extract_quantity(message)
            if qty is not None:
                if product.available <= 0:
                    return self._out_of_stock(product)
                if qty > product.available:
                    return self._clamp_to_stock(session, product)

                total = format_amount(product.effective_price * qty)
                logger.info(
                    f"Order started with quantity | sku={product.sku} | quantity={qty} | total={total}"
                )
                return FlowResult(
                    apply_template(
                        self.messages["askDocumentWithQuantity"],
                        qty=qty,
                        productName=product.name,
                        total=total,
                    ),
                    session.model_copy(
                        update={"state": OrderState.AWAITING_CPF, "quantity": qty}
                    ),
                )

        logger.info(f"Order started | sku={product.sku}")
        return FlowResult(
            apply_template(self.messages["askDocument"], productName=product.name),
            session.model_copy(update={"state": OrderState.AWAITING_CPF}),
        )

    async def _handle_document(self, message: str, session: OrderSession) -> FlowResult:
        document = extract_document(message)
        if document is None:
            return FlowResult(self.messages["invalidDocument"], session)

        logger.info(f"Validating customer | document={mask_document(document)}")
        try:
            validation = await self.backend.validate_customer(document)
        except Exception as e:
            logger.error(
                f"Customer validation failed | document={mask_document(document)} | error={e}",
                exc_info=True,
            )
            return FlowResult(self.messages["validationUnavailable"], session)

        if validation.status == CustomerStatus.BLOCKED:
            logger.info(
                f"Customer blocked | document={mask_document(document)} | reason={validation.reason}"
            )
            return FlowResult(
                apply_template(
                    self.messages["customerBlocked"],
                    name=validation.name or "Cliente",
                    reason=validation.reason or "não informado",
                ),
                OrderSession(),
            )

        if not validation.is_valid:
            return FlowResult(self.messages["customerNotFound"], session)

        product = session.product
        validated = session.model_copy(
            update={"document": document, "customer_name": validation.name}
        )

        if session.quantity:
            return FlowResult(
                apply_template(
                    self.messages["confirmOrder"],
                    productName=product.name,
                    quantity=session.quantity,
                    total=format_amount(product.effective_price * session.quantity),
                    customerName=validation.name or "",
                ),
                validated.model_copy(update={"state": OrderState.AWAITING_CONFIRMATION}),
            )

        return FlowResult(
            apply_template(
                self.messages["askQuantity"],
                productName=product.name,
                preco=format_amount(product.effective_price),
                available=product.available,
                customerName=validation.name or "",
            ),
            validated.model_copy(update={"state": OrderState.AWAITING_QUANTITY}),
        )

    def _handle_quantity(self, message: str, session: OrderSession) -> FlowResult:
        digits = _NON_DIGITS.sub("", message)
        qty = int(digits) if digits else 0
        if qty <= 0:
            return FlowResult(self.messages["invalidQuantity"], session)

        product = session.product
        if product.available <= 0:
            return self._out_of_stock(product)
        if qty > product.available:
            return self._clamp_to_stock(session, product)

        return FlowResult(
            apply_template(
                self.messages["confirmOrderQuantity"],
                productName=product.name,
                quantity=qty,
                total=format_amount(product.effective_price * qty),
                customerName=session.customer_name or "",
            ),
            session.model_copy(
                update={"state": OrderState.AWAITING_CONFIRMATION, "quantity": qty}
            ),
        )

    async def _handle_confirmation(self, session: OrderSession, intent: IntentType) -> FlowResult:
        if intent == IntentType.DENY:
            logger.info(f"Order cancelled by customer | sku={session.product.sku}")
            return FlowResult(self.messages["orderCancelled"], OrderSession())

        if intent != IntentType.CONFIRM:
            return FlowResult(self.messages["confirmYesNo"], session)

        product = session.product
        quantity = session.quantity or 0
        completed = session.model_copy(update={"state": OrderState.COMPLETED})

        if not session.document:
            logger.warning(
                f"Order confirmed without validated document, forwarding to team | "
                f"sku={product.sku} | quantity={quantity}"
            )
            return FlowResult(self._fallback_ack(product, quantity), completed)

        request = OrderRequest(
            document=session.document,
            customer_name=session.customer_name,
            items=[
                OrderLine(
                    sku=product.sku,
                    name=product.name,
                    quantity=quantity,
                    unit_price=product.effective_price,
                )
            ],
        )
        try:
            receipt = await self.backend.submit_order(request)
        except Exception as e:
            logger.error(
                f"Order submission failed | document={mask_document(session.document)} | "
                f"sku={product.sku} | quantity={quantity} | error={e}",
                exc_info=True,
            )
            return FlowResult(self._fallback_ack(product, quantity), completed)

        logger.info(
            f"Order submitted | order_id={receipt.order_id} | sku={product.sku} | quantity={quantity}"
        )
        return FlowResult(
            apply_template(
                self.messages["orderSuccess"],
                quantity=quantity,
                productName=product.name,
                pedido_id=receipt.order_id,
                mensagem=receipt.message,
            ),
            completed,
        )

    # ------------------------------------------------------------------

    def _clamp_to_stock(self, session: OrderSession, product: ProductSnapshot) -> FlowResult:
        logger.info(
            f"Requested quantity exceeds stock, clamping | sku={product.sku} | "
            f"available={product.available}"
        )
        return FlowResult(
            apply_template(
                self.messages["onlyNUnitsAvailable"],
                available=product.available,
                productName=product.name,
            ),
            session.model_copy(
                update={
                    "state": OrderState.AWAITING_CONFIRMATION,
                    "quantity": product.available,
                }
            ),
        )

    def _out_of_stock(self, product: ProductSnapshot) -> FlowResult:
        logger.info(f"Product out of stock | sku={product.sku}")
        return FlowResult(
            apply_template(self.messages["outOfStock"], productName=product.name),
            OrderSession(),
        )

    def _fallback_ack(self, product: ProductSnapshot, quantity: int) -> str:
        return apply_template(
            self.messages["orderErrorFallback"],
            quantity=quantity,
            productName=product.name,
        )


def settle(session: OrderSession) -> OrderSession:
    """Replace a COMPLETED session with a fresh IDLE one."""
    if session.state == OrderState.COMPLETED:
        return OrderSession()
    return session
