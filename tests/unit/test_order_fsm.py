"""
Unit tests for OrderFSM.

Tests coverage:
- Order start with and without quantity (stock clamping, out of stock)
- Customer validation outcomes (valid, blocked, not found, backend failure)
- Quantity and confirmation handling
- Order submission success and fallback acknowledgement
- settle() and immutability of the input session
"""

from unittest.mock import AsyncMock

import pytest

from agent.fsm.models import (
    CustomerStatus,
    CustomerValidation,
    IntentType,
    OrderReceipt,
    OrderSession,
    OrderState,
    OrderSubmissionError,
    ProductSnapshot,
)
from agent.fsm.order_fsm import OrderFSM, settle
from agent.fsm.order_messages import DEFAULT_ORDER_FLOW_MESSAGES

CIMENTO = ProductSnapshot(
    name="Cimento CP II 50kg", sku="PROD-001", available=80, unit_price=34.9, promo_price=31.0
)
ARGAMASSA = ProductSnapshot(name="Argamassa AC-I 20kg", sku="PROD-002", available=0, unit_price=18.5)


@pytest.fixture
def backend():
    mock = AsyncMock()
    mock.validate_customer.return_value = CustomerValidation(
        CustomerStatus.VALID, name="Construtora Alfa"
    )
    mock.submit_order.return_value = OrderReceipt(order_id="PED-77", message="Entrega amanhã.")
    return mock


@pytest.fixture
def fsm(backend):
    return OrderFSM(backend)


def awaiting(state: OrderState, **fields) -> OrderSession:
    return OrderSession(state=state, product=CIMENTO, **fields)


# ============================================================================
# Start
# ============================================================================


class TestOrderStart:
    @pytest.mark.asyncio
    async def test_without_product_asks_product(self, fsm):
        """Test starting an order with no product looked up."""
        result = await fsm.process("quero fazer um pedido", OrderSession(), IntentType.START_ORDER)

        assert result.reply == DEFAULT_ORDER_FLOW_MESSAGES["askProduct"]
        assert result.session.state == OrderState.IDLE

    @pytest.mark.asyncio
    async def test_with_product_asks_document(self, fsm):
        """Test starting an order moves to AWAITING_CPF."""
        result = await fsm.process(
            "quero fazer um pedido", OrderSession(product=CIMENTO), IntentType.START_ORDER
        )

        assert result.session.state == OrderState.AWAITING_CPF
        assert "Cimento CP II 50kg" in result.reply
        assert "CPF ou CNPJ" in result.reply
        assert result.session.quantity is None

    @pytest.mark.asyncio
    async def test_with_quantity_shows_promotional_total(self, fsm):
        """Test quantity order uses the promotional price for the total."""
        result = await fsm.process(
            "sim quero 2 unidades do produto",
            OrderSession(product=CIMENTO),
            IntentType.START_ORDER_WITH_QUANTITY,
        )

        assert result.session.state == OrderState.AWAITING_CPF
        assert result.session.quantity == 2
        assert "2 unidades" in result.reply
        assert "62,00" in result.reply

    @pytest.mark.asyncio
    async def test_quantity_above_stock_is_clamped(self, fsm):
        """Test a quantity above stock offers the available units."""
        result = await fsm.process(
            "quero 100 unidades", OrderSession(product=CIMENTO), IntentType.START_ORDER_WITH_QUANTITY
        )

        assert result.session.state == OrderState.AWAITING_CONFIRMATION
        assert result.session.quantity == 80
        assert "80 unidades" in result.reply

    @pytest.mark.asyncio
    async def test_out_of_stock_resets(self, fsm):
        """Test a product without stock ends the order."""
        result = await fsm.process(
            "quero 3 unidades", OrderSession(product=ARGAMASSA), IntentType.START_ORDER_WITH_QUANTITY
        )

        assert result.session == OrderSession()
        assert "sem estoque" in result.reply

    @pytest.mark.asyncio
    async def test_start_intent_restarts_in_progress_order(self, fsm):
        """Test an order-start intent restarts from any state."""
        session = awaiting(OrderState.AWAITING_QUANTITY, document="12345678000190")

        result = await fsm.process("quero 5 unidades", session, IntentType.START_ORDER_WITH_QUANTITY)

        assert result.session.state == OrderState.AWAITING_CPF
        assert result.session.quantity == 5


# ============================================================================
# Document
# ============================================================================


class TestDocumentStep:
    @pytest.mark.asyncio
    async def test_invalid_document_keeps_session(self, fsm, backend):
        """Test text without 11/14 digits asks again without calling the backend."""
        session = awaiting(OrderState.AWAITING_CPF)

        result = await fsm.process("não sei meu cnpj", session, IntentType.UNKNOWN)

        assert result.reply == DEFAULT_ORDER_FLOW_MESSAGES["invalidDocument"]
        assert result.session == session
        backend.validate_customer.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_customer_asks_quantity(self, fsm, backend):
        """Test a validated customer without quantity moves to AWAITING_QUANTITY."""
        result = await fsm.process(
            "12.345.678/0001-90", awaiting(OrderState.AWAITING_CPF), IntentType.PROVIDE_DOCUMENT
        )

        backend.validate_customer.assert_awaited_once_with("12345678000190")
        assert result.session.state == OrderState.AWAITING_QUANTITY
        assert result.session.document == "12345678000190"
        assert result.session.customer_name == "Construtora Alfa"
        assert "R$ 31,00" in result.reply
        assert "80 unidades" in result.reply

    @pytest.mark.asyncio
    async def test_valid_customer_with_quantity_shows_summary(self, fsm):
        """Test a validated customer with quantity goes straight to confirmation."""
        result = await fsm.process(
            "12345678000190",
            awaiting(OrderState.AWAITING_CPF, quantity=2),
            IntentType.PROVIDE_DOCUMENT,
        )

        assert result.session.state == OrderState.AWAITING_CONFIRMATION
        assert "62,00" in result.reply
        assert "Construtora Alfa" in result.reply

    @pytest.mark.asyncio
    async def test_blocked_customer_resets(self, fsm, backend):
        """Test a blocked customer ends the order with the reason."""
        backend.validate_customer.return_value = CustomerValidation(
            CustomerStatus.BLOCKED, name="Obras Beta", reason="Títulos em atraso"
        )

        result = await fsm.process(
            "98765432000100", awaiting(OrderState.AWAITING_CPF), IntentType.PROVIDE_DOCUMENT
        )

        assert result.session == OrderSession()
        assert "Obras Beta" in result.reply
        assert "Títulos em atraso" in result.reply

    @pytest.mark.asyncio
    async def test_blocked_without_reason(self, fsm, backend):
        """Test a blocked customer without reason shows 'não informado'."""
        backend.validate_customer.return_value = CustomerValidation(CustomerStatus.BLOCKED)

        result = await fsm.process(
            "98765432000100", awaiting(OrderState.AWAITING_CPF), IntentType.PROVIDE_DOCUMENT
        )

        assert "não informado" in result.reply
        assert "**Cliente**" in result.reply

    @pytest.mark.asyncio
    async def test_customer_not_found_keeps_session(self, fsm, backend):
        """Test an unknown customer can retry with another document."""
        backend.validate_customer.return_value = CustomerValidation(CustomerStatus.NOT_FOUND)
        session = awaiting(OrderState.AWAITING_CPF)

        result = await fsm.process("11122233344", session, IntentType.PROVIDE_DOCUMENT)

        assert result.reply == DEFAULT_ORDER_FLOW_MESSAGES["customerNotFound"]
        assert result.session == session

    @pytest.mark.asyncio
    async def test_validation_failure_keeps_session(self, fsm, backend):
        """Test a backend failure asks to resend the document later."""
        backend.validate_customer.side_effect = RuntimeError("ERP fora do ar")
        session = awaiting(OrderState.AWAITING_CPF)

        result = await fsm.process("12345678000190", session, IntentType.PROVIDE_DOCUMENT)

        assert result.reply == DEFAULT_ORDER_FLOW_MESSAGES["validationUnavailable"]
        assert result.session == session


# ============================================================================
# Quantity
# ============================================================================


class TestQuantityStep:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["muitos", "0"])
    async def test_invalid_quantity(self, fsm, text):
        """Test non-positive quantities are rejected."""
        session = awaiting(OrderState.AWAITING_QUANTITY, document="12345678000190")

        result = await fsm.process(text, session, IntentType.UNKNOWN)

        assert result.reply == DEFAULT_ORDER_FLOW_MESSAGES["invalidQuantity"]
        assert result.session == session

    @pytest.mark.asyncio
    async def test_quantity_shows_summary(self, fsm):
        """Test a valid quantity moves to AWAITING_CONFIRMATION."""
        session = awaiting(
            OrderState.AWAITING_QUANTITY, document="12345678000190", customer_name="Construtora Alfa"
        )

        result = await fsm.process("10", session, IntentType.PROVIDE_QUANTITY)

        assert result.session.state == OrderState.AWAITING_CONFIRMATION
        assert result.session.quantity == 10
        assert "310,00" in result.reply
        assert "Construtora Alfa" in result.reply

    @pytest.mark.asyncio
    async def test_quantity_above_stock_is_clamped(self, fsm):
        """Test a quantity above stock is clamped to the available units."""
        session = awaiting(OrderState.AWAITING_QUANTITY, document="12345678000190")

        result = await fsm.process("500", session, IntentType.PROVIDE_QUANTITY)

        assert result.session.quantity == 80
        assert result.session.state == OrderState.AWAITING_CONFIRMATION


# ============================================================================
# Confirmation
# ============================================================================


class TestConfirmationStep:
    @pytest.mark.asyncio
    async def test_deny_cancels(self, fsm, backend):
        """Test 'não' cancels the order."""
        session = awaiting(OrderState.AWAITING_CONFIRMATION, document="12345678000190", quantity=2)

        result = await fsm.process("não", session, IntentType.DENY)

        assert result.reply == DEFAULT_ORDER_FLOW_MESSAGES["orderCancelled"]
        assert result.session == OrderSession()
        backend.submit_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_answer_asks_yes_no(self, fsm):
        """Test anything but yes/no repeats the question."""
        session = awaiting(OrderState.AWAITING_CONFIRMATION, document="12345678000190", quantity=2)

        result = await fsm.process("talvez", session, IntentType.UNKNOWN)

        assert result.reply == DEFAULT_ORDER_FLOW_MESSAGES["confirmYesNo"]
        assert result.session == session

    @pytest.mark.asyncio
    async def test_confirm_submits_order(self, fsm, backend):
        """Test confirmation submits the order and completes."""
        session = awaiting(
            OrderState.AWAITING_CONFIRMATION,
            document="12345678000190",
            customer_name="Construtora Alfa",
            quantity=2,
        )

        result = await fsm.process("sim", session, IntentType.CONFIRM)

        request = backend.submit_order.await_args.args[0]
        assert request.document == "12345678000190"
        assert request.customer_name == "Construtora Alfa"
        assert request.items[0].sku == "PROD-001"
        assert request.items[0].quantity == 2
        assert request.items[0].unit_price == 31.0
        assert result.session.state == OrderState.COMPLETED
        assert "PED-77" in result.reply
        assert "Entrega amanhã." in result.reply

    @pytest.mark.asyncio
    async def test_submission_failure_acknowledges(self, fsm, backend):
        """Test a failed submission still acknowledges the order."""
        backend.submit_order.side_effect = OrderSubmissionError("timeout")
        session = awaiting(OrderState.AWAITING_CONFIRMATION, document="12345678000190", quantity=2)

        result = await fsm.process("sim", session, IntentType.CONFIRM)

        assert result.session.state == OrderState.COMPLETED
        assert "encaminhado para nossa equipe" in result.reply
        assert "2 unidades" in result.reply

    @pytest.mark.asyncio
    async def test_confirm_without_document_skips_submission(self, fsm, backend):
        """Test a confirmation without validated document is forwarded to the team."""
        session = OrderSession(
            state=OrderState.AWAITING_CONFIRMATION, product=CIMENTO, quantity=80
        )

        result = await fsm.process("sim", session, IntentType.CONFIRM)

        backend.submit_order.assert_not_called()
        assert result.session.state == OrderState.COMPLETED
        assert "80 unidades" in result.reply


# ============================================================================
# Misc
# ============================================================================


class TestOrderFsmMisc:
    @pytest.mark.asyncio
    async def test_non_idle_without_product_resets(self, fsm):
        """Test a non-idle session missing its product starts over."""
        result = await fsm.process(
            "12345678000190",
            OrderSession(state=OrderState.AWAITING_CPF),
            IntentType.PROVIDE_DOCUMENT,
        )

        assert result.reply == DEFAULT_ORDER_FLOW_MESSAGES["askProduct"]
        assert result.session == OrderSession()

    @pytest.mark.asyncio
    async def test_input_session_not_modified(self, fsm):
        """Test transitions return a new session."""
        session = OrderSession(product=CIMENTO)

        result = await fsm.process("quero fazer um pedido", session, IntentType.START_ORDER)

        assert session.state == OrderState.IDLE
        assert result.session is not session

    @pytest.mark.asyncio
    async def test_tenant_messages_override_defaults(self, backend):
        """Test tenant templates replace the defaults."""
        fsm = OrderFSM(backend, {"askDocument": "Pedido de {{productName}}: mande o CNPJ."})

        result = await fsm.process("quero fazer um pedido", OrderSession(product=CIMENTO), IntentType.START_ORDER)

        assert result.reply == "Pedido de Cimento CP II 50kg: mande o CNPJ."

    def test_settle_replaces_completed(self):
        """Test COMPLETED becomes a fresh IDLE session; other states pass through."""
        completed = awaiting(OrderState.COMPLETED, quantity=2)
        in_progress = awaiting(OrderState.AWAITING_CPF)

        assert settle(completed) == OrderSession()
        assert settle(in_progress) is in_progress

    def test_effective_price(self):
        """Test promotional price wins over the list price."""
        assert CIMENTO.effective_price == 31.0
        assert ARGAMASSA.effective_price == 18.5
