"""
Unit tests for the rule-based intent classifier.

Tests coverage:
- Pure-digit messages decided by length
- Rule precedence (document over quantity, quantity order over plain order)
- extract_quantity bounds
- mentions_transfer
"""

import pytest

from agent.fsm.intent_classifier import (
    INTENT_RULES,
    IntentRule,
    classify,
    extract_quantity,
    mentions_transfer,
)
from agent.fsm.models import IntentType


class TestPureDigits:
    """Digit-only messages never reach the rule table."""

    @pytest.mark.parametrize("text", ["12345678901", "12345678000190", "  52998224725  "])
    def test_document_lengths(self, text):
        """Test 11 and 14 digits classify as a document."""
        assert classify(text) == IntentType.PROVIDE_DOCUMENT

    @pytest.mark.parametrize("text", ["5", "120", "1234567890", "123456789012"])
    def test_other_lengths_are_quantities(self, text):
        """Test any other digit count classifies as a quantity."""
        assert classify(text) == IntentType.PROVIDE_QUANTITY


class TestRules:
    """Rule table precedence."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("meu cnpj é 12.345.678/0001-90", IntentType.PROVIDE_DOCUMENT),
            ("cpf 529.982.247-25", IntentType.PROVIDE_DOCUMENT),
            ("sim quero 2 unidades do produto", IntentType.START_ORDER_WITH_QUANTITY),
            ("quero 10 unidades", IntentType.START_ORDER_WITH_QUANTITY),
            ("Sim", IntentType.CONFIRM),
            ("pode ser!", IntentType.CONFIRM),
            ("não", IntentType.DENY),
            ("cancela", IntentType.DENY),
            ("quero falar com um atendente", IntentType.HUMAN_AGENT),
            ("quero fazer um pedido", IntentType.START_ORDER),
            ("quero comprar cimento", IntentType.START_ORDER),
            ("preciso da 2ª via do boleto", IntentType.FINANCIAL),
            ("onde está meu pedido?", IntentType.ORDER_STATUS),
            ("quanto custa o cimento?", IntentType.STOCK_QUERY),
            ("tem PROD-001?", IntentType.STOCK_QUERY),
            ("bom dia!", IntentType.GREETING),
            ("Oi", IntentType.GREETING),
            ("qual o horário de funcionamento", IntentType.UNKNOWN),
        ],
    )
    def test_classification(self, text, expected):
        """Test representative messages map to the expected label."""
        assert classify(text) == expected

    def test_blank_message_is_unknown(self):
        """Test empty and whitespace-only messages."""
        assert classify("") == IntentType.UNKNOWN
        assert classify("   ") == IntentType.UNKNOWN
        assert classify(None) == IntentType.UNKNOWN

    def test_greeting_with_question_is_not_greeting(self):
        """Test greeting rule only matches a bare greeting."""
        assert classify("oi, quanto custa o cimento?") == IntentType.STOCK_QUERY

    def test_custom_rule_table(self):
        """Test classify() accepts an alternative ordered rule table."""
        rules = (IntentRule.of(IntentType.FINANCIAL, r"\bpix\b"), *INTENT_RULES)

        assert classify("posso pagar no pix", rules) == IntentType.FINANCIAL
        assert classify("pix") == IntentType.UNKNOWN


class TestExtractQuantity:
    """First integer literal within [1, 9999]."""

    def test_first_integer(self):
        """Test the first integer of the message is returned."""
        assert extract_quantity("sim quero 2 unidades do produto") == 2
        assert extract_quantity("15 sacos, não 20") == 15

    def test_out_of_range(self):
        """Test zero and values above 9999 are rejected."""
        assert extract_quantity("0 unidades") is None
        assert extract_quantity("10000 unidades") is None

    def test_no_digits(self):
        """Test messages without digits."""
        assert extract_quantity("quero unidades") is None
        assert extract_quantity("") is None


class TestMentionsTransfer:
    def test_transfer_words(self):
        """Test transferir / transferência are detected case-insensitively."""
        assert mentions_transfer("pode me transferir para o atendente?")
        assert mentions_transfer("Quero TRANSFERÊNCIA")
        assert not mentions_transfer("quero falar com um atendente")
