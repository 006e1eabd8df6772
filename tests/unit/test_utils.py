"""
Unit tests for agent.utils (documents, money, product search).
"""

import pytest

from agent.utils import (
    extract_document,
    format_amount,
    format_brl,
    is_valid_cnpj,
    is_valid_cpf,
    mask_document,
    normalize_document,
    normalize_search_text,
    product_matches_search,
)


class TestDocuments:
    """CPF/CNPJ helpers."""

    def test_normalize_strips_punctuation(self):
        """Test formatting characters are removed."""
        assert normalize_document("12.345.678/0001-90") == "12345678000190"
        assert normalize_document(None) == ""

    def test_extract_document(self):
        """Test only 11 or 14 digits form a document."""
        assert extract_document("meu cpf é 529.982.247-25") == "52998224725"
        assert extract_document("12.345.678/0001-90") == "12345678000190"
        assert extract_document("pedido 123") is None

    def test_valid_cpf(self):
        """Test CPF check digits."""
        assert is_valid_cpf("529.982.247-25")
        assert not is_valid_cpf("529.982.247-26")
        assert not is_valid_cpf("111.111.111-11")

    def test_valid_cnpj(self):
        """Test CNPJ check digits."""
        assert is_valid_cnpj("11.222.333/0001-81")
        assert not is_valid_cnpj("11.222.333/0001-82")
        assert not is_valid_cnpj("00000000000000")

    def test_mask_document(self):
        """Test documents are masked for logs."""
        assert mask_document("12345678000190") == "12.345.678/****-**"
        assert mask_document("52998224725") == "***.982.***-**"
        assert mask_document("123") == "***"
        assert mask_document(None) == "***"


class TestMoney:
    @pytest.mark.parametrize(
        "value,expected",
        [(62, "62,00"), (31.0, "31,00"), (1500.5, "1.500,50"), (1234567.891, "1.234.567,89"), (None, "0,00")],
    )
    def test_format_amount(self, value, expected):
        """Test two decimals with Brazilian separators."""
        assert format_amount(value) == expected

    def test_format_brl(self):
        """Test currency prefix."""
        assert format_brl(1500) == "R$ 1.500,00"


class TestProductSearch:
    def test_normalize_search_text(self):
        """Test accents, hyphens and slashes are normalized."""
        assert normalize_search_text("Tijolo Cerâmico 9x19/29") == ["tijolo", "ceramico", "9x19", "29"]

    @pytest.mark.parametrize(
        "query",
        ["cimento", "CIMENTO cp", "cimento cp 2", "cp-ii", "prod-001", ""],
    )
    def test_matches(self, query):
        """Test every query token must appear in the name or SKU."""
        assert product_matches_search(query, "Cimento CP-II 50kg", "PROD-001")

    def test_no_match(self):
        """Test a token missing from the product fails the match."""
        assert not product_matches_search("argamassa", "Cimento CP-II 50kg", "PROD-001")
        assert not product_matches_search("cimento cp 3", "Cimento CP-II 50kg", "PROD-001")
