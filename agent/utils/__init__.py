"""
Utility functions shared by the order flow and the tool layer.

- document: CPF/CNPJ extraction, validation and masking for logs
- money: two-decimal amounts in Brazilian notation
- product_search: token matching of product names and SKUs
"""

from agent.utils.document import (
    extract_document,
    is_valid_cnpj,
    is_valid_cpf,
    mask_document,
    normalize_document,
)
from agent.utils.money import format_amount, format_brl
from agent.utils.product_search import normalize_search_text, product_matches_search

__all__ = [
    # Documents
    "extract_document",
    "is_valid_cnpj",
    "is_valid_cpf",
    "mask_document",
    "normalize_document",
    # Money
    "format_amount",
    "format_brl",
    # Product search
    "normalize_search_text",
    "product_matches_search",
]
