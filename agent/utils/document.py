"""
Brazilian customer document helpers (CPF: 11 digits, CNPJ: 14 digits).

Documents travel through the system as digit-only strings. Anything written
to logs goes through mask_document() first.
"""

import re

_NON_DIGITS = re.compile(r"\D")
_REPEATED_DIGIT = re.compile(r"^(\d)\1+$")

CPF_LENGTH = 11
CNPJ_LENGTH = 14


def normalize_document(doc: str) -> str:
    """Strip every non-digit character."""
    return _NON_DIGITS.sub("", doc or "")


def extract_document(text: str) -> str | None:
    """
    Return the digits of text when they form an 11- or 14-digit document.

    Example:
        >>> extract_document("meu cnpj é 12.345.678/0001-90")
        '12345678000190'
        >>> extract_document("123") is None
        True
    """
    digits = normalize_document(text)
    if len(digits) in (CPF_LENGTH, CNPJ_LENGTH):
        return digits
    return None


def is_valid_cpf(cpf: str) -> bool:
    """Check CPF length and both check digits."""
    digits = normalize_document(cpf)
    if len(digits) != CPF_LENGTH or _REPEATED_DIGIT.match(digits):
        return False

    def check_digit(length: int) -> int:
        total = sum(int(digits[i]) * (length + 1 - i) for i in range(length))
        remainder = (total * 10) % 11
        return 0 if remainder >= 10 else remainder

    return check_digit(9) == int(digits[9]) and check_digit(10) == int(digits[10])


def is_valid_cnpj(cnpj: str) -> bool:
    """Check CNPJ length and both check digits."""
    digits = normalize_document(cnpj)
    if len(digits) != CNPJ_LENGTH or _REPEATED_DIGIT.match(digits):
        return False

    def check_digit(numbers: str, weights: list[int]) -> int:
        remainder = sum(int(n) * w for n, w in zip(numbers, weights)) % 11
        return 0 if remainder < 2 else 11 - remainder

    weights_1 = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
    weights_2 = [6] + weights_1

    return (
        check_digit(digits[:12], weights_1) == int(digits[12])
        and check_digit(digits[:13], weights_2) == int(digits[13])
    )


def mask_document(doc: str | None) -> str:
    """
    Mask a CPF/CNPJ for logging.

    Example:
        >>> mask_document("12345678000190")
        '12.345.678/****-**'
        >>> mask_document("52998224725")
        '***.982.***-**'
    """
    digits = normalize_document(doc or "")
    if len(digits) == CNPJ_LENGTH:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/****-**"
    if len(digits) == CPF_LENGTH:
        return f"***.{digits[3:6]}.***-**"
    return "***"
