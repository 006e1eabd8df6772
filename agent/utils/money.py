"""Monetary formatting in Brazilian notation (1.234,56)."""


def format_amount(value: float | int | None) -> str:
    """
    Format a number with exactly two decimals, comma as decimal separator.

    Example:
        >>> format_amount(62)
        '62,00'
        >>> format_amount(1500.5)
        '1.500,50'
    """
    formatted = f"{float(value or 0):,.2f}"
    return formatted.replace(",", "X").replace(".", ",").replace("X", ".")


def format_brl(value: float | int | None) -> str:
    """Format a number as a Real amount ("R$ 1.500,00")."""
    return f"R$ {format_amount(value)}"
