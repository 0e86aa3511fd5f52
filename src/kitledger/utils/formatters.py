"""Formatting utilities for display values."""


def format_currency(value: float, places: int = 2) -> str:
    """Format a float as USD currency."""
    return f"${value or 0:,.{places}f}"


def format_quantity(value: float, reorder_level: int = 0) -> str:
    """Format quantity, flagging stock below the reorder level."""
    text = f"{value:g}" if isinstance(value, float) else str(value)
    if reorder_level > 0 and value < reorder_level:
        return f"{text} (LOW)"
    return text


def format_percent(value: float) -> str:
    return f"{value or 0:.1f}%"


def format_yes_no(value) -> str:
    return "Yes" if value else "No"
