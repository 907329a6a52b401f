"""Price formatting helpers. Prices are stored as integer cents."""


def format_price(price_in_cents: int | None) -> str:
    """
    Format a price for display.

    Returns "N/A" when there is no price (None or 0).

    Examples:
        >>> format_price(1234)
        '$12.34'
        >>> format_price(None)
        'N/A'
    """
    if not price_in_cents:
        return "N/A"
    return f"${price_in_cents / 100:.2f}"
