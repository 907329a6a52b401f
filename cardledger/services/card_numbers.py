"""
Card number ordering.

Card numbers are text. Most are plain integers ("1", "2", "10") and must sort
numerically; the rest (promo codes such as "P1") sort after every numeric
number, compared as text.
"""


def card_number_sort_key(card_number: str) -> tuple[int, int, str]:
    """
    Sort key placing numeric card numbers first, in numeric order.

    Examples:
        >>> sorted(["2", "10", "1", "P1"], key=card_number_sort_key)
        ['1', '2', '10', 'P1']
    """
    stripped = card_number.strip()
    if stripped.isdecimal():
        return (0, int(stripped), stripped)
    return (1, 0, stripped)


def appearance_sort_key(card_number: str, rarity: str | None) -> tuple[tuple[int, int, str], str]:
    """Order a card's appearances: lowest card number first, ties by rarity."""
    return (card_number_sort_key(card_number), rarity or "")
