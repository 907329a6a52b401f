"""
Rarity normalization.

Rarity codes vary by set (C1, C2, U1, R2, F, PM, ...). Only the first letter
matters: C -> common, U -> uncommon, R -> rare. Everything else, including a
missing rarity, is "other". Foil and promo codes deliberately land in "other";
there is no lookup table of known codes.
"""

from cardledger.models.stats import RarityCategory

_PREFIXES = {
    "C": RarityCategory.COMMON,
    "U": RarityCategory.UNCOMMON,
    "R": RarityCategory.RARE,
}


def normalize_rarity(rarity: str | None) -> RarityCategory:
    """
    Bucket a raw rarity code.

    Examples:
        >>> normalize_rarity("C1")
        <RarityCategory.COMMON: 'common'>
        >>> normalize_rarity("r2")
        <RarityCategory.RARE: 'rare'>
        >>> normalize_rarity("PM")
        <RarityCategory.OTHER: 'other'>
    """
    if not rarity:
        return RarityCategory.OTHER
    return _PREFIXES.get(rarity[0].upper(), RarityCategory.OTHER)


def rarity_display_name(rarity: str | None) -> str:
    """Display name for a raw rarity code ("Common", "Uncommon", "Rare", "Other")."""
    return normalize_rarity(rarity).value.capitalize()
