"""
Denormalized read models handed to the presentation layer.

These join encyclopedia rows with live collection quantities. They are
snapshots: mutating the collection never updates an existing view.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class OwnedVariant:
    """A variant with the number of copies the user owns."""

    id: str
    name: str
    code: str
    details: str | None
    quantity: int


@dataclass
class SetCard:
    """
    A card as it appears in one set.

    Attributes:
        card_number: Lowest card number among the card's appearances in the set
        rarity: Rarity of that same appearance
        variants: Only the variants printed in this set, ordered by code
    """

    id: str
    name: str
    side: str
    type: str
    icon: str | None
    card_number: str
    rarity: str | None
    set_id: str
    set_name: str
    set_abbreviation: str | None
    set_icon_path: str | None
    variants: list[OwnedVariant] = field(default_factory=list)

    def total_owned(self) -> int:
        """Copies owned across this card's variants in the set."""
        return sum(v.quantity for v in self.variants)


@dataclass(frozen=True, slots=True)
class VariantAppearance:
    """The set appearance shown next to a variant in search results."""

    set_id: str
    set_name: str
    set_abbreviation: str | None
    card_number: str
    release_date: str | None


@dataclass(frozen=True, slots=True)
class SearchVariant:
    """A variant in a search result, with one representative appearance."""

    id: str
    name: str
    code: str
    details: str | None
    quantity: int
    appearance: VariantAppearance | None = None


@dataclass
class CardSearchResult:
    """
    One distinct card name matching a search.

    `variants` is the union of the variants of every card row sharing the
    name, across all sets.
    """

    id: str
    name: str
    side: str
    type: str
    icon: str | None
    variants: list[SearchVariant] = field(default_factory=list)
