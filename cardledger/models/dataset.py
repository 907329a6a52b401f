"""
Bundled dataset shape.

The reconciler consumes one `CatalogueDataset` per call. How the dataset is
generated (per-release files, slugging, Limited/Unlimited fan-out) is not this
package's concern; the only requirement is that ids stay stable across
regenerations for the same logical variant, because collection entries are
keyed by variant id across reseeds.
"""

from typing import Literal

from pydantic import BaseModel, Field


class SetRecord(BaseModel):
    """One set edition."""

    id: str = Field(..., min_length=1, examples=["hoth-limited"])
    name: str
    abbreviation: str | None = None
    release_date: str | None = Field(
        default=None,
        description="ISO date (YYYY-MM-DD)",
        examples=["1997-11-01"],
    )
    icon_path: str | None = None


class CardRecord(BaseModel):
    """One edition-scoped card."""

    id: str = Field(..., min_length=1)
    name: str
    side: Literal["light", "dark"]
    type: str
    icon: str | None = None


class VariantRecord(BaseModel):
    """One printing/finish of a card."""

    id: str = Field(..., min_length=1)
    card_id: str
    name: str
    code: str
    details: str | None = None


class AppearanceRecord(BaseModel):
    """A variant's appearance in a set."""

    set_id: str
    variant_id: str
    card_number: str
    rarity: str | None = None


class PricingRecord(BaseModel):
    """An already-fetched price list entry. Prices are integer cents."""

    card_name: str
    external_product_id: int
    external_product_name: str
    external_set_name: str
    ungraded_price: int | None = None
    grade7_price: int | None = None
    grade8_price: int | None = None
    grade9_price: int | None = None
    grade10_price: int | None = None
    last_updated: str


class CatalogueDataset(BaseModel):
    """Everything needed to rebuild the encyclopedia."""

    sets: list[SetRecord] = Field(default_factory=list)
    cards: list[CardRecord] = Field(default_factory=list)
    variants: list[VariantRecord] = Field(default_factory=list)
    variant_set_appearances: list[AppearanceRecord] = Field(default_factory=list)
    pricing: list[PricingRecord] = Field(default_factory=list)
    variant_pricing_mappings: dict[str, int] = Field(
        default_factory=dict,
        description="Map of variant id to external product id",
    )
