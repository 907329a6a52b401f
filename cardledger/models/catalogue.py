from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CardSet:
    """
    A set edition as shown in the set list.

    Attributes:
        id: Stable slug (e.g., "hoth-limited")
        name: Display name ("Hoth", "Hoth Unlimited")
        abbreviation: Short code (e.g., "HOTH", "HOTH-U")
        release_date: ISO date, None when unknown
        icon_path: Icon asset key, resolved by the presentation layer
    """

    id: str
    name: str
    abbreviation: str | None = None
    release_date: str | None = None
    icon_path: str | None = None


@dataclass(frozen=True, slots=True)
class Pricing:
    """
    Market prices for the external product a variant is linked to.

    All prices are integer cents; None means no price on record.
    """

    id: int
    card_name: str
    external_product_id: int
    external_product_name: str
    external_set_name: str
    last_updated: str
    ungraded_price: int | None = None
    grade7_price: int | None = None
    grade8_price: int | None = None
    grade9_price: int | None = None
    grade10_price: int | None = None
