"""
SQLAlchemy ORM models for the two persisted stores.

The encyclopedia (read-mostly reference data, rebuilt wholesale on a version
bump) and the collection (the user's owned quantities) live in separate
SQLite files with separate declarative bases, so no DDL issued against one
can ever reach the other.
"""

from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class EncyclopediaBase(DeclarativeBase):
    """Base class for encyclopedia ORM models."""

    pass


class CollectionBase(DeclarativeBase):
    """Base class for collection ORM models."""

    pass


# --- Encyclopedia ---


class MetadataDB(EncyclopediaBase):
    """Key/value metadata. Holds the catalogue schema version under `db_version`."""

    __tablename__ = "_metadata"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<MetadataDB(key={self.key}, value={self.value})>"


class SetDB(EncyclopediaBase):
    """
    A released set, one row per edition.

    Limited and Unlimited printings of the same release are distinct rows.
    """

    __tablename__ = "sets"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    abbreviation: Mapped[str | None] = mapped_column(String(32), nullable=True)
    release_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    icon_path: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<SetDB(id={self.id}, name={self.name})>"


class CardDB(EncyclopediaBase):
    """A named card. Ids are edition-scoped (e.g. `..._limited`)."""

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    side: Mapped[str] = mapped_column(String(16))
    type: Mapped[str] = mapped_column(String(64))
    icon: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<CardDB(id={self.id}, name={self.name})>"


class VariantDB(EncyclopediaBase):
    """
    A specific printing/finish of a card.

    `pricing_id` is a weak reference into card_pricing: lookup only, no
    foreign key and no cascade.
    """

    __tablename__ = "variants"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    card_id: Mapped[str] = mapped_column(String(255), ForeignKey("cards.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    code: Mapped[str] = mapped_column(String(32))
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    pricing_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<VariantDB(id={self.id}, code={self.code})>"


class VariantSetAppearanceDB(EncyclopediaBase):
    """A variant printed in a set, with that set's card number and rarity."""

    __tablename__ = "variant_set_appearances"

    set_id: Mapped[str] = mapped_column(String(255), ForeignKey("sets.id"), primary_key=True)
    variant_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("variants.id"), primary_key=True
    )
    card_number: Mapped[str] = mapped_column(String(32))
    rarity: Mapped[str | None] = mapped_column(String(16), nullable=True)

    __table_args__ = (
        Index("idx_variant_appearances_set", "set_id"),
        Index("idx_variant_appearances_variant", "variant_id"),
    )

    def __repr__(self) -> str:
        return f"<VariantSetAppearanceDB(set={self.set_id}, variant={self.variant_id})>"


class CardPricingDB(EncyclopediaBase):
    """
    Market price snapshot for an external product.

    Prices are integer cents; None means no price on record.
    """

    __tablename__ = "card_pricing"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_name: Mapped[str] = mapped_column(String(255), index=True)
    external_product_id: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    external_product_name: Mapped[str] = mapped_column(String(255))
    external_set_name: Mapped[str] = mapped_column(String(255))
    ungraded_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grade7_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grade8_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grade9_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grade10_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_updated: Mapped[str] = mapped_column(String(32))

    def __repr__(self) -> str:
        return f"<CardPricingDB(id={self.id}, product={self.external_product_id})>"


# Tables dropped and recreated on a migration. _metadata survives so the
# version marker is only ever overwritten, never lost.
CATALOGUE_TABLES: list[Table] = [
    SetDB.__table__,  # type: ignore[list-item]
    CardDB.__table__,  # type: ignore[list-item]
    VariantDB.__table__,  # type: ignore[list-item]
    VariantSetAppearanceDB.__table__,  # type: ignore[list-item]
    CardPricingDB.__table__,  # type: ignore[list-item]
]


# --- Collection ---


class CollectionEntryDB(CollectionBase):
    """
    Owned copies of one variant.

    Sparse ledger: a row exists only while quantity > 0.
    """

    __tablename__ = "collection"

    variant_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    quantity: Mapped[int] = mapped_column(Integer, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<CollectionEntryDB(variant={self.variant_id}, qty={self.quantity})>"
