"""
Database operations.

Async functions over an open session for the encyclopedia rebuild (bulk
upserts), the collection ledger and the bulk reads the query layer and
statistics engine are built on. Callers own transaction boundaries.
"""

import logging
from collections.abc import Iterable, Iterator, Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar

from sqlalchemy import Row, Table, bindparam, delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from cardledger.config import IN_CLAUSE_CHUNK_SIZE
from cardledger.db.database import VERSION_KEY
from cardledger.models.catalogue import CardSet, Pricing
from cardledger.models.dataset import (
    AppearanceRecord,
    CardRecord,
    PricingRecord,
    SetRecord,
    VariantRecord,
)
from cardledger.models.db import (
    CATALOGUE_TABLES,
    CardDB,
    CardPricingDB,
    CollectionEntryDB,
    EncyclopediaBase,
    MetadataDB,
    SetDB,
    VariantDB,
    VariantSetAppearanceDB,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int = IN_CLAUSE_CHUNK_SIZE) -> Iterator[Sequence[T]]:
    """Split `items` into slices small enough for one IN (...) clause."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


# --- Schema ---


async def drop_catalogue_tables(session: AsyncSession) -> None:
    """Drop every catalogue table. The _metadata table is kept."""
    conn = await session.connection()
    await conn.run_sync(EncyclopediaBase.metadata.drop_all, tables=CATALOGUE_TABLES)


async def create_encyclopedia_schema(session: AsyncSession) -> None:
    """Create any missing encyclopedia tables."""
    conn = await session.connection()
    await conn.run_sync(EncyclopediaBase.metadata.create_all)


# --- Bulk upserts ---


async def _upsert(
    session: AsyncSession,
    table: Table,
    rows: list[dict[str, Any]],
    conflict_columns: list[str],
) -> int:
    """
    INSERT ... ON CONFLICT DO UPDATE for many rows in one executemany.

    Existing rows with the same key are overwritten, so a repeated batch is
    idempotent. Returns the number of rows sent.
    """
    if not rows:
        return 0

    stmt = sqlite_insert(table)
    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_={
            name: stmt.excluded[name] for name in rows[0] if name not in conflict_columns
        },
    )
    await session.execute(stmt, rows)
    return len(rows)


async def upsert_sets(session: AsyncSession, sets: Iterable[SetRecord]) -> int:
    rows = [s.model_dump() for s in sets]
    return await _upsert(session, SetDB.__table__, rows, ["id"])  # type: ignore[arg-type]


async def upsert_cards(session: AsyncSession, cards: Iterable[CardRecord]) -> int:
    rows = [c.model_dump() for c in cards]
    return await _upsert(session, CardDB.__table__, rows, ["id"])  # type: ignore[arg-type]


async def upsert_variants(session: AsyncSession, variants: Iterable[VariantRecord]) -> int:
    rows = [v.model_dump() for v in variants]
    return await _upsert(session, VariantDB.__table__, rows, ["id"])  # type: ignore[arg-type]


async def upsert_appearances(
    session: AsyncSession, appearances: Iterable[AppearanceRecord]
) -> int:
    rows = [a.model_dump() for a in appearances]
    return await _upsert(
        session,
        VariantSetAppearanceDB.__table__,  # type: ignore[arg-type]
        rows,
        ["set_id", "variant_id"],
    )


async def upsert_pricing(session: AsyncSession, pricing: Iterable[PricingRecord]) -> int:
    """Upsert price records keyed by external product id."""
    rows = [p.model_dump() for p in pricing]
    return await _upsert(
        session,
        CardPricingDB.__table__,  # type: ignore[arg-type]
        rows,
        ["external_product_id"],
    )


async def link_variant_pricing(session: AsyncSession, mappings: dict[str, int]) -> int:
    """
    Point variants at their pricing rows.

    `mappings` is {variant_id: external_product_id}. External ids are
    resolved to internal pricing ids in bulk; mappings with no matching
    pricing row are skipped with a warning.

    Returns the number of variants linked.
    """
    if not mappings:
        return 0

    external_ids = sorted(set(mappings.values()))
    resolved: dict[int, int] = {}
    for chunk in chunked(external_ids):
        result = await session.execute(
            select(CardPricingDB.external_product_id, CardPricingDB.id).where(
                CardPricingDB.external_product_id.in_(chunk)
            )
        )
        resolved.update({row.external_product_id: row.id for row in result})

    links: list[dict[str, Any]] = []
    for variant_id, external_id in mappings.items():
        pricing_id = resolved.get(external_id)
        if pricing_id is None:
            logger.warning(
                "No pricing record for external product %s (variant %s)",
                external_id,
                variant_id,
            )
            continue
        links.append({"b_variant_id": variant_id, "b_pricing_id": pricing_id})

    if not links:
        return 0

    variants = VariantDB.__table__
    stmt = (
        update(variants)
        .where(variants.c.id == bindparam("b_variant_id"))
        .values(pricing_id=bindparam("b_pricing_id"))
    )
    await session.execute(stmt, links)
    return len(links)


async def set_catalogue_version(session: AsyncSession, version: int) -> None:
    """Record the catalogue schema version."""
    await _upsert(
        session,
        MetadataDB.__table__,  # type: ignore[arg-type]
        [{"key": VERSION_KEY, "value": str(version)}],
        ["key"],
    )


# --- Encyclopedia reads ---


async def get_all_sets(session: AsyncSession) -> list[CardSet]:
    """All sets, oldest first; undated sets lead, ties by name."""
    result = await session.execute(
        select(SetDB).order_by(SetDB.release_date.asc().nulls_first(), SetDB.name.asc())
    )
    return [set_to_model(s) for s in result.scalars().all()]


async def get_variant_ids(session: AsyncSession) -> set[str]:
    """Every variant id in the encyclopedia."""
    result = await session.execute(select(VariantDB.id))
    return set(result.scalars().all())


async def get_set_appearance_rows(session: AsyncSession, set_id: str) -> Sequence[Row[Any]]:
    """
    Everything needed to render a set in one query.

    One row per variant appearance, joined with its card and set.
    """
    result = await session.execute(
        select(
            CardDB.id.label("card_id"),
            CardDB.name.label("card_name"),
            CardDB.side,
            CardDB.type,
            CardDB.icon,
            VariantSetAppearanceDB.card_number,
            VariantSetAppearanceDB.rarity,
            VariantDB.id.label("variant_id"),
            VariantDB.name.label("variant_name"),
            VariantDB.code.label("variant_code"),
            VariantDB.details.label("variant_details"),
            SetDB.id.label("set_id"),
            SetDB.name.label("set_name"),
            SetDB.abbreviation.label("set_abbreviation"),
            SetDB.icon_path.label("set_icon_path"),
        )
        .select_from(VariantSetAppearanceDB)
        .join(VariantDB, VariantSetAppearanceDB.variant_id == VariantDB.id)
        .join(CardDB, VariantDB.card_id == CardDB.id)
        .join(SetDB, VariantSetAppearanceDB.set_id == SetDB.id)
        .where(VariantSetAppearanceDB.set_id == set_id)
    )
    return result.all()


async def get_set_rarity_triples(session: AsyncSession, set_id: str) -> Sequence[Row[Any]]:
    """(card_id, card_number, rarity, variant_id) for every appearance in a set."""
    result = await session.execute(
        select(
            VariantDB.card_id,
            VariantSetAppearanceDB.card_number,
            VariantSetAppearanceDB.rarity,
            VariantSetAppearanceDB.variant_id,
        )
        .select_from(VariantSetAppearanceDB)
        .join(VariantDB, VariantSetAppearanceDB.variant_id == VariantDB.id)
        .where(VariantSetAppearanceDB.set_id == set_id)
    )
    return result.all()


async def get_card_identities(session: AsyncSession) -> Sequence[Row[Any]]:
    """(id, name, side, type, icon) for every card, ordered by id."""
    result = await session.execute(
        select(CardDB.id, CardDB.name, CardDB.side, CardDB.type, CardDB.icon).order_by(CardDB.id)
    )
    return result.all()


async def get_variant_rows_for_card_name(
    session: AsyncSession, card_name: str
) -> Sequence[Row[Any]]:
    """
    Every variant of every card row named `card_name`.

    One row per (variant, appearance); variants with no appearance come back
    once with NULL set columns.
    """
    result = await session.execute(
        select(
            VariantDB.id.label("variant_id"),
            VariantDB.name.label("variant_name"),
            VariantDB.code.label("variant_code"),
            VariantDB.details.label("variant_details"),
            VariantSetAppearanceDB.card_number,
            SetDB.id.label("set_id"),
            SetDB.name.label("set_name"),
            SetDB.abbreviation.label("set_abbreviation"),
            SetDB.release_date,
        )
        .select_from(VariantDB)
        .join(CardDB, VariantDB.card_id == CardDB.id)
        .outerjoin(VariantSetAppearanceDB, VariantSetAppearanceDB.variant_id == VariantDB.id)
        .outerjoin(SetDB, VariantSetAppearanceDB.set_id == SetDB.id)
        .where(CardDB.name == card_name)
        .order_by(VariantDB.code, VariantDB.id)
    )
    return result.all()


async def get_variant_set_ids(session: AsyncSession, variant_id: str) -> list[str] | None:
    """
    Ids of the sets a variant appears in.

    Returns None if the variant does not exist, and an empty list for a
    variant with no appearances.
    """
    result = await session.execute(
        select(VariantDB.id, VariantSetAppearanceDB.set_id)
        .select_from(VariantDB)
        .outerjoin(VariantSetAppearanceDB, VariantSetAppearanceDB.variant_id == VariantDB.id)
        .where(VariantDB.id == variant_id)
    )
    rows = result.all()
    if not rows:
        return None
    return [row.set_id for row in rows if row.set_id is not None]


async def get_pricing_for_variants(
    session: AsyncSession, variant_ids: Sequence[str]
) -> dict[str, Pricing]:
    """Pricing keyed by variant id, via each variant's pricing_id."""
    pricing: dict[str, Pricing] = {}
    for chunk in chunked(variant_ids):
        result = await session.execute(
            select(VariantDB.id.label("variant_id"), CardPricingDB)
            .select_from(VariantDB)
            .join(CardPricingDB, VariantDB.pricing_id == CardPricingDB.id)
            .where(VariantDB.id.in_(chunk))
        )
        for row in result:
            pricing[row.variant_id] = pricing_to_model(row.CardPricingDB)
    return pricing


# --- Collection ---


async def get_collection_entry(session: AsyncSession, variant_id: str) -> CollectionEntryDB | None:
    """
    Ledger row for a variant.

    Returns None when the user owns no copies.
    """
    result = await session.execute(
        select(CollectionEntryDB).where(CollectionEntryDB.variant_id == variant_id)
    )
    return result.scalar_one_or_none()


async def get_quantities(session: AsyncSession, variant_ids: Sequence[str]) -> dict[str, int]:
    """
    Owned quantities for the given variants.

    Variants the user does not own are absent from the result.
    """
    quantities: dict[str, int] = {}
    for chunk in chunked(variant_ids):
        result = await session.execute(
            select(CollectionEntryDB.variant_id, CollectionEntryDB.quantity).where(
                CollectionEntryDB.variant_id.in_(chunk)
            )
        )
        quantities.update({row.variant_id: row.quantity for row in result})
    return quantities


async def get_owned_variant_ids(session: AsyncSession, variant_ids: Sequence[str]) -> set[str]:
    """The subset of `variant_ids` owned with quantity > 0."""
    owned: set[str] = set()
    for chunk in chunked(variant_ids):
        result = await session.execute(
            select(CollectionEntryDB.variant_id).where(
                CollectionEntryDB.variant_id.in_(chunk),
                CollectionEntryDB.quantity > 0,
            )
        )
        owned.update(result.scalars().all())
    return owned


async def get_collection_variant_ids(session: AsyncSession) -> set[str]:
    result = await session.execute(select(CollectionEntryDB.variant_id))
    return set(result.scalars().all())


async def upsert_collection_entry(session: AsyncSession, variant_id: str, quantity: int) -> None:
    """Insert or update a ledger row with a fresh updated_at."""
    now = datetime.now(UTC)
    stmt = sqlite_insert(CollectionEntryDB).values(
        variant_id=variant_id, quantity=quantity, updated_at=now
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[CollectionEntryDB.variant_id],
        set_={"quantity": stmt.excluded.quantity, "updated_at": stmt.excluded.updated_at},
    )
    await session.execute(stmt)


async def delete_collection_entries(session: AsyncSession, variant_ids: Sequence[str]) -> int:
    """
    Delete ledger rows.

    Returns the number of deleted rows.
    """
    if not variant_ids:
        return 0
    result = await session.execute(
        delete(CollectionEntryDB).where(CollectionEntryDB.variant_id.in_(variant_ids))
    )
    # rowcount is available on DELETE results; type stubs incomplete for async
    return int(result.rowcount)  # type: ignore[attr-defined]


async def get_total_quantity(session: AsyncSession) -> int:
    result = await session.execute(select(func.coalesce(func.sum(CollectionEntryDB.quantity), 0)))
    return int(result.scalar_one())


# --- Model conversion ---


def set_to_model(db_set: SetDB) -> CardSet:
    """Convert a database set to a domain model."""
    return CardSet(
        id=db_set.id,
        name=db_set.name,
        abbreviation=db_set.abbreviation,
        release_date=db_set.release_date,
        icon_path=db_set.icon_path,
    )


def pricing_to_model(db_pricing: CardPricingDB) -> Pricing:
    """Convert a database pricing row to a domain model."""
    return Pricing(
        id=db_pricing.id,
        card_name=db_pricing.card_name,
        external_product_id=db_pricing.external_product_id,
        external_product_name=db_pricing.external_product_name,
        external_set_name=db_pricing.external_set_name,
        last_updated=db_pricing.last_updated,
        ungraded_price=db_pricing.ungraded_price,
        grade7_price=db_pricing.grade7_price,
        grade8_price=db_pricing.grade8_price,
        grade9_price=db_pricing.grade9_price,
        grade10_price=db_pricing.grade10_price,
    )
