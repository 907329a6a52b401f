"""
Read-side projections over the encyclopedia and the collection.

Builds the denormalized view objects the presentation layer renders, plus
the one mutation entry point (`set_quantity`) that keeps the completion
statistics cache coherent with the ledger.

Read failures:
- `list_sets` / `cards_in_set` raise QueryFailedError
- `search_cards_by_name` never raises for storage errors: a card whose
  variants cannot be loaded is dropped, a failed top-level query yields []
- pricing lookups degrade to "no pricing"
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from cardledger.config import settings
from cardledger.db.database import CatalogueStore
from cardledger.db.operations import (
    chunked,
    delete_collection_entries,
    get_all_sets,
    get_card_identities,
    get_collection_entry,
    get_pricing_for_variants,
    get_quantities,
    get_set_appearance_rows,
    get_total_quantity,
    get_variant_rows_for_card_name,
    get_variant_set_ids,
    upsert_collection_entry,
)
from cardledger.models.catalogue import CardSet, Pricing
from cardledger.models.failure import InvalidArgumentError, QueryFailedError
from cardledger.models.views import (
    CardSearchResult,
    OwnedVariant,
    SearchVariant,
    SetCard,
    VariantAppearance,
)
from cardledger.services.card_numbers import appearance_sort_key, card_number_sort_key
from cardledger.services.completion_stats import CompletionStatsEngine
from cardledger.services.search import match_priority

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NameMatch:
    """A distinct card name that matched a search query."""

    name: str
    card_id: str
    side: str
    type: str
    icon: str | None
    priority: int


class CatalogueQueries:
    """Query layer shared by every screen."""

    def __init__(
        self,
        store: CatalogueStore,
        stats: CompletionStatsEngine,
        search_batch_size: int | None = None,
    ):
        self._store = store
        self._stats = stats
        self._search_batch_size = search_batch_size or settings.search_batch_size

    # --- Sets ---

    async def list_sets(self) -> list[CardSet]:
        """All sets ordered by release date (undated first), then name."""
        try:
            async with self._store.encyclopedia_session() as session:
                return await get_all_sets(session)
        except SQLAlchemyError as e:
            raise QueryFailedError("the set list", detail=str(e)) from e

    async def cards_in_set(self, set_id: str) -> list[SetCard]:
        """
        Every card with at least one variant appearance in the set.

        Each card carries its lowest card number in the set (ties broken by
        rarity) and only the variants printed in this set, with the user's
        quantities. Numeric card numbers come first in numeric order,
        non-numeric ones (promo codes) after them as text.

        Returns an empty list for an unknown set.
        """
        try:
            async with self._store.encyclopedia_session() as session:
                rows = await get_set_appearance_rows(session, set_id)

            variant_ids = sorted({row.variant_id for row in rows})
            quantities: dict[str, int] = {}
            if variant_ids:
                async with self._store.collection_session() as session:
                    quantities = await get_quantities(session, variant_ids)
        except SQLAlchemyError as e:
            raise QueryFailedError(f"the card list for set {set_id}", detail=str(e)) from e

        cards: dict[str, SetCard] = {}
        for row in rows:
            card = cards.get(row.card_id)
            if card is None:
                card = SetCard(
                    id=row.card_id,
                    name=row.card_name,
                    side=row.side,
                    type=row.type,
                    icon=row.icon,
                    card_number=row.card_number,
                    rarity=row.rarity,
                    set_id=row.set_id,
                    set_name=row.set_name,
                    set_abbreviation=row.set_abbreviation,
                    set_icon_path=row.set_icon_path,
                )
                cards[row.card_id] = card
            elif appearance_sort_key(row.card_number, row.rarity) < appearance_sort_key(
                card.card_number, card.rarity
            ):
                card.card_number = row.card_number
                card.rarity = row.rarity

            card.variants.append(
                OwnedVariant(
                    id=row.variant_id,
                    name=row.variant_name,
                    code=row.variant_code,
                    details=row.variant_details,
                    quantity=quantities.get(row.variant_id, 0),
                )
            )

        for card in cards.values():
            card.variants.sort(key=lambda v: (v.code, v.id))

        return sorted(
            cards.values(),
            key=lambda c: (card_number_sort_key(c.card_number), c.name, c.id),
        )

    # --- Search ---

    async def search_cards_by_name(self, query: str) -> list[CardSearchResult]:
        """
        Search card names across all sets.

        Matching ignores case and apostrophe/dash glyph differences; a fuzzy
        pass also ignores apostrophes, hyphens and spaces ("Hans" finds
        "Han's Speeder"). Exact matches rank before fuzzy-only ones, then
        alphabetically.

        Returns one result per distinct card name with the variants of every
        card row sharing that name. A blank query returns no results.
        """
        if not query.strip():
            return []

        try:
            matches = await self._match_card_names(query)
        except SQLAlchemyError:
            logger.exception("Card search failed for %r", query)
            return []

        results: list[CardSearchResult] = []
        # Small batches so a broad query does not open hundreds of sessions at once
        for batch in chunked(matches, self._search_batch_size):
            loaded = await asyncio.gather(*(self._load_search_result_safely(m) for m in batch))
            results.extend(result for result in loaded if result is not None)

        return results

    async def _match_card_names(self, query: str) -> list[NameMatch]:
        async with self._store.encyclopedia_session() as session:
            identities = await get_card_identities(session)

        matches: dict[str, NameMatch] = {}
        for row in identities:
            # Rows are ordered by id, so the first row per name has the lowest id
            if row.name in matches:
                continue
            priority = match_priority(row.name, query)
            if priority is None:
                continue
            matches[row.name] = NameMatch(
                name=row.name,
                card_id=row.id,
                side=row.side,
                type=row.type,
                icon=row.icon,
                priority=priority,
            )

        return sorted(matches.values(), key=lambda m: (m.priority, m.name.lower(), m.name))

    async def _load_search_result_safely(self, match: NameMatch) -> CardSearchResult | None:
        try:
            return await self._load_search_result(match)
        except SQLAlchemyError:
            logger.exception("Dropping %r from search results", match.name)
            return None

    async def _load_search_result(self, match: NameMatch) -> CardSearchResult:
        async with self._store.encyclopedia_session() as session:
            rows = await get_variant_rows_for_card_name(session, match.name)

        variant_ids = sorted({row.variant_id for row in rows})
        quantities: dict[str, int] = {}
        if variant_ids:
            async with self._store.collection_session() as session:
                quantities = await get_quantities(session, variant_ids)

        variants: dict[str, SearchVariant] = {}
        for row in rows:
            appearance = None
            if row.set_id is not None:
                appearance = VariantAppearance(
                    set_id=row.set_id,
                    set_name=row.set_name,
                    set_abbreviation=row.set_abbreviation,
                    card_number=row.card_number,
                    release_date=row.release_date,
                )

            existing = variants.get(row.variant_id)
            if existing is not None and not _is_earlier(appearance, existing.appearance):
                continue
            variants[row.variant_id] = SearchVariant(
                id=row.variant_id,
                name=row.variant_name,
                code=row.variant_code,
                details=row.variant_details,
                quantity=quantities.get(row.variant_id, 0),
                appearance=appearance,
            )

        return CardSearchResult(
            id=match.card_id,
            name=match.name,
            side=match.side,
            type=match.type,
            icon=match.icon,
            variants=sorted(variants.values(), key=lambda v: (v.code, v.id)),
        )

    # --- Pricing ---

    async def pricing_for_variant(self, variant_id: str) -> Pricing | None:
        """Pricing linked to a variant, or None if unpriced."""
        pricing = await self.pricing_for_variants([variant_id])
        return pricing.get(variant_id)

    async def pricing_for_variants(self, variant_ids: Sequence[str]) -> dict[str, Pricing]:
        """
        Pricing for many variants in one bulk lookup.

        Unpriced variants are absent from the result.
        """
        unique_ids = sorted(set(variant_ids))
        if not unique_ids:
            return {}

        try:
            async with self._store.encyclopedia_session() as session:
                return await get_pricing_for_variants(session, unique_ids)
        except SQLAlchemyError:
            logger.exception("Failed to load pricing for %d variants", len(unique_ids))
            return {}

    # --- Collection ---

    async def get_quantity(self, variant_id: str) -> int:
        """Copies of a variant the user owns (0 when not in the collection)."""
        async with self._store.collection_session() as session:
            entry = await get_collection_entry(session, variant_id)
        if entry is None:
            return 0
        return entry.quantity

    async def total_cards_owned(self) -> int:
        """Total copies across the whole collection."""
        async with self._store.collection_session() as session:
            return await get_total_quantity(session)

    async def set_quantity(self, variant_id: str, quantity: int) -> None:
        """
        Set how many copies of a variant the user owns.

        0 removes the variant from the collection. Statistics for every set
        the variant appears in are invalidated before this returns, so the
        next statistics read reflects the change.

        Raises:
            InvalidArgumentError: quantity is negative or not an integer, or
                the variant does not exist. Nothing is written.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidArgumentError(f"Quantity must be an integer, got {quantity!r}")
        if quantity < 0:
            raise InvalidArgumentError(
                "Quantity cannot be negative",
                detail=f"variant {variant_id}: {quantity}",
            )

        async with self._store.encyclopedia_session() as session:
            set_ids = await get_variant_set_ids(session, variant_id)
        if set_ids is None:
            raise InvalidArgumentError(f"Unknown variant: {variant_id}")

        async with self._store.collection_session() as session, session.begin():
            if quantity == 0:
                await delete_collection_entries(session, [variant_id])
            else:
                await upsert_collection_entry(session, variant_id, quantity)

        for set_id in set_ids:
            self._stats.invalidate(set_id)

        logger.debug("Set %s to %d (%d sets invalidated)", variant_id, quantity, len(set_ids))


def _is_earlier(candidate: VariantAppearance | None, current: VariantAppearance | None) -> bool:
    """True if `candidate` should replace `current` as the representative appearance."""
    if candidate is None:
        return False
    if current is None:
        return True
    return _release_order(candidate) < _release_order(current)


def _release_order(appearance: VariantAppearance) -> tuple[bool, str, str]:
    # Undated sets sort after dated ones
    return (appearance.release_date is None, appearance.release_date or "", appearance.set_id)
