"""
Set completion statistics.

Computes per-set ownership broken down by rarity, over the unique cards that
appear in the set. Each computation is exactly two bulk queries:

1. Encyclopedia: every (card, card number, rarity, variant) appearance in the set
2. Collection: which of those variants are owned with quantity > 0

The fold into counts happens in memory. Results are cached per set id for a
fixed TTL, concurrent misses share one computation, and the mutation path
invalidates affected sets synchronously.
"""

import logging

from cardledger.config import settings
from cardledger.db.database import CatalogueStore
from cardledger.db.operations import get_owned_variant_ids, get_set_rarity_triples
from cardledger.models.stats import SetCompletionStats
from cardledger.services.card_numbers import appearance_sort_key
from cardledger.services.rarity import normalize_rarity
from cardledger.services.ttl_cache import TTLCache

logger = logging.getLogger(__name__)


class CompletionStatsEngine:
    """Cached, single-flight completion statistics per set."""

    def __init__(
        self,
        store: CatalogueStore,
        cache: TTLCache[str, SetCompletionStats] | None = None,
    ):
        self._store = store
        if cache is None:
            cache = TTLCache(ttl_seconds=settings.stats_cache_ttl_seconds)
        self._cache = cache

    async def get_set_completion_stats(self, set_id: str) -> SetCompletionStats:
        """
        Completion statistics for a set.

        Served from cache within the TTL. An unknown set id yields all-zero
        statistics. Storage errors propagate and are not cached.
        """
        return await self._cache.get_or_compute(set_id, lambda: self._compute(set_id))

    def invalidate(self, set_id: str) -> None:
        """Force the next read for `set_id` to recompute."""
        self._cache.invalidate(set_id)

    def invalidate_all(self) -> None:
        """Force every set to recompute on its next read."""
        self._cache.invalidate_all()

    async def _compute(self, set_id: str) -> SetCompletionStats:
        async with self._store.encyclopedia_session() as session:
            triples = await get_set_rarity_triples(session, set_id)

        variant_ids = sorted({row.variant_id for row in triples})
        owned_variants: set[str] = set()
        if variant_ids:
            async with self._store.collection_session() as session:
                owned_variants = await get_owned_variant_ids(session, variant_ids)

        # A card's rarity comes from its lowest-numbered appearance in the set
        lowest: dict[str, tuple[tuple[tuple[int, int, str], str], str | None]] = {}
        owned_cards: set[str] = set()
        for row in triples:
            key = appearance_sort_key(row.card_number, row.rarity)
            current = lowest.get(row.card_id)
            if current is None or key < current[0]:
                lowest[row.card_id] = (key, row.rarity)
            if row.variant_id in owned_variants:
                owned_cards.add(row.card_id)

        stats = SetCompletionStats()
        for card_id, (_, rarity) in lowest.items():
            bucket = stats.bucket(normalize_rarity(rarity))
            is_owned = card_id in owned_cards

            stats.total.total += 1
            bucket.total += 1
            if is_owned:
                stats.total.owned += 1
                bucket.owned += 1

        logger.debug(
            "Computed stats for %s: %d/%d cards owned",
            set_id,
            stats.total.owned,
            stats.total.total,
        )
        return stats
