"""
Encyclopedia seeding and collection reconciliation.

Runs once per catalogue version bump:

1. Compare the stored version with the target. Up to date -> no writes.
2. In ONE transaction: drop the catalogue tables (migration only), recreate
   the schema, bulk upsert sets, cards, variants, appearances, pricing and
   variant-to-pricing links, then record the new version. Any failure rolls
   all of it back, including the drop, and leaves the version unchanged.
3. After a migration, purge collection entries whose variant no longer
   exists. This is a separate, best-effort scope on the collection store.
4. Invalidate every cached completion statistic.

There is no row-level diffing and no remapping of renamed variant ids: the
catalogue is replaced wholesale and the user's quantities survive only for
variant ids that still exist.
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from cardledger.db.database import CatalogueStore, SchemaStatus
from cardledger.db.operations import (
    chunked,
    create_encyclopedia_schema,
    delete_collection_entries,
    drop_catalogue_tables,
    get_collection_variant_ids,
    get_variant_ids,
    link_variant_pricing,
    set_catalogue_version,
    upsert_appearances,
    upsert_cards,
    upsert_pricing,
    upsert_sets,
    upsert_variants,
)
from cardledger.models.dataset import CatalogueDataset
from cardledger.models.failure import ReconciliationFailedError
from cardledger.services.completion_stats import CompletionStatsEngine

logger = logging.getLogger(__name__)

# Collection deletes per transaction during orphan cleanup
PURGE_BATCH_SIZE = 200


class Reconciler:
    """Rebuilds the encyclopedia from a dataset when the version is behind."""

    def __init__(self, store: CatalogueStore, stats: CompletionStatsEngine):
        self._store = store
        self._stats = stats
        # Startup paths may race; only one rebuild runs and later callers see it finished
        self._lock = asyncio.Lock()

    async def reconcile(self, dataset: CatalogueDataset, target_version: int) -> SchemaStatus:
        """
        Bring the encyclopedia to `target_version`.

        Returns which case applied so the caller can show a one-time message:
        FRESH ("setting up"), NEEDS_MIGRATION ("updating") or UP_TO_DATE.

        Concurrent calls run one at a time; a caller that waited behind a
        successful rebuild gets UP_TO_DATE.

        Raises:
            ReconciliationFailedError: the rebuild failed and was rolled back.
                Retrying with the same inputs is safe.
            StorageUnavailableError: the version marker could not be read.
        """
        async with self._lock:
            return await self._reconcile(dataset, target_version)

    async def _reconcile(self, dataset: CatalogueDataset, target_version: int) -> SchemaStatus:
        status = await self._store.status(target_version)

        if status is SchemaStatus.UP_TO_DATE:
            logger.info("Encyclopedia is up to date (version %d)", target_version)
            return status

        if status is SchemaStatus.FRESH:
            logger.info("Setting up card encyclopedia for the first time...")
        else:
            logger.info("Migrating card encyclopedia to version %d...", target_version)

        await self._rebuild(
            dataset,
            target_version,
            drop_existing=status is SchemaStatus.NEEDS_MIGRATION,
        )

        if status is SchemaStatus.NEEDS_MIGRATION:
            try:
                await self.purge_orphaned_entries()
            except SQLAlchemyError:
                # Catalogue is committed; leftover orphans are invisible to every view
                logger.exception("Orphaned collection cleanup failed; it can be retried")

        self._stats.invalidate_all()
        logger.info("Encyclopedia at version %d", target_version)
        return status

    async def _rebuild(
        self,
        dataset: CatalogueDataset,
        target_version: int,
        drop_existing: bool,
    ) -> None:
        try:
            async with self._store.encyclopedia_session() as session, session.begin():
                if drop_existing:
                    await drop_catalogue_tables(session)
                await create_encyclopedia_schema(session)

                # Dependency order: parents before the rows referencing them
                sets = await upsert_sets(session, dataset.sets)
                cards = await upsert_cards(session, dataset.cards)
                variants = await upsert_variants(session, dataset.variants)
                appearances = await upsert_appearances(session, dataset.variant_set_appearances)
                pricing = await upsert_pricing(session, dataset.pricing)
                links = await link_variant_pricing(session, dataset.variant_pricing_mappings)

                await set_catalogue_version(session, target_version)
        except SQLAlchemyError as e:
            logger.error("Encyclopedia rebuild to version %d failed: %s", target_version, e)
            raise ReconciliationFailedError(target_version, detail=str(e)) from e

        logger.info(
            "Inserted %d sets, %d cards, %d variants, %d appearances, %d pricing records "
            "(%d variants linked to pricing)",
            sets,
            cards,
            variants,
            appearances,
            pricing,
            links,
        )

    async def purge_orphaned_entries(self) -> int:
        """
        Delete collection entries whose variant is not in the encyclopedia.

        Keys only on variant existence: a variant with no set appearances is
        kept. Deletes are committed in independent batches, so a partial run
        can simply be repeated.

        Returns the number of entries removed.
        """
        async with self._store.encyclopedia_session() as session:
            valid_ids = await get_variant_ids(session)

        async with self._store.collection_session() as session:
            owned_ids = await get_collection_variant_ids(session)

        orphaned = sorted(owned_ids - valid_ids)
        if not orphaned:
            logger.info("No orphaned collection entries found")
            return 0

        removed = 0
        async with self._store.collection_session() as session:
            for batch in chunked(orphaned, PURGE_BATCH_SIZE):
                async with session.begin():
                    removed += await delete_collection_entries(session, batch)

        logger.info("Removed %d orphaned collection entries", removed)
        return removed
