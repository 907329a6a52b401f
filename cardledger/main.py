"""
Application wiring.

Builds the store handle once and injects it into every component. Call
`startup()` from whatever starts the app, then hand `services.queries` and
`services.stats` to the presentation layer.
"""

import logging
from dataclasses import dataclass

from cardledger.config import Settings
from cardledger.config import settings as default_settings
from cardledger.db.database import CatalogueStore, SchemaStatus
from cardledger.models.dataset import CatalogueDataset
from cardledger.services.completion_stats import CompletionStatsEngine
from cardledger.services.queries import CatalogueQueries
from cardledger.services.reconciler import Reconciler
from cardledger.services.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

# One-time message for the loading screen; None means show nothing
STATUS_MESSAGES: dict[SchemaStatus, str | None] = {
    SchemaStatus.FRESH: "Setting up card encyclopedia...",
    SchemaStatus.NEEDS_MIGRATION: "Updating card encyclopedia...",
    SchemaStatus.UP_TO_DATE: None,
}


@dataclass
class Services:
    """Every component, sharing one store handle."""

    settings: Settings
    store: CatalogueStore
    stats: CompletionStatsEngine
    queries: CatalogueQueries
    reconciler: Reconciler


@dataclass(frozen=True)
class StartupResult:
    status: SchemaStatus
    message: str | None


def create_services(settings: Settings | None = None) -> Services:
    """Build the component graph. Nothing touches storage until `startup()`."""
    settings = settings or default_settings
    store = CatalogueStore.from_settings(settings)
    stats = CompletionStatsEngine(
        store, cache=TTLCache(ttl_seconds=settings.stats_cache_ttl_seconds)
    )
    return Services(
        settings=settings,
        store=store,
        stats=stats,
        queries=CatalogueQueries(store, stats, search_batch_size=settings.search_batch_size),
        reconciler=Reconciler(store, stats),
    )


async def startup(services: Services, dataset: CatalogueDataset) -> StartupResult:
    """
    Open the stores and bring the encyclopedia to the configured version.

    Errors are not caught: the app cannot run without its stores.
    """
    await services.store.open()
    status = await services.reconciler.reconcile(dataset, services.settings.catalogue_version)
    return StartupResult(status=status, message=STATUS_MESSAGES[status])


async def shutdown(services: Services) -> None:
    """Close both stores and drop every cached statistic."""
    services.stats.invalidate_all()
    await services.store.close()


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
