"""
CardLedger services.

Reconciliation, queries and completion statistics over the two stores.
"""

from cardledger.services.completion_stats import CompletionStatsEngine
from cardledger.services.dataset import load_dataset
from cardledger.services.pricing import format_price
from cardledger.services.queries import CatalogueQueries
from cardledger.services.rarity import normalize_rarity, rarity_display_name
from cardledger.services.reconciler import Reconciler
from cardledger.services.search import (
    fuzzy_search_string,
    match_priority,
    normalize_search_string,
)
from cardledger.services.ttl_cache import TTLCache

__all__ = [
    "CatalogueQueries",
    "CompletionStatsEngine",
    "Reconciler",
    "TTLCache",
    "format_price",
    "fuzzy_search_string",
    "load_dataset",
    "match_priority",
    "normalize_rarity",
    "normalize_search_string",
    "rarity_display_name",
]
