from cardledger.db.database import CatalogueStore, SchemaStatus
from cardledger.db.operations import (
    get_all_sets,
    get_collection_entry,
    get_quantities,
    link_variant_pricing,
    pricing_to_model,
    set_to_model,
    upsert_appearances,
    upsert_cards,
    upsert_collection_entry,
    upsert_pricing,
    upsert_sets,
    upsert_variants,
)

__all__ = [
    "CatalogueStore",
    "SchemaStatus",
    "get_all_sets",
    "get_collection_entry",
    "get_quantities",
    "link_variant_pricing",
    "pricing_to_model",
    "set_to_model",
    "upsert_appearances",
    "upsert_cards",
    "upsert_collection_entry",
    "upsert_pricing",
    "upsert_sets",
    "upsert_variants",
]
