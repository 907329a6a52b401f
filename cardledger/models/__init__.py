from cardledger.models.catalogue import CardSet, Pricing
from cardledger.models.dataset import (
    AppearanceRecord,
    CardRecord,
    CatalogueDataset,
    PricingRecord,
    SetRecord,
    VariantRecord,
)
from cardledger.models.failure import (
    FailureKind,
    InvalidArgumentError,
    KnownError,
    NotInitializedError,
    QueryFailedError,
    ReconciliationFailedError,
    StorageUnavailableError,
)
from cardledger.models.stats import OwnershipCount, RarityCategory, SetCompletionStats
from cardledger.models.views import (
    CardSearchResult,
    OwnedVariant,
    SearchVariant,
    SetCard,
    VariantAppearance,
)

__all__ = [
    "AppearanceRecord",
    "CardRecord",
    "CardSearchResult",
    "CardSet",
    "CatalogueDataset",
    "FailureKind",
    "InvalidArgumentError",
    "KnownError",
    "NotInitializedError",
    "OwnedVariant",
    "OwnershipCount",
    "Pricing",
    "PricingRecord",
    "QueryFailedError",
    "RarityCategory",
    "ReconciliationFailedError",
    "SearchVariant",
    "SetCard",
    "SetCompletionStats",
    "SetRecord",
    "StorageUnavailableError",
    "VariantAppearance",
    "VariantRecord",
]
