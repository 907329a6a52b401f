from dataclasses import dataclass, field
from enum import Enum


class RarityCategory(str, Enum):
    """Bucket a raw rarity code falls into."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    OTHER = "other"


@dataclass
class OwnershipCount:
    """Owned versus total unique cards."""

    owned: int = 0
    total: int = 0

    @property
    def percentage(self) -> float:
        """Owned share in percent, 0.0 for an empty bucket."""
        if self.total == 0:
            return 0.0
        return self.owned / self.total * 100


@dataclass
class SetCompletionStats:
    """
    Completion of one set, overall and by rarity.

    Counts are over unique cards: a card is owned once if any of its
    variants in the set has quantity > 0.
    """

    total: OwnershipCount = field(default_factory=OwnershipCount)
    common: OwnershipCount = field(default_factory=OwnershipCount)
    uncommon: OwnershipCount = field(default_factory=OwnershipCount)
    rare: OwnershipCount = field(default_factory=OwnershipCount)
    other: OwnershipCount = field(default_factory=OwnershipCount)

    def bucket(self, category: RarityCategory) -> OwnershipCount:
        """Counts for a rarity category."""
        return {
            RarityCategory.COMMON: self.common,
            RarityCategory.UNCOMMON: self.uncommon,
            RarityCategory.RARE: self.rare,
            RarityCategory.OTHER: self.other,
        }[category]

    @property
    def completion_percentage(self) -> float:
        return self.total.percentage

    @property
    def is_complete(self) -> bool:
        """True if every card in the set is owned."""
        return self.total.total > 0 and self.total.owned == self.total.total
