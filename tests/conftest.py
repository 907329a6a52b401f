from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine

from cardledger.db.database import CatalogueStore
from cardledger.models.dataset import (
    AppearanceRecord,
    CardRecord,
    CatalogueDataset,
    PricingRecord,
    SetRecord,
    VariantRecord,
)
from cardledger.services.completion_stats import CompletionStatsEngine
from cardledger.services.queries import CatalogueQueries
from cardledger.services.reconciler import Reconciler
from cardledger.services.ttl_cache import TTLCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StatementRecorder:
    """Records every SQL statement sent to the driver while watching."""

    def __init__(self) -> None:
        self.statements: list[str] = []

    def _on_execute(
        self,
        _conn: Any,
        _cursor: Any,
        statement: str,
        _parameters: Any,
        _context: Any,
        _executemany: bool,
    ) -> None:
        self.statements.append(statement)

    @contextmanager
    def watch(self, *engines: AsyncEngine) -> Iterator["StatementRecorder"]:
        for engine in engines:
            event.listen(engine.sync_engine, "before_cursor_execute", self._on_execute)
        try:
            yield self
        finally:
            for engine in engines:
                event.remove(engine.sync_engine, "before_cursor_execute", self._on_execute)

    def selects(self) -> list[str]:
        return [s for s in self.statements if s.lstrip().upper().startswith("SELECT")]

    def writes(self) -> list[str]:
        verbs = ("INSERT", "UPDATE", "DELETE", "DROP", "CREATE")
        return [s for s in self.statements if s.lstrip().upper().startswith(verbs)]


def make_urls(directory: Path) -> tuple[str, str]:
    return (
        f"sqlite+aiosqlite:///{directory / 'encyclopedia.db'}",
        f"sqlite+aiosqlite:///{directory / 'collection.db'}",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> StatementRecorder:
    return StatementRecorder()


@pytest.fixture
def store_urls(tmp_path: Path) -> tuple[str, str]:
    return make_urls(tmp_path)


@pytest.fixture
async def store(store_urls: tuple[str, str]) -> AsyncIterator[CatalogueStore]:
    """Opened store backed by temporary SQLite files."""
    store = CatalogueStore(*store_urls)
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def stats(store: CatalogueStore, clock: FakeClock) -> CompletionStatsEngine:
    return CompletionStatsEngine(store, cache=TTLCache(ttl_seconds=30.0, clock=clock))


@pytest.fixture
def queries(store: CatalogueStore, stats: CompletionStatsEngine) -> CatalogueQueries:
    # Small batches so searches exercise more than one batch
    return CatalogueQueries(store, stats, search_batch_size=2)


@pytest.fixture
def reconciler(store: CatalogueStore, stats: CompletionStatsEngine) -> Reconciler:
    return Reconciler(store, stats)


@pytest.fixture
def sample_dataset() -> CatalogueDataset:
    """
    A small catalogue.

    hoth-limited holds four cards numbered 2, 10, 1 and P1 with rarities
    C1, U2, R1 and none. Han's Speeder is reprinted in the undated First
    Anthology, which also carries a foil only printed there. Ace Snowspeeder
    has a variant with no set appearance at all.
    """
    return CatalogueDataset(
        sets=[
            SetRecord(
                id="premiere-limited",
                name="Premiere",
                abbreviation="PR",
                release_date="1995-12-01",
            ),
            SetRecord(
                id="premiere-unlimited",
                name="Premiere Unlimited",
                abbreviation="PR-U",
                release_date="1996-05-29",
            ),
            SetRecord(
                id="hoth-limited",
                name="Hoth",
                abbreviation="HOTH",
                release_date="1996-11-01",
                icon_path="icon_set_hoth",
            ),
            SetRecord(id="first-anthology", name="First Anthology", abbreviation="FA"),
        ],
        cards=[
            CardRecord(id="luke_limited", name="Luke Skywalker", side="light", type="Character"),
            CardRecord(id="luke_unlimited", name="Luke Skywalker", side="light", type="Character"),
            CardRecord(id="echo_limited", name="Echo Base Trooper", side="light", type="Character"),
            CardRecord(id="speeder_limited", name="Han's Speeder", side="light", type="Vehicle"),
            CardRecord(id="wampa_limited", name="Wampa", side="dark", type="Creature"),
            CardRecord(
                id="promo_limited", name="Hoth Promo Trooper", side="light", type="Character"
            ),
            CardRecord(
                id="escort_limited", name="Snow Speeder Escort", side="light", type="Vehicle"
            ),
            CardRecord(id="ace_limited", name="Ace Snowspeeder", side="light", type="Vehicle"),
        ],
        variants=[
            VariantRecord(
                id="luke_limited", card_id="luke_limited", name="Black Border", code="BB"
            ),
            VariantRecord(
                id="luke_unlimited", card_id="luke_unlimited", name="White Border", code="WB"
            ),
            VariantRecord(
                id="echo_limited", card_id="echo_limited", name="Black Border", code="BB"
            ),
            VariantRecord(
                id="speeder_limited", card_id="speeder_limited", name="Black Border", code="BB"
            ),
            VariantRecord(
                id="speeder_limited_foil",
                card_id="speeder_limited",
                name="Black Border Holo",
                code="BBH",
                details="Anthology foil",
            ),
            VariantRecord(
                id="wampa_limited", card_id="wampa_limited", name="Black Border", code="BB"
            ),
            VariantRecord(
                id="promo_limited", card_id="promo_limited", name="Black Border", code="BB"
            ),
            VariantRecord(
                id="escort_limited", card_id="escort_limited", name="Black Border", code="BB"
            ),
            VariantRecord(id="ace_limited", card_id="ace_limited", name="Prototype", code="PT"),
        ],
        variant_set_appearances=[
            AppearanceRecord(
                set_id="premiere-limited", variant_id="luke_limited", card_number="1", rarity="R1"
            ),
            AppearanceRecord(
                set_id="premiere-unlimited",
                variant_id="luke_unlimited",
                card_number="1",
                rarity="R1",
            ),
            AppearanceRecord(
                set_id="hoth-limited", variant_id="echo_limited", card_number="2", rarity="C1"
            ),
            AppearanceRecord(
                set_id="hoth-limited", variant_id="speeder_limited", card_number="10", rarity="U2"
            ),
            AppearanceRecord(
                set_id="hoth-limited", variant_id="wampa_limited", card_number="1", rarity="R1"
            ),
            AppearanceRecord(set_id="hoth-limited", variant_id="promo_limited", card_number="P1"),
            AppearanceRecord(
                set_id="first-anthology",
                variant_id="speeder_limited",
                card_number="5",
                rarity="PM",
            ),
            AppearanceRecord(
                set_id="first-anthology",
                variant_id="speeder_limited_foil",
                card_number="12",
                rarity="F",
            ),
            AppearanceRecord(
                set_id="first-anthology",
                variant_id="escort_limited",
                card_number="7",
                rarity="C2",
            ),
        ],
        pricing=[
            PricingRecord(
                card_name="Luke Skywalker",
                external_product_id=1001,
                external_product_name="Luke Skywalker [Limited]",
                external_set_name="Star Wars Premiere",
                ungraded_price=2500,
                grade9_price=12000,
                last_updated="2025-01-15",
            ),
        ],
        variant_pricing_mappings={
            "luke_limited": 1001,
            # No pricing record exists for this product
            "luke_unlimited": 9999,
        },
    )
