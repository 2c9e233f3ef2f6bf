"""
Unit Tests - Provider Registry
Priority ordering, fallback, merged search, batch resolution and the error log.
"""
from datetime import date
import pytest
from unittest.mock import AsyncMock, patch

from portfolio_pricing.data_providers.adapters.base import AssetClass, AssetSearchResult
from portfolio_pricing.data_providers.registry import ProviderRegistry


def _registry(*providers) -> ProviderRegistry:
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider)
    return registry


class TestPriorityAndFallback:
    """Current price and historical lookups."""

    @pytest.mark.asyncio
    async def test_first_success_short_circuits(self, make_provider):
        first = make_provider("first", priority=1, prices={"AAPL": 150})
        second = make_provider("second", priority=2, prices={"AAPL": 151})
        third = make_provider("third", priority=3, prices={"AAPL": 152})
        registry = _registry(third, first, second)

        price = await registry.get_current_price("aapl")

        assert price.price == 150
        assert first.calls["price"] == ["AAPL"]
        assert second.calls["price"] == []
        assert third.calls["price"] == []

    @pytest.mark.asyncio
    async def test_falls_back_in_priority_order(self, make_provider):
        first = make_provider("first", priority=1)
        second = make_provider("second", priority=2)
        third = make_provider("third", priority=3, prices={"AAPL": 152})
        registry = _registry(first, second, third)

        price = await registry.get_current_price("AAPL")

        assert price.source == "Third"
        assert len(first.calls["price"]) == 1
        assert len(second.calls["price"]) == 1

    @pytest.mark.asyncio
    async def test_returns_none_when_all_fail(self, make_provider):
        registry = _registry(make_provider("a", priority=1), make_provider("b", priority=2))
        assert await registry.get_current_price("AAPL") is None

    @pytest.mark.asyncio
    async def test_timeout_is_logged_and_next_provider_used(self, registry, equities_a, equities_b):
        price = await registry.get_current_price("AAPL")

        assert price.price == 150.25
        errors = registry.get_recent_errors()
        assert len(errors) == 1
        assert errors[0].provider == "equities_a"
        assert errors[0].symbol == "AAPL"

    @pytest.mark.asyncio
    async def test_provider_that_raises_is_contained(self, make_provider):
        first = make_provider("first", priority=1)
        first.get_current_price = AsyncMock(side_effect=RuntimeError("boom"))
        second = make_provider("second", priority=2, prices={"AAPL": 10})
        registry = _registry(first, second)

        price = await registry.get_current_price("AAPL")

        assert price.price == 10
        assert [e.error for e in registry.get_recent_errors()] == ["boom"]

    @pytest.mark.asyncio
    async def test_disabled_providers_are_skipped(self, make_provider):
        off = make_provider("off", priority=1, enabled=False, prices={"AAPL": 1})
        on = make_provider("on", priority=2, prices={"AAPL": 2})
        registry = _registry(off, on)

        price = await registry.get_current_price("AAPL")

        assert price.price == 2
        assert off.calls["price"] == []

    def test_ties_keep_registration_order(self, make_provider):
        registry = _registry(
            make_provider("b", priority=5),
            make_provider("a", priority=5),
            make_provider("c", priority=1),
        )
        assert [p.name for p in registry.providers] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_historical_first_non_empty_wins(self, make_provider, history_factory):
        empty = make_provider("empty", priority=1)
        full = make_provider("full", priority=2, history={"AAPL": history_factory("AAPL", date(2024, 1, 1), 5)})
        later = make_provider("later", priority=3, history={"AAPL": history_factory("AAPL", date(2024, 1, 1), 5)})
        registry = _registry(empty, full, later)

        points = await registry.get_historical_prices("AAPL", date(2024, 1, 1), date(2024, 1, 31))

        assert len(points) == 5
        assert empty.calls["historical"] == ["AAPL"]
        assert later.calls["historical"] == []


class TestSearch:
    """Merged search."""

    @pytest.mark.asyncio
    async def test_merges_and_deduplicates(self, make_provider):
        first = make_provider("first", priority=1, search=[
            AssetSearchResult("AAPL", "Apple Inc.", AssetClass.STOCK),
            AssetSearchResult("MSFT", "Microsoft", AssetClass.STOCK),
        ])
        second = make_provider("second", priority=2, search=[
            AssetSearchResult("aapl", "Apple (dup)", AssetClass.STOCK),
            AssetSearchResult("AAPL", "Apple token", AssetClass.CRYPTO),
        ])
        registry = _registry(first, second)

        results = await registry.search_assets("apple")

        identities = [r.identity for r in results]
        assert len(identities) == len(set(identities)) == 3
        # First seen wins
        assert results[0].name == "Apple Inc."
        assert results[2].asset_class == AssetClass.CRYPTO

    @pytest.mark.asyncio
    async def test_stops_at_ten_and_skips_later_providers(self, make_provider):
        first = make_provider("first", priority=1, search=[
            AssetSearchResult(f"S{i}", f"Stock {i}", AssetClass.STOCK) for i in range(12)
        ])
        second = make_provider("second", priority=2, search=[
            AssetSearchResult("EXTRA", "Extra", AssetClass.STOCK),
        ])
        registry = _registry(first, second)

        results = await registry.search_assets("s")

        assert len(results) == 10
        assert second.calls["search"] == []

    @pytest.mark.asyncio
    async def test_failed_provider_does_not_block_merge(self, make_provider):
        broken = make_provider("broken", priority=1, fail_with=ValueError("bad json"))
        good = make_provider("good", priority=2, search=[AssetSearchResult("BTC", "Bitcoin", AssetClass.CRYPTO)])
        registry = _registry(broken, good)

        results = await registry.search_assets("bit")

        assert [r.symbol for r in results] == ["BTC"]
        assert registry.get_recent_errors()[0].provider == "broken"


class TestBatch:
    """Batch resolution."""

    @pytest.mark.asyncio
    async def test_later_providers_only_see_unresolved_symbols(self, make_provider):
        first = make_provider("first", priority=1, batch_size=2, prices={"A": 1, "B": 2})
        second = make_provider("second", priority=2, batch_size=10, prices={"C": 3, "A": 99})
        registry = _registry(first, second)

        prices = await registry.get_batch_prices(["a", "B", "C", "D", "A"])

        assert {s: p.price for s, p in prices.items()} == {"A": 1, "B": 2, "C": 3}
        assert sorted(first.calls["price"]) == ["A", "B", "C", "D"]
        assert sorted(second.calls["price"]) == ["C", "D"]

    @pytest.mark.asyncio
    async def test_sleeps_between_chunks_not_after_last(self, make_provider):
        provider = make_provider("p", priority=1, batch_size=2, batch_delay=1.5, prices={"A": 1, "B": 1, "C": 1, "D": 1, "E": 1})
        registry = _registry(provider)

        with patch("portfolio_pricing.data_providers.registry.asyncio.sleep", new=AsyncMock()) as sleep:
            prices = await registry.get_batch_prices(["A", "B", "C", "D", "E"])

        assert len(prices) == 5
        # Three chunks -> two delays
        delays = [c.args[0] for c in sleep.await_args_list if c.args and c.args[0] == 1.5]
        assert len(delays) == 2

    @pytest.mark.asyncio
    async def test_stops_once_everything_resolved(self, make_provider):
        first = make_provider("first", priority=1, prices={"A": 1})
        second = make_provider("second", priority=2, prices={"A": 2})
        registry = _registry(first, second)

        await registry.get_batch_prices(["A"])

        assert second.calls["price"] == []


class TestErrorLogAndConfig:
    """Error buffer, status and runtime configuration."""

    @pytest.mark.asyncio
    async def test_error_buffer_is_bounded(self, make_provider):
        broken = make_provider("broken", priority=1, fail_with=ValueError("nope"))
        registry = _registry(broken)

        for i in range(150):
            await registry.get_current_price(f"S{i}")

        assert len(registry.get_recent_errors(limit=1000)) == 100
        recent = registry.get_recent_errors()
        assert len(recent) == 20
        assert recent[-1].symbol == "S149"

    @pytest.mark.asyncio
    async def test_clear_errors(self, registry):
        await registry.get_current_price("AAPL")
        registry.clear_errors()
        assert registry.get_recent_errors() == []

    def test_update_unknown_provider(self, registry):
        assert registry.update_provider_config("missing", enabled=False) is False

    def test_update_priority_resorts(self, registry):
        assert registry.update_provider_config("crypto", priority=0) is True
        assert registry.providers[0].name == "crypto"

    def test_toggle_enabled(self, registry):
        registry.update_provider_config("equities_b", enabled=False)
        assert "equities_b" not in [p.name for p in registry.enabled_providers]

    def test_api_key_enables_key_gated_provider(self, make_provider):
        gated = make_provider("gated", priority=2, requires_api_key=True, enabled=False)
        registry = _registry(gated)

        registry.update_provider_config("gated", enabled=True)
        assert gated.enabled is False

        registry.update_provider_config("gated", api_key="secret")
        assert gated.enabled is True
        assert gated.config.api_key == "secret"

        registry.update_provider_config("gated", clear_api_key=True)
        assert gated.enabled is False

    def test_provider_status_snapshot(self, registry):
        status = registry.get_provider_status()

        assert [s["name"] for s in status] == ["equities_a", "equities_b", "crypto"]
        assert {"name", "enabled", "priority", "last_call", "min_call_interval"} <= set(status[0])
