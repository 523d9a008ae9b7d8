"""
Tests for the fee split and tip floor based recommendations.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from exceptions import (
    DeserializationError,
    EmptyDataError,
    InvalidAmountError,
    NoDataError,
    TransportError,
)
from fees import (
    MIN_TIP_LAMPORTS,
    FeeAdvisor,
    TipPercentile,
    compute_split,
    implied_total_from_tip,
    tip_for_percentile,
)
from tip_market import TipSample


class TestComputeSplit:
    """Tests for the 70/30 priority fee / tip split."""

    def test_regular_budget(self):
        rec = compute_split(Decimal("0.001"))

        assert rec.priority_fee_lamports == 700_000
        assert rec.jito_tip_lamports == 300_000
        assert rec.total_fee_lamports == 1_000_000
        assert rec.total_fee_sol == Decimal("0.001")

    @pytest.mark.parametrize("budget", ["0", "0.000001", "0.0000012345", "0.01", "1.5", "0.123456789"])
    def test_invariants(self, budget):
        rec = compute_split(budget)

        assert rec.total_fee_lamports == rec.priority_fee_lamports + rec.jito_tip_lamports
        assert rec.jito_tip_lamports >= MIN_TIP_LAMPORTS
        assert rec.priority_fee_lamports >= 0
        assert isinstance(rec.priority_fee_lamports, int)
        assert isinstance(rec.jito_tip_lamports, int)

    def test_minimum_tip_clamp(self):
        rec = compute_split("0.000001")  # 1000 lamports

        assert rec.priority_fee_lamports == 700
        assert rec.jito_tip_lamports == MIN_TIP_LAMPORTS
        assert rec.total_fee_lamports == 1700

    def test_zero_budget(self):
        rec = compute_split(0)

        assert rec.priority_fee_lamports == 0
        assert rec.jito_tip_lamports == MIN_TIP_LAMPORTS
        assert rec.total_fee_lamports == MIN_TIP_LAMPORTS

    def test_fractional_lamports_are_floored(self):
        rec = compute_split("0.0000123459")  # 12345.9 lamports -> 12345

        assert rec.priority_fee_lamports == 8641
        assert rec.jito_tip_lamports == 3703
        assert rec.total_fee_lamports == 12344

    def test_float_input(self):
        rec = compute_split(0.001)

        assert rec.priority_fee_lamports == 700_000
        assert rec.jito_tip_lamports == 300_000

    def test_sol_mirrors_lamports(self):
        rec = compute_split("0.002")

        assert rec.priority_fee_sol == Decimal("0.0014")
        assert rec.jito_tip_sol == Decimal("0.0006")

    def test_compute_unit_price(self):
        rec = compute_split("0.001")

        assert rec.compute_unit_price_micro_lamports == 700

    def test_to_dict(self):
        data = compute_split("0.001").to_dict()

        assert data["priorityFeeLamports"] == 700_000
        assert data["jitoTipLamports"] == 300_000
        assert data["totalFeeLamports"] == 1_000_000
        assert data["jitoTipSol"] == pytest.approx(0.0003)

    @pytest.mark.parametrize("bad", [-0.1, "abc", None, True, float("nan"), float("inf")])
    def test_rejects_invalid_amounts(self, bad):
        with pytest.raises(InvalidAmountError):
            compute_split(bad)


class TestTipInversion:

    def test_implied_total(self):
        assert implied_total_from_tip(Decimal("0.0003")) == Decimal("0.001")

    def test_percentile_lookup(self, tip_floor_sample):
        sample = TipSample.from_dict(tip_floor_sample)

        assert tip_for_percentile(sample, TipPercentile.P50) == Decimal("0.00001")
        assert tip_for_percentile(sample, TipPercentile.P75) == Decimal("0.0003")
        assert tip_for_percentile(sample, "p99") == Decimal("0.01")


class TestFeeAdvisor:
    """Tests for FeeAdvisor.recommend_from_percentile."""

    @pytest.fixture
    def reader(self, tip_floor_sample):
        reader = MagicMock()
        reader.fetch_tip_samples = AsyncMock(return_value=[TipSample.from_dict(tip_floor_sample)])
        reader.close = AsyncMock()
        return reader

    @pytest.mark.asyncio
    async def test_p75_recommendation(self, reader):
        advisor = FeeAdvisor(reader=reader)

        rec = await advisor.recommend_from_percentile(TipPercentile.P75)

        assert rec.priority_fee_lamports == 700_000
        assert rec.jito_tip_lamports == 300_000
        assert rec.total_fee_lamports == 1_000_000

    @pytest.mark.asyncio
    async def test_default_percentile_is_p75(self, reader):
        advisor = FeeAdvisor(reader=reader)

        rec = await advisor.recommend_from_percentile()

        assert rec.jito_tip_lamports == 300_000

    @pytest.mark.asyncio
    async def test_configured_default_percentile(self, reader):
        advisor = FeeAdvisor(reader=reader, default_percentile=TipPercentile.P99)

        # p99 = 0.01 SOL -> total 0.0333... SOL
        rec = await advisor.recommend_from_percentile()

        assert rec.jito_tip_lamports == 9_999_999

    @pytest.mark.asyncio
    async def test_uses_first_sample(self, reader, tip_floor_sample):
        older = dict(tip_floor_sample, landed_tips_75th_percentile=0.003)
        reader.fetch_tip_samples.return_value = [
            TipSample.from_dict(tip_floor_sample),
            TipSample.from_dict(older),
        ]
        advisor = FeeAdvisor(reader=reader)

        rec = await advisor.recommend_from_percentile(TipPercentile.P75)

        assert rec.jito_tip_lamports == 300_000

    @pytest.mark.asyncio
    async def test_small_percentile_hits_tip_floor(self, reader):
        advisor = FeeAdvisor(reader=reader)

        # p50 = 0.00001 SOL -> total 33333 lamports -> tip 9999 lamports
        rec = await advisor.recommend_from_percentile(TipPercentile.P50)

        assert rec.total_fee_lamports == rec.priority_fee_lamports + rec.jito_tip_lamports
        assert rec.jito_tip_lamports >= MIN_TIP_LAMPORTS

    @pytest.mark.asyncio
    async def test_empty_source_raises_no_data(self, reader):
        reader.fetch_tip_samples.side_effect = EmptyDataError("empty", source="tip_floor")
        advisor = FeeAdvisor(reader=reader)

        with pytest.raises(NoDataError):
            await advisor.recommend_from_percentile()

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, reader):
        reader.fetch_tip_samples.side_effect = TransportError("HTTP 503", status_code=503)
        advisor = FeeAdvisor(reader=reader)

        with pytest.raises(TransportError):
            await advisor.recommend_from_percentile()

    @pytest.mark.asyncio
    async def test_malformed_payload_propagates(self, reader):
        reader.fetch_tip_samples.side_effect = DeserializationError("bad", data_type="TipSample")
        advisor = FeeAdvisor(reader=reader)

        with pytest.raises(DeserializationError):
            await advisor.recommend_from_percentile()

    @pytest.mark.asyncio
    async def test_context_manager_closes_reader(self, reader):
        async with FeeAdvisor(reader=reader):
            pass

        reader.close.assert_awaited_once()
