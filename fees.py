"""
Fee recommendation engine.

Splits a total fee budget into a compute-unit priority fee and a block
engine tip, and derives such a budget from the public tip floor.

The split is a fixed 70/30 convention:

    total_lamports = floor(total_fee_sol * 1e9)
    priority       = floor(total_lamports * 0.7)
    tip            = max(floor(total_lamports * 0.3), MIN_TIP_LAMPORTS)
    total          = priority + tip

``total`` is recomputed after the tip floor is applied, so for very small
budgets the realized total is larger than the one requested.

All arithmetic is done on Decimal so that tip floor values such as
0.0003 SOL split to whole lamports without binary rounding drift.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from enum import Enum
from typing import Any, Dict, Optional, Union

from exceptions import NoDataError, EmptyDataError
from tip_market import TipMarketReader, TipSample
from validators import LAMPORTS_PER_SOL, lamports_to_sol, validate_fee_amount

logger = logging.getLogger(__name__)

MIN_TIP_LAMPORTS = 1000
PRIORITY_FEE_SHARE = Decimal("0.7")
JITO_TIP_SHARE = Decimal("0.3")

# SetComputeUnitPrice takes micro-lamports per compute unit
MICRO_LAMPORTS_DIVISOR = 1000


class TipPercentile(str, Enum):
    P50 = "p50"
    P75 = "p75"
    P95 = "p95"
    P99 = "p99"


_PERCENTILE_FIELDS = {
    TipPercentile.P50: "landed_tips_50th_percentile",
    TipPercentile.P75: "landed_tips_75th_percentile",
    TipPercentile.P95: "landed_tips_95th_percentile",
    TipPercentile.P99: "landed_tips_99th_percentile",
}


@dataclass(frozen=True)
class FeeRecommendation:
    """Priority fee / tip split in lamports, mirrored in SOL."""
    priority_fee_lamports: int
    jito_tip_lamports: int
    total_fee_lamports: int
    priority_fee_sol: Decimal
    jito_tip_sol: Decimal
    total_fee_sol: Decimal

    @property
    def compute_unit_price_micro_lamports(self) -> int:
        return self.priority_fee_lamports // MICRO_LAMPORTS_DIVISOR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priorityFeeLamports": self.priority_fee_lamports,
            "jitoTipLamports": self.jito_tip_lamports,
            "totalFeeLamports": self.total_fee_lamports,
            "priorityFeeSol": float(self.priority_fee_sol),
            "jitoTipSol": float(self.jito_tip_sol),
            "totalFeeSol": float(self.total_fee_sol),
        }


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def compute_split(total_fee_sol: Union[Decimal, float, int, str]) -> FeeRecommendation:
    """
    Split a total fee budget (in SOL) into priority fee and tip.

    Args:
        total_fee_sol: Total budget in SOL

    Returns:
        FeeRecommendation where total == priority + tip, with the tip
        never below MIN_TIP_LAMPORTS

    Raises:
        InvalidAmountError: If the amount is negative or not a number
    """
    total_sol = validate_fee_amount(total_fee_sol)
    total_lamports = _floor(total_sol * LAMPORTS_PER_SOL)

    priority_fee_lamports = _floor(Decimal(total_lamports) * PRIORITY_FEE_SHARE)
    jito_tip_lamports = max(
        _floor(Decimal(total_lamports) * JITO_TIP_SHARE),
        MIN_TIP_LAMPORTS,
    )
    realized_total = priority_fee_lamports + jito_tip_lamports

    return FeeRecommendation(
        priority_fee_lamports=priority_fee_lamports,
        jito_tip_lamports=jito_tip_lamports,
        total_fee_lamports=realized_total,
        priority_fee_sol=lamports_to_sol(priority_fee_lamports),
        jito_tip_sol=lamports_to_sol(jito_tip_lamports),
        total_fee_sol=lamports_to_sol(realized_total),
    )


def tip_for_percentile(sample: TipSample, percentile: TipPercentile) -> Decimal:
    return getattr(sample, _PERCENTILE_FIELDS[TipPercentile(percentile)])


def implied_total_from_tip(tip_sol: Decimal) -> Decimal:
    """Invert the 30% tip share: total = tip / 0.3.

    The tip floor is a market observation of tips alone. Treating it as
    the tip leg of this module's own 70/30 split means the priority fee
    is derived from the convention, never observed.
    """
    return tip_sol / JITO_TIP_SHARE


class FeeAdvisor:
    """Fee recommendations backed by the live tip floor."""

    def __init__(
        self,
        reader: Optional[TipMarketReader] = None,
        default_percentile: TipPercentile = TipPercentile.P75
    ):
        self.reader = reader or TipMarketReader()
        self.default_percentile = TipPercentile(default_percentile)

    async def recommend_from_percentile(
        self,
        percentile: Optional[TipPercentile] = None
    ) -> FeeRecommendation:
        """
        Recommend fees from the newest tip floor sample.

        The source returns samples newest first and no re-sorting is done,
        so element 0 is used as-is.

        Raises:
            TransportError: If the tip floor endpoint fails
            NoDataError: If the endpoint returned no samples
        """
        percentile = TipPercentile(percentile or self.default_percentile)
        try:
            samples = await self.reader.fetch_tip_samples()
        except EmptyDataError as e:
            raise NoDataError("No tip floor data available", context=e.context) from e

        if not samples:
            raise NoDataError("No tip floor data available")

        latest = samples[0]
        tip_sol = tip_for_percentile(latest, percentile)
        recommendation = compute_split(implied_total_from_tip(tip_sol))

        logger.debug(
            f"Tip floor {percentile.value}={tip_sol} SOL at {latest.time} -> "
            f"priority={recommendation.priority_fee_lamports} tip={recommendation.jito_tip_lamports}"
        )
        return recommendation

    async def close(self) -> None:
        await self.reader.close()

    async def __aenter__(self) -> "FeeAdvisor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = [
    "MIN_TIP_LAMPORTS",
    "PRIORITY_FEE_SHARE",
    "JITO_TIP_SHARE",
    "TipPercentile",
    "FeeRecommendation",
    "compute_split",
    "tip_for_percentile",
    "implied_total_from_tip",
    "FeeAdvisor",
]
