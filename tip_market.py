"""
Tip floor reader for the Jito bundles API.

Fetches recent landed-tip percentiles. No caching and no retries: every
call hits the endpoint and failures go straight back to the caller.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import aiohttp

from exceptions import DeserializationError, EmptyDataError
from rpc import BaseHttpClient

logger = logging.getLogger(__name__)

TIP_FLOOR_URL = "https://bundles.jito.wtf/api/v1/bundles/tip_floor"
DEFAULT_TIMEOUT = 10


@dataclass(frozen=True)
class TipSample:
    """One tip floor observation. Values are in SOL."""
    time: str
    landed_tips_25th_percentile: Decimal
    landed_tips_50th_percentile: Decimal
    landed_tips_75th_percentile: Decimal
    landed_tips_95th_percentile: Decimal
    landed_tips_99th_percentile: Decimal
    ema_landed_tips_50th_percentile: Decimal

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TipSample":
        def amount(key: str) -> Decimal:
            raw = data[key]
            if isinstance(raw, bool) or raw is None:
                raise ValueError(f"{key} is not a number")
            return Decimal(str(raw))

        try:
            return cls(
                time=str(data.get("time", "")),
                landed_tips_25th_percentile=amount("landed_tips_25th_percentile"),
                landed_tips_50th_percentile=amount("landed_tips_50th_percentile"),
                landed_tips_75th_percentile=amount("landed_tips_75th_percentile"),
                landed_tips_95th_percentile=amount("landed_tips_95th_percentile"),
                landed_tips_99th_percentile=amount("landed_tips_99th_percentile"),
                ema_landed_tips_50th_percentile=amount("ema_landed_tips_50th_percentile"),
            )
        except (KeyError, ValueError, TypeError, InvalidOperation, AttributeError) as e:
            raise DeserializationError(
                f"Malformed tip floor sample: {e}", data_type="TipSample"
            ) from e


class TipMarketReader(BaseHttpClient):

    def __init__(
        self,
        url: str = TIP_FLOOR_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None
    ):
        super().__init__(timeout=timeout, session=session)
        self.url = url

    async def fetch_tip_samples(self) -> List[TipSample]:
        """
        Fetch the tip floor series, newest first as served.

        Raises:
            TransportError: On connection failure or non-2xx status
            EmptyDataError: If the endpoint returned an empty array
            DeserializationError: If the payload is not an array of samples
        """
        data = await self._get_json(self.url)

        if not isinstance(data, list):
            raise DeserializationError(
                f"Expected a JSON array from tip floor, got {type(data).__name__}",
                data_type="list"
            )

        if not data:
            raise EmptyDataError("Tip floor returned no samples", source=self.url)

        samples = [TipSample.from_dict(item) for item in data]
        logger.debug(f"Fetched {len(samples)} tip floor samples, newest at {samples[0].time}")
        return samples

    async def latest_sample(self) -> TipSample:
        samples = await self.fetch_tip_samples()
        return samples[0]


__all__ = [
    "TIP_FLOOR_URL",
    "TipSample",
    "TipMarketReader",
]
