"""
Bundle simulation against an RPC provider that implements simulateBundle.

There is no default endpoint: simulateBundle is a provider extension and
the caller must name an RPC that supports it.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

import aiohttp

from exceptions import ConfigurationError, DeserializationError
from rpc import JsonRpcClient, RpcResponse
from validators import validate_encoded_transactions, validate_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


@dataclass
class SimulationOptions:
    skip_sig_verify: bool = False
    replace_recent_blockhash: bool = False


@dataclass
class SimulationSuccess:
    slot: Optional[int]
    units_consumed: Optional[int] = None
    logs: Optional[List[List[str]]] = None
    return_data: Any = None

    @property
    def ok(self) -> bool:
        return True


@dataclass
class SimulationFailure:
    err: Any
    slot: Optional[int] = None
    units_consumed: Optional[int] = None
    logs: Optional[List[List[str]]] = None

    @property
    def ok(self) -> bool:
        return False


SimulationResult = Union[SimulationSuccess, SimulationFailure]


def group_logs(raw_logs: Any, transaction_count: int) -> Optional[List[List[str]]]:
    """
    Normalise simulation logs to one list of lines per submitted transaction.

    Missing groups (transactions that never executed because an earlier one
    failed) become empty lists; surplus groups are dropped.
    """
    if raw_logs is None:
        return None

    if not isinstance(raw_logs, list):
        raise DeserializationError(
            f"Simulation logs must be a list, got {type(raw_logs).__name__}",
            data_type="logs"
        )

    groups: List[List[str]] = []
    for entry in raw_logs[:transaction_count]:
        if entry is None:
            groups.append([])
        elif isinstance(entry, list):
            groups.append([str(line) for line in entry])
        else:
            groups.append([str(entry)])

    if len(raw_logs) > transaction_count:
        logger.warning(
            f"Simulation returned {len(raw_logs)} log groups for {transaction_count} transactions"
        )

    while len(groups) < transaction_count:
        groups.append([])

    return groups


def parse_simulation_response(response: RpcResponse, transaction_count: int) -> SimulationResult:
    result = response.raise_for_error("simulateBundle")

    if not isinstance(result, dict):
        raise DeserializationError(
            "simulateBundle response carried no result object",
            data_type="SimulationResult"
        )

    context = result.get("context") or {}
    slot = context.get("slot") if isinstance(context, dict) else None
    logs = group_logs(result.get("logs"), transaction_count)
    units_consumed = result.get("unitsConsumed")

    err = result.get("err")
    if err is not None:
        return SimulationFailure(
            err=err,
            slot=slot,
            units_consumed=units_consumed,
            logs=logs
        )

    return SimulationSuccess(
        slot=slot,
        units_consumed=units_consumed,
        logs=logs,
        return_data=result.get("returnData")
    )


class BundleSimulator(JsonRpcClient):

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None
    ):
        super().__init__(timeout=timeout, session=session)

    async def simulate(
        self,
        transactions: Sequence[str],
        options: Optional[SimulationOptions] = None,
        endpoint: Optional[str] = None
    ) -> SimulationResult:
        """
        Simulate a bundle of encoded transactions.

        Args:
            transactions: Encoded transactions in bundle order
            options: Signature / blockhash flags
            endpoint: RPC URL implementing simulateBundle (required)

        Returns:
            SimulationSuccess, or SimulationFailure when the simulator
            reported an ``err``. Logs are grouped per transaction.

        Raises:
            ConfigurationError: If no endpoint was given
            BundleValidationError: If the bundle is empty or too large
            TransportError: On non-2xx status or connection failure
            JsonRpcError: If the endpoint returned a JSON-RPC error object
        """
        if not endpoint:
            raise ConfigurationError(
                "RPC endpoint is required for bundle simulation",
                parameter="endpoint"
            )
        endpoint = validate_url(endpoint, field_name="endpoint")
        encoded = validate_encoded_transactions(transactions)
        options = options or SimulationOptions()

        params = [
            {
                "encodedTransactions": encoded,
                "skipSigVerify": options.skip_sig_verify,
                "replaceRecentBlockhash": options.replace_recent_blockhash,
            }
        ]

        response = await self.call(endpoint, "simulateBundle", params)
        outcome = parse_simulation_response(response, len(encoded))

        if isinstance(outcome, SimulationFailure):
            logger.warning(f"Bundle simulation failed at slot {outcome.slot}: {outcome.err}")
        else:
            logger.info(
                f"Bundle simulation succeeded at slot {outcome.slot}, "
                f"units consumed: {outcome.units_consumed if outcome.units_consumed is not None else 'N/A'}"
            )
        return outcome


__all__ = [
    "SimulationOptions",
    "SimulationSuccess",
    "SimulationFailure",
    "SimulationResult",
    "group_logs",
    "parse_simulation_response",
    "BundleSimulator",
]
