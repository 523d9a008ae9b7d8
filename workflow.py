"""
Bundle submission workflow.

Validates a bundle of already-encoded transactions, optionally simulates
it, submits it to the block engine and tracks it to a terminal state.
A bundle whose simulation reports an error is never sent.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from bundle_tracker import (
    DEFAULT_CONFIRMATION_TIMEOUT,
    BundleStatus,
    BundleStatusTracker,
    StatusCallback,
)
from config import Settings, get_settings
from exceptions import BundleSimulationError
from fees import FeeAdvisor
from relay import BundleOptions, RelayClient, bundle_explorer_url
from simulator import (
    BundleSimulator,
    SimulationFailure,
    SimulationOptions,
    SimulationResult,
)
from tip_market import TipMarketReader
from validators import validate_encoded_transactions

logger = logging.getLogger(__name__)


@dataclass
class BundleOutcome:
    bundle_id: str
    simulation: Optional[SimulationResult]
    status: BundleStatus

    @property
    def landed(self) -> bool:
        return self.status.is_success

    @property
    def explorer_url(self) -> str:
        return bundle_explorer_url(self.bundle_id)


class BundleSubmitter:
    """
    Simulate, send and confirm bundles.

    Example:
        async with BundleSubmitter.from_settings() as submitter:
            outcome = await submitter.submit([tx1_b64, tx2_b64])
    """

    def __init__(
        self,
        relay: RelayClient,
        simulator: Optional[BundleSimulator] = None,
        tracker: Optional[BundleStatusTracker] = None,
        simulation_endpoint: Optional[str] = None,
        simulation_options: Optional[SimulationOptions] = None,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT
    ):
        self.relay = relay
        self.simulator = simulator or BundleSimulator()
        self.tracker = tracker or BundleStatusTracker(relay)
        self.simulation_endpoint = simulation_endpoint
        self.simulation_options = simulation_options
        self.confirmation_timeout = confirmation_timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "BundleSubmitter":
        settings = settings or get_settings()
        jito = settings.jito

        relay = RelayClient(
            block_engine_url=jito.block_engine_url,
            uuid=jito.uuid.get_secret_value() if jito.uuid else None,
            tip_accounts=jito.tip_accounts or None,
            timeout=jito.request_timeout
        )
        return cls(
            relay=relay,
            simulator=BundleSimulator(timeout=jito.request_timeout),
            tracker=BundleStatusTracker(relay, poll_interval=jito.poll_interval),
            simulation_endpoint=settings.simulation.endpoint(),
            simulation_options=SimulationOptions(
                skip_sig_verify=settings.simulation.skip_sig_verify,
                replace_recent_blockhash=settings.simulation.replace_recent_blockhash
            ),
            confirmation_timeout=jito.confirmation_timeout
        )

    async def submit(
        self,
        transactions: Sequence[str],
        simulation_endpoint: Optional[str] = None,
        simulation_options: Optional[SimulationOptions] = None,
        bundle_options: Optional[BundleOptions] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_status: Optional[StatusCallback] = None
    ) -> BundleOutcome:
        """
        Run one bundle through simulate -> send -> confirm.

        Simulation is skipped when no endpoint is configured or passed.

        Raises:
            BundleValidationError: If the bundle is empty or too large
            BundleSimulationError: If simulation reported an error; nothing was sent
            SubmissionError: If the relay returned no bundle id
            ConfirmationTimeoutError: If no terminal state was seen in time
            ConfirmationCancelledError: If ``cancel_event`` was set
        """
        encoded = validate_encoded_transactions(transactions)

        endpoint = simulation_endpoint or self.simulation_endpoint
        simulation: Optional[SimulationResult] = None

        if endpoint:
            simulation = await self.simulator.simulate(
                encoded,
                options=simulation_options or self.simulation_options,
                endpoint=endpoint
            )
            if isinstance(simulation, SimulationFailure):
                raise BundleSimulationError(
                    f"Bundle simulation failed: {simulation.err}",
                    err=simulation.err,
                    simulation_logs=simulation.logs or []
                )
        else:
            logger.debug("No simulation endpoint configured, sending without simulation")

        bundle_id = await self.relay.send_bundle(encoded, bundle_options)
        logger.info(f"Tracking bundle {bundle_id}: {bundle_explorer_url(bundle_id)}")

        status = await self.tracker.wait_for_terminal(
            bundle_id,
            timeout=timeout if timeout is not None else self.confirmation_timeout,
            cancel_event=cancel_event,
            on_status=on_status
        )

        return BundleOutcome(bundle_id=bundle_id, simulation=simulation, status=status)

    async def close(self) -> None:
        await self.simulator.close()
        await self.relay.close()

    async def __aenter__(self) -> "BundleSubmitter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def fee_advisor_from_settings(settings: Optional[Settings] = None) -> FeeAdvisor:
    settings = settings or get_settings()
    reader = TipMarketReader(url=settings.jito.tip_floor_url, timeout=settings.jito.request_timeout)
    return FeeAdvisor(reader=reader, default_percentile=settings.jito.default_percentile)


__all__ = [
    "BundleOutcome",
    "BundleSubmitter",
    "fee_advisor_from_settings",
]
