"""
Tests for the simulate -> send -> confirm workflow.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from bundle_tracker import BundleState, BundleStatus, StatusShape
from config import Settings
from exceptions import (
    BundleSimulationError,
    BundleValidationError,
    ConfirmationTimeoutError,
    TransportError,
)
from fees import TipPercentile
from relay import BundleOptions, RelayClient
from simulator import SimulationFailure, SimulationOptions, SimulationSuccess
from workflow import BundleOutcome, BundleSubmitter, fee_advisor_from_settings

TXS = ["dHgx", "dHgy"]
ENDPOINT = "https://rpc.example.com"
BUNDLE_ID = "bundle-abc"


class TestBundleSubmitter:

    @pytest.fixture
    def relay(self):
        relay = MagicMock()
        relay.send_bundle = AsyncMock(return_value=BUNDLE_ID)
        relay.close = AsyncMock()
        return relay

    @pytest.fixture
    def simulator(self):
        simulator = MagicMock()
        simulator.simulate = AsyncMock(return_value=SimulationSuccess(slot=10, units_consumed=500))
        simulator.close = AsyncMock()
        return simulator

    @pytest.fixture
    def landed(self):
        return BundleStatus(shape=StatusShape.INFLIGHT, state=BundleState.LANDED, bundle_id=BUNDLE_ID, slot=42)

    @pytest.fixture
    def tracker(self, landed):
        tracker = MagicMock()
        tracker.wait_for_terminal = AsyncMock(return_value=landed)
        return tracker

    @pytest.fixture
    def submitter(self, relay, simulator, tracker):
        return BundleSubmitter(relay, simulator=simulator, tracker=tracker, confirmation_timeout=30)

    @pytest.mark.asyncio
    async def test_happy_path(self, submitter, relay, simulator, tracker, landed):
        outcome = await submitter.submit(TXS, simulation_endpoint=ENDPOINT)

        assert isinstance(outcome, BundleOutcome)
        assert outcome.bundle_id == BUNDLE_ID
        assert outcome.status is landed
        assert outcome.landed
        assert outcome.simulation.ok
        assert outcome.explorer_url.endswith(BUNDLE_ID)

        simulator.simulate.assert_awaited_once()
        assert simulator.simulate.await_args.kwargs["endpoint"] == ENDPOINT
        relay.send_bundle.assert_awaited_once_with(TXS, None)
        tracker.wait_for_terminal.assert_awaited_once()
        assert tracker.wait_for_terminal.await_args.kwargs["timeout"] == 30

    @pytest.mark.asyncio
    async def test_failed_simulation_is_never_sent(self, submitter, relay, simulator, tracker):
        simulator.simulate.return_value = SimulationFailure(
            err={"TransactionFailure": "InstructionError"},
            slot=10,
            logs=[["ok"], ["custom program error: 0x1"]]
        )

        with pytest.raises(BundleSimulationError) as exc_info:
            await submitter.submit(TXS, simulation_endpoint=ENDPOINT)

        assert exc_info.value.simulation_logs == [["ok"], ["custom program error: 0x1"]]
        assert exc_info.value.err == {"TransactionFailure": "InstructionError"}
        relay.send_bundle.assert_not_awaited()
        tracker.wait_for_terminal.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_simulation_transport_error_stops_submission(self, submitter, relay, simulator):
        simulator.simulate.side_effect = TransportError("HTTP 500", status_code=500)

        with pytest.raises(TransportError):
            await submitter.submit(TXS, simulation_endpoint=ENDPOINT)

        relay.send_bundle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_endpoint_skips_simulation(self, submitter, relay, simulator):
        outcome = await submitter.submit(TXS)

        assert outcome.simulation is None
        simulator.simulate.assert_not_awaited()
        relay.send_bundle.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_default_endpoint_and_options(self, relay, simulator, tracker):
        options = SimulationOptions(skip_sig_verify=True)
        submitter = BundleSubmitter(
            relay, simulator=simulator, tracker=tracker,
            simulation_endpoint=ENDPOINT, simulation_options=options
        )

        await submitter.submit(TXS)

        kwargs = simulator.simulate.await_args.kwargs
        assert kwargs["endpoint"] == ENDPOINT
        assert kwargs["options"] is options

    @pytest.mark.asyncio
    async def test_passes_bundle_options_and_cancellation(self, submitter, relay, tracker):
        bundle_options = BundleOptions(encoding="base58")
        on_status = MagicMock()
        cancel = MagicMock()

        await submitter.submit(TXS, bundle_options=bundle_options, timeout=5, cancel_event=cancel, on_status=on_status)

        relay.send_bundle.assert_awaited_once_with(TXS, bundle_options)
        kwargs = tracker.wait_for_terminal.await_args.kwargs
        assert kwargs["timeout"] == 5
        assert kwargs["cancel_event"] is cancel
        assert kwargs["on_status"] is on_status

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, submitter, tracker):
        tracker.wait_for_terminal.side_effect = ConfirmationTimeoutError(
            "timed out", bundle_id=BUNDLE_ID, elapsed=30.0, timeout=30.0
        )

        with pytest.raises(ConfirmationTimeoutError):
            await submitter.submit(TXS)

    @pytest.mark.asyncio
    async def test_invalid_bundle(self, submitter, relay, simulator):
        with pytest.raises(BundleValidationError):
            await submitter.submit(["tx"] * 6, simulation_endpoint=ENDPOINT)

        simulator.simulate.assert_not_awaited()
        relay.send_bundle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close(self, submitter, relay, simulator):
        async with submitter:
            pass

        relay.close.assert_awaited_once()
        simulator.close.assert_awaited_once()


class TestFromSettings:

    def test_builds_clients_from_settings(self, monkeypatch):
        monkeypatch.setenv("JITO_BLOCK_ENGINE_URL", "https://ny.mainnet.block-engine.jito.wtf/api/v1")
        monkeypatch.setenv("JITO_UUID", "secret-uuid")
        monkeypatch.setenv("JITO_POLL_INTERVAL", "0.5")
        monkeypatch.setenv("JITO_CONFIRMATION_TIMEOUT", "45")
        monkeypatch.setenv("SIMULATION_RPC_URL", ENDPOINT)
        monkeypatch.setenv("SIMULATION_SKIP_SIG_VERIFY", "true")

        submitter = BundleSubmitter.from_settings(Settings())

        assert isinstance(submitter.relay, RelayClient)
        assert submitter.relay.uuid == "secret-uuid"
        assert submitter.relay.bundles_url == "https://ny.mainnet.block-engine.jito.wtf/api/v1/bundles"
        assert submitter.tracker.poll_interval == 0.5
        assert submitter.confirmation_timeout == 45
        assert submitter.simulation_endpoint == ENDPOINT
        assert submitter.simulation_options.skip_sig_verify is True

    def test_fee_advisor_from_settings(self, monkeypatch):
        monkeypatch.setenv("JITO_TIP_FLOOR_URL", "https://tips.example.com/tip_floor")
        monkeypatch.setenv("JITO_DEFAULT_PERCENTILE", "p99")

        advisor = fee_advisor_from_settings(Settings())

        assert advisor.reader.url == "https://tips.example.com/tip_floor"
        assert advisor.default_percentile is TipPercentile.P99
