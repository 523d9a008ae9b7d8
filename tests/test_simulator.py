"""
Tests for bundle simulation.
"""

import pytest

from exceptions import (
    BundleValidationError,
    ConfigurationError,
    JsonRpcError,
    TransportError,
)
from simulator import (
    BundleSimulator,
    SimulationFailure,
    SimulationOptions,
    SimulationSuccess,
    group_logs,
)
from tests.fakes import FakeResponse, FakeSession, rpc_error, rpc_result

ENDPOINT = "https://rpc.example.com/?api-key=secret"
TXS = ["dHgx", "dHgy", "dHgz"]


def simulation_result(err=None, logs=None, units=None):
    return rpc_result({
        "context": {"slot": 287_000_123},
        "value": None,
        "err": err,
        "logs": logs,
        "unitsConsumed": units,
    })


class TestGroupLogs:

    def test_pads_missing_groups(self):
        assert group_logs([["a"], None], 3) == [["a"], [], []]

    def test_drops_surplus_groups(self):
        assert group_logs([["a"], ["b"], ["c"]], 2) == [["a"], ["b"]]

    def test_none(self):
        assert group_logs(None, 2) is None


class TestBundleSimulator:

    @pytest.mark.asyncio
    async def test_missing_endpoint(self):
        session = FakeSession()
        simulator = BundleSimulator(session=session)

        with pytest.raises(ConfigurationError):
            await simulator.simulate(TXS)

        assert session.requests == []

    @pytest.mark.asyncio
    async def test_success(self):
        session = FakeSession(simulation_result(logs=[["ok 1"], ["ok 2"], ["ok 3"]], units=4200))
        simulator = BundleSimulator(session=session)

        result = await simulator.simulate(TXS, endpoint=ENDPOINT)

        assert isinstance(result, SimulationSuccess)
        assert result.ok
        assert result.slot == 287_000_123
        assert result.units_consumed == 4200
        assert result.logs == [["ok 1"], ["ok 2"], ["ok 3"]]

    @pytest.mark.asyncio
    async def test_request_shape(self):
        session = FakeSession(simulation_result())
        simulator = BundleSimulator(session=session)

        await simulator.simulate(
            TXS,
            options=SimulationOptions(skip_sig_verify=True, replace_recent_blockhash=True),
            endpoint=ENDPOINT
        )

        request = session.last_request
        assert request["method"] == "POST"
        assert request["url"] == ENDPOINT
        assert request["json"]["method"] == "simulateBundle"
        assert request["json"]["params"] == [{
            "encodedTransactions": TXS,
            "skipSigVerify": True,
            "replaceRecentBlockhash": True,
        }]

    @pytest.mark.asyncio
    async def test_default_options(self):
        session = FakeSession(simulation_result())
        simulator = BundleSimulator(session=session)

        await simulator.simulate(TXS, endpoint=ENDPOINT)

        params = session.last_request["json"]["params"][0]
        assert params["skipSigVerify"] is False
        assert params["replaceRecentBlockhash"] is False

    @pytest.mark.asyncio
    async def test_failure_carries_logs_per_transaction(self):
        err = {"TransactionFailure": [[1], "InstructionError"]}
        session = FakeSession(simulation_result(err=err, logs=[["tx0 ok"], ["tx1 failed"]]))
        simulator = BundleSimulator(session=session)

        result = await simulator.simulate(TXS, endpoint=ENDPOINT)

        assert isinstance(result, SimulationFailure)
        assert not result.ok
        assert result.err == err
        assert result.logs == [["tx0 ok"], ["tx1 failed"], []]
        assert len(result.logs) == len(TXS)

    @pytest.mark.asyncio
    async def test_http_error(self):
        simulator = BundleSimulator(session=FakeSession(FakeResponse({"error": "x"}, status=500)))

        with pytest.raises(TransportError):
            await simulator.simulate(TXS, endpoint=ENDPOINT)

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        simulator = BundleSimulator(session=FakeSession(rpc_error(-32601, "Method not found")))

        with pytest.raises(JsonRpcError) as exc_info:
            await simulator.simulate(TXS, endpoint=ENDPOINT)

        assert exc_info.value.method == "simulateBundle"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("transactions", [[], ["a"] * 6, ["ok", ""]])
    async def test_invalid_bundle(self, transactions):
        session = FakeSession()
        simulator = BundleSimulator(session=session)

        with pytest.raises(BundleValidationError):
            await simulator.simulate(transactions, endpoint=ENDPOINT)

        assert session.requests == []
