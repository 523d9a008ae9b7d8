"""
Bundle status tracking.

The block engine reports bundle progress in two incompatible shapes:

- inflight (getInflightBundleStatuses):
    {"bundle_id": ..., "status": "Pending|Landed|Failed|Invalid", "landed_slot": ...}
- final (getBundleStatuses):
    {"bundle_id": ..., "transactions": [...], "slot": ...,
     "confirmation_status": "processed|confirmed|finalized", "err": {"Ok": null}}

Each response is tagged with a StatusShape derived from the fields present
and then mapped to a BundleState. Anything that fits no known shape is
UNKNOWN: the tracker warns and keeps polling.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple, Union

from exceptions import (
    ConfirmationCancelledError,
    ConfirmationTimeoutError,
    DataError,
    NetworkError,
    UnknownStatusShape,
    is_retryable,
)
from relay import RelayClient
from rpc import RpcResponse

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_CONFIRMATION_TIMEOUT = 60.0


class BundleState(str, Enum):
    PENDING = "pending"
    LANDED = "landed"
    FAILED = "failed"
    INVALID = "invalid"
    CONFIRMED = "confirmed"
    UNKNOWN = "unknown"


TERMINAL_STATES = frozenset({
    BundleState.LANDED,
    BundleState.FAILED,
    BundleState.INVALID,
    BundleState.CONFIRMED,
})


class StatusShape(str, Enum):
    CONFIRMATION = "confirmation"
    INFLIGHT = "inflight"
    ERROR = "error"
    UNRECOGNIZED = "unrecognized"


_INFLIGHT_STATES = {
    "Pending": BundleState.PENDING,
    "Landed": BundleState.LANDED,
    "Failed": BundleState.FAILED,
    "Invalid": BundleState.INVALID,
}

_CONFIRMED_LEVELS = ("confirmed", "finalized")


@dataclass(frozen=True)
class BundleStatus:
    shape: StatusShape
    state: BundleState
    bundle_id: Optional[str] = None
    slot: Optional[int] = None
    err: Any = None
    confirmation_status: Optional[str] = None
    transactions: Tuple[str, ...] = ()
    raw: Any = None
    warning: Optional[UnknownStatusShape] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_success(self) -> bool:
        return self.state in (BundleState.LANDED, BundleState.CONFIRMED)


def _is_error_payload(err: Any) -> bool:
    # final statuses report success as {"Ok": null}
    if not err:
        return False
    if isinstance(err, dict) and set(err) == {"Ok"}:
        return False
    return True


def detect_shape(response: Any) -> StatusShape:
    if not isinstance(response, dict):
        return StatusShape.UNRECOGNIZED
    if response.get("confirmation_status") in _CONFIRMED_LEVELS:
        return StatusShape.CONFIRMATION
    if "status" in response:
        return StatusShape.INFLIGHT
    if "confirmation_status" in response:
        return StatusShape.CONFIRMATION
    if _is_error_payload(response.get("err")):
        return StatusShape.ERROR
    return StatusShape.UNRECOGNIZED


def _unknown(response: Any, bundle_id: Optional[str], shape: StatusShape, reason: str) -> BundleStatus:
    return BundleStatus(
        shape=shape,
        state=BundleState.UNKNOWN,
        bundle_id=bundle_id,
        raw=response,
        warning=UnknownStatusShape(reason, bundle_id=bundle_id, response=response),
    )


def classify_status(response: Any, bundle_id: Optional[str] = None) -> BundleStatus:
    """
    Map one status entry to a BundleStatus.

    Rules, first match wins:
      1. confirmation_status "confirmed" (or "finalized") -> CONFIRMED with slot
      2. status field: Landed -> LANDED (landed_slot if present),
         Failed -> FAILED, Invalid -> INVALID, Pending -> PENDING
      3. truthy err -> FAILED carrying the payload
      4. anything else -> UNKNOWN with an UnknownStatusShape warning
    """
    shape = detect_shape(response)
    if isinstance(response, dict):
        bundle_id = response.get("bundle_id") or bundle_id

    if shape is StatusShape.CONFIRMATION:
        level = response.get("confirmation_status")
        err = response.get("err")
        transactions = tuple(str(sig) for sig in (response.get("transactions") or []))

        if level in _CONFIRMED_LEVELS:
            return BundleStatus(
                shape=shape,
                state=BundleState.CONFIRMED,
                bundle_id=bundle_id,
                slot=response.get("slot"),
                confirmation_status=level,
                transactions=transactions,
                raw=response,
            )

        if _is_error_payload(err):
            return BundleStatus(
                shape=shape,
                state=BundleState.FAILED,
                bundle_id=bundle_id,
                slot=response.get("slot"),
                err=err,
                confirmation_status=level,
                transactions=transactions,
                raw=response,
            )

        if level == "processed":
            return BundleStatus(
                shape=shape,
                state=BundleState.PENDING,
                bundle_id=bundle_id,
                slot=response.get("slot"),
                confirmation_status=level,
                transactions=transactions,
                raw=response,
            )

        return _unknown(response, bundle_id, shape, f"Unrecognised confirmation_status {level!r}")

    if shape is StatusShape.INFLIGHT:
        status = response.get("status")
        state = _INFLIGHT_STATES.get(status)
        if state is None:
            return _unknown(response, bundle_id, shape, f"Unrecognised inflight status {status!r}")
        return BundleStatus(
            shape=shape,
            state=state,
            bundle_id=bundle_id,
            slot=response.get("landed_slot") if state is BundleState.LANDED else None,
            raw=response,
        )

    if shape is StatusShape.ERROR:
        return BundleStatus(
            shape=shape,
            state=BundleState.FAILED,
            bundle_id=bundle_id,
            err=response.get("err"),
            raw=response,
        )

    return _unknown(response, bundle_id, shape, "Status response matched no known shape")


def first_status_entry(response: RpcResponse) -> Any:
    """Pull ``result.value[0]`` out of a status envelope, or None."""
    result = response.result
    if not isinstance(result, dict):
        return None
    value = result.get("value")
    if not isinstance(value, list) or not value:
        return None
    return value[0]


StatusCallback = Callable[[BundleStatus], Union[None, Awaitable[None]]]


class BundleStatusTracker:
    """
    Polls one or more bundles until they reach a terminal state.

    Polling runs on a fixed interval with no backoff, except that a
    rate-limited status request is not retried before its ``Retry-After``
    has passed. It ends on a terminal
    state, when ``timeout`` wall-clock seconds have passed since the loop
    started, or when the optional cancellation event is set.
    """

    def __init__(
        self,
        relay: RelayClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        check_final_status: bool = True
    ):
        self.relay = relay
        self.poll_interval = poll_interval
        self.check_final_status = check_final_status

    async def poll_once(self, bundle_id: str) -> BundleStatus:
        response = await self.relay.get_inflight_bundle_statuses([[bundle_id]])

        if response.error is not None:
            return _unknown(
                None, bundle_id, StatusShape.UNRECOGNIZED,
                f"getInflightBundleStatuses error: {response.error.message}"
            )

        entry = first_status_entry(response)
        status = classify_status(entry if entry is not None else {}, bundle_id)

        if status.state is BundleState.LANDED and self.check_final_status:
            try:
                final = await self.relay.get_bundle_statuses([[bundle_id]])
            except (NetworkError, DataError) as e:
                logger.warning(f"Bundle {bundle_id} landed but final status lookup failed: {e}")
                return status
            final_entry = first_status_entry(final)
            if final_entry is not None:
                final_status = classify_status(final_entry, bundle_id)
                if final_status.state is BundleState.CONFIRMED:
                    return final_status
        return status

    async def _notify(self, callback: Optional[StatusCallback], status: BundleStatus) -> None:
        if callback is None:
            return
        result = callback(status)
        if asyncio.iscoroutine(result):
            await result

    async def _poll_within(
        self,
        bundle_id: str,
        remaining: float,
        cancel_event: Optional[asyncio.Event]
    ) -> Optional["asyncio.Future[BundleStatus]"]:
        """
        Run one poll, racing it against the remaining budget and the cancel event.

        Returns the finished poll task, or None if the poll was abandoned.
        An abandoned poll is cancelled before this returns.
        """
        poll_task = asyncio.ensure_future(self.poll_once(bundle_id))
        waiters = {poll_task}
        if cancel_event is not None:
            waiters.add(asyncio.ensure_future(cancel_event.wait()))

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=max(remaining, 0),
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

        return poll_task if poll_task in done else None

    async def wait_for_terminal(
        self,
        bundle_id: str,
        timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        cancel_event: Optional[asyncio.Event] = None,
        on_status: Optional[StatusCallback] = None
    ) -> BundleStatus:
        """
        Poll until the bundle reaches LANDED, FAILED, INVALID or CONFIRMED.

        Transport and payload errors during a poll are logged and the loop
        carries on; they only matter if they persist until the timeout.
        A status request still in flight when the timeout expires or the
        cancel event fires is cancelled.

        Raises:
            ConfirmationTimeoutError: No terminal state within ``timeout``.
                Inclusion is undetermined, not failed.
            ConfirmationCancelledError: ``cancel_event`` was set
        """
        start = time.monotonic()
        polls = 0

        def cancelled() -> ConfirmationCancelledError:
            return ConfirmationCancelledError(
                f"Confirmation of bundle {bundle_id} cancelled",
                bundle_id=bundle_id,
                elapsed=time.monotonic() - start
            )

        def timed_out(elapsed: float) -> ConfirmationTimeoutError:
            return ConfirmationTimeoutError(
                f"Bundle {bundle_id} not confirmed within {timeout}s",
                bundle_id=bundle_id,
                elapsed=elapsed,
                timeout=timeout,
                context={"polls": polls}
            )

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise cancelled()

            polls += 1
            poll_task = await self._poll_within(
                bundle_id, timeout - (time.monotonic() - start), cancel_event
            )
            if poll_task is None:
                if cancel_event is not None and cancel_event.is_set():
                    raise cancelled()
                logger.warning(f"Status request for bundle {bundle_id} still pending at the deadline")
                raise timed_out(time.monotonic() - start)

            pause = self.poll_interval
            try:
                status = poll_task.result()
            except (NetworkError, DataError) as e:
                logger.warning(f"Error checking bundle {bundle_id} status: {e}")
                status = None
                if is_retryable(e) and e.retry_after:
                    pause = max(pause, e.retry_after)

            if status is not None:
                await self._notify(on_status, status)

                if status.is_terminal:
                    logger.info(
                        f"Bundle {bundle_id} reached {status.state.value}"
                        f" at slot {status.slot if status.slot is not None else 'unknown'}"
                    )
                    return status

                if status.state is BundleState.UNKNOWN:
                    logger.warning(f"Bundle {bundle_id}: {status.warning.message if status.warning else 'unknown status'}")
                else:
                    logger.debug(f"Bundle {bundle_id} still {status.state.value}")

            elapsed = time.monotonic() - start
            if elapsed >= timeout:
                raise timed_out(elapsed)

            delay = min(pause, timeout - elapsed)
            if cancel_event is None:
                await asyncio.sleep(delay)
            else:
                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

    async def wait_for_many(
        self,
        bundle_ids: Sequence[str],
        timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Dict[str, Union[BundleStatus, Exception]]:
        """Track several bundles concurrently; failures are returned, not raised."""
        results = await asyncio.gather(
            *(self.wait_for_terminal(bid, timeout, cancel_event) for bid in bundle_ids),
            return_exceptions=True
        )
        return dict(zip(bundle_ids, results))


__all__ = [
    "BundleState",
    "TERMINAL_STATES",
    "StatusShape",
    "BundleStatus",
    "detect_shape",
    "classify_status",
    "first_status_entry",
    "BundleStatusTracker",
]
