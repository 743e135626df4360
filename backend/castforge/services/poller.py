"""Job poller: drive a fire-and-poll vendor job to a terminal state.

Generic over the vendor: the caller passes an async ``fetch_status`` that
returns the raw status response and a ``parse_status`` that turns it into a
JobStatus (raising VendorApiError for API-level error codes).

Attempt accounting:
- every status query counts as one attempt, including queries that fail
  with TransportError (those are retried at the next interval);
- no query is issued after the budget is spent, and the loop does not
  sleep after the last attempt.
- if every query failed with TransportError, that error is re-raised
  instead of a timeout.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from castforge.errors import (
    GenerationFailedError,
    PollingCancelledError,
    PollingTimeoutError,
    TransportError,
)
from castforge.schemas.jobs import JobState, JobStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 120
DEFAULT_INTERVAL = 5.0

ProgressCallback = Callable[[str], Any]


async def _emit(on_progress: ProgressCallback | None, state: str) -> None:
    if on_progress is None:
        return
    result = on_progress(state)
    if inspect.isawaitable(result):
        await result


async def _wait(interval: float, cancel_event: asyncio.Event | None) -> None:
    """Non-blocking pause that wakes early when the token is revoked."""
    if cancel_event is None:
        await asyncio.sleep(interval)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=interval)
    except asyncio.TimeoutError:
        pass


async def poll_until_complete(
    task_id: str,
    fetch_status: Callable[[str], Awaitable[Any]],
    parse_status: Callable[[Any], JobStatus],
    *,
    on_progress: ProgressCallback | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL,
    cancel_event: asyncio.Event | None = None,
    label: str = "job",
) -> Any:
    """Poll ``task_id`` until it succeeds, fails, or the budget runs out.

    Args:
        task_id: Vendor task identifier.
        fetch_status: Coroutine function returning the raw status response.
        parse_status: Maps a raw response to JobStatus; raises VendorApiError
            when the vendor signals an API-level error.
        on_progress: Called with the state string of every non-terminal poll.
            May be sync or async.
        max_attempts: Maximum number of status queries.
        interval: Seconds to wait between queries.
        cancel_event: Revocation token; once set, polling stops before the
            next query.
        label: Name used in log lines.

    Returns:
        The full raw response of the succeeded poll.

    Raises:
        VendorApiError: the vendor answered with a non-success API code.
        GenerationFailedError: the vendor reports the job failed.
        PollingTimeoutError: no terminal state within ``max_attempts``.
        TransportError: every status query failed to reach the vendor.
        PollingCancelledError: ``cancel_event`` was set.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_transport_error: TransportError | None = None
    reached_vendor = False

    for attempt in range(1, max_attempts + 1):
        if cancel_event is not None and cancel_event.is_set():
            logger.info("%s task %s: polling cancelled at attempt %d", label, task_id, attempt)
            raise PollingCancelledError(f"Polling cancelled for task {task_id}", task_id=task_id)

        try:
            response = await fetch_status(task_id)
        except TransportError as e:
            last_transport_error = e
            logger.warning(
                "%s task %s: transport error on attempt %d/%d: %s",
                label, task_id, attempt, max_attempts, e,
            )
        else:
            reached_vendor = True
            status = parse_status(response)

            if status.state == JobState.SUCCEEDED:
                logger.info("%s task %s succeeded after %d poll(s)", label, task_id, attempt)
                return response

            if status.state == JobState.FAILED:
                msg = status.error_message or "Unknown error"
                logger.warning("%s task %s failed: %s", label, task_id, msg)
                raise GenerationFailedError(msg, task_id=task_id)

            logger.debug(
                "%s task %s: %s (attempt %d/%d)",
                label, task_id, status.vendor_state or status.state.value, attempt, max_attempts,
            )
            await _emit(on_progress, status.state.value)

        if attempt < max_attempts:
            await _wait(interval, cancel_event)

    if not reached_vendor and last_transport_error is not None:
        logger.warning("%s task %s: vendor unreachable for all %d polls", label, task_id, max_attempts)
        raise last_transport_error

    logger.warning("%s task %s: no terminal state after %d polls", label, task_id, max_attempts)
    raise PollingTimeoutError(
        f"Polling timeout - {label} took too long ({max_attempts} attempts)",
        task_id=task_id,
        attempts=max_attempts,
    )
