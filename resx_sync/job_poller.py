"""
Completion polling for remote jobs and the retrying export loop.

Two separate policies live here. ``wait_for_job`` checks the status of a known
process at a constant cadence. ``export_with_backoff`` retries the export
request itself when the backend rejects it for rate limiting, doubling the
wait between attempts up to a cap.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from resx_sync.errors import JobTimeoutError, RemoteError
from resx_sync.lokalise_client import Deferred, ExportRequest, Immediate, LokaliseClient, is_rate_limited
from resx_sync.models import JobResult, JobState

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


@dataclass(frozen=True)
class BackoffPolicy:
    initial_delay: float = 5.0
    factor: float = 2.0
    max_delay: float = 30.0

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (1-based); the first attempt never waits."""
        if attempt <= 1:
            return 0.0
        return min(self.initial_delay * (self.factor ** (attempt - 2)), self.max_delay)


EXPORT_BACKOFF = BackoffPolicy()


async def wait_for_job(
        client: LokaliseClient,
        handle: Deferred,
        timeout_seconds: float,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic
) -> JobResult:
    """
    Poll a backend process until it finishes, fails, or runs out of time.

    Errors while fetching the status are logged and polling continues; only the
    timeout ends the loop without a terminal status.

    Args:
        client: The remote client used to query the process.
        handle: The deferred job handle.
        timeout_seconds: Total time budget for polling.
        poll_interval: Constant wait between status checks.
        sleep: Awaitable sleep, injectable for tests.
        clock: Monotonic clock, injectable for tests.

    Returns:
        A ``JobResult`` in state FINISHED, FAILED or TIMED_OUT.
    """
    start = clock()
    while clock() - start < timeout_seconds:
        try:
            result = await client.get_job_status(handle)
        except RemoteError as status_exc:
            logger.warning("Error checking process status for %s: %s", handle.process_id, status_exc)
        else:
            if result.state is JobState.FINISHED:
                return result
            if result.state is JobState.FAILED:
                logger.error("Process %s failed: %s", handle.process_id, result.message)
                return result
        await sleep(poll_interval)

    logger.warning("Process %s timed out after %s seconds", handle.process_id, timeout_seconds)
    return JobResult(JobState.TIMED_OUT, message=f"Process {handle.process_id} timed out after {timeout_seconds} seconds")


async def export_with_backoff(
        client: LokaliseClient,
        project_id: str,
        locale: str,
        timeout_seconds: float,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        policy: BackoffPolicy = EXPORT_BACKOFF,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic
) -> str:
    """
    Request a locale export, retrying only on rate-limit rejections.

    Args:
        client: The remote client.
        project_id: The Lokalise project id.
        locale: The locale to export.
        timeout_seconds: Budget for the whole export phase of this locale.
        poll_interval: Poll cadence if the export is queued as a process.
        policy: Wait schedule between rate-limited attempts.
        sleep: Awaitable sleep, injectable for tests.
        clock: Monotonic clock, injectable for tests.

    Returns:
        The bundle URL.

    Raises:
        RemoteError: On any non rate-limit failure, or if a queued export fails.
        JobTimeoutError: If the budget is exhausted before a bundle URL is obtained.
    """
    start = clock()
    attempt = 1
    request = ExportRequest(locale=locale)

    while clock() - start < timeout_seconds:
        logger.info("Requesting export for locale: %s", locale)
        try:
            result = await client.request_export(project_id, request)
        except RemoteError as export_exc:
            if not is_rate_limited(export_exc):
                raise
            attempt += 1
            delay = policy.delay_before(attempt)
            logger.warning("Rate limited exporting %s, waiting %s seconds...", locale, delay)
            await sleep(delay)
            continue

        if isinstance(result, Immediate):
            logger.debug("Export bundle ready for %s", locale)
            return result.value

        logger.debug("Export for %s queued (Process ID: %s)", locale, result.process_id)
        remaining = timeout_seconds - (clock() - start)
        job = await wait_for_job(client, result, remaining, poll_interval, sleep=sleep, clock=clock)
        if job.state is JobState.FINISHED:
            bundle_url = job.payload.get('download_url') or job.payload.get('bundle_url')
            if not bundle_url:
                raise RemoteError(f"Export process for {locale} finished without a download URL")
            return bundle_url
        if job.state is JobState.FAILED:
            raise RemoteError(f"Export process for {locale} failed: {job.message}")
        break

    raise JobTimeoutError(f"Export timed out after {timeout_seconds / 60:g} minutes")
