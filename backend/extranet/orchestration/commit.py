"""Commit runner: one in-flight commit per draft, bounded and abortable.

Wraps every step commit with:
- An in-flight guard keyed by draft, rejecting a second concurrent commit
- A hard timeout
- A cancel token, so navigating away can abort the request
- Metrics and structured logging
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

T = TypeVar("T")


class CommitInFlightError(Exception):
    """Another commit for the same draft has not finished yet."""

    pass


class CommitTimeoutError(Exception):
    """Commit exceeded its timeout."""

    pass


class CommitCancelledError(Exception):
    """Commit was aborted through its cancel token."""

    pass


@dataclass(frozen=True)
class CommitContext:
    """Identifies a commit for guarding, metrics and logs."""

    draft_key: str
    step: str


@dataclass
class CancelToken:
    """Token for aborting a commit that is already in flight."""

    cancelled: bool = False
    _task: "asyncio.Task[object] | None" = field(default=None, repr=False)

    def cancel(self) -> None:
        """Mark cancelled and abort the attached request, if any."""
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def throw_if_cancelled(self) -> None:
        """Raise CommitCancelledError if cancelled."""
        if self.cancelled:
            raise CommitCancelledError("commit cancelled")


# Metrics interface (implemented by PrometheusCommitMetrics)
class CommitMetrics:
    """Interface for commit metrics."""

    def record_latency(self, step: str, outcome: str, latency_ms: float) -> None:
        """Record commit latency."""
        pass

    def inc_error(self, step: str, reason: str) -> None:
        """Increment error counter."""
        pass


# Logging interface (implemented by StructuredCommitLogger)
class CommitLogger:
    """Interface for structured commit logging."""

    def log_commit(
        self,
        ctx: CommitContext,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a commit attempt."""
        pass


class CommitRunner:
    """Runs step commits with an in-flight guard per draft."""

    def __init__(
        self,
        timeout_ms: int = 15000,
        metrics: CommitMetrics | None = None,
        logger: CommitLogger | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            timeout_ms: Hard timeout per commit
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
        """
        self._timeout_ms = timeout_ms
        self._metrics = metrics or CommitMetrics()
        self._logger = logger or CommitLogger()
        self._in_flight: set[str] = set()

    def is_in_flight(self, draft_key: str) -> bool:
        """Whether a commit for the draft is running (transition controls disabled)."""
        return draft_key in self._in_flight

    async def run(
        self,
        ctx: CommitContext,
        fn: Callable[[], Awaitable[T]],
        cancel_token: CancelToken | None = None,
    ) -> T:
        """Run one commit.

        Args:
            ctx: Commit context
            fn: Zero-argument coroutine factory performing the remote call
            cancel_token: Token to abort the commit (optional)

        Returns:
            Whatever `fn` returns

        Raises:
            CommitInFlightError: A commit for the same draft is running
            CommitTimeoutError: The commit exceeded the timeout
            CommitCancelledError: The commit was aborted
        """
        if ctx.draft_key in self._in_flight:
            self._metrics.inc_error(ctx.step, "in_flight")
            self._logger.log_commit(ctx, "rejected", 0.0, error_reason="in_flight")
            raise CommitInFlightError(f"Commit already in flight for {ctx.draft_key}")

        if cancel_token is None:
            cancel_token = CancelToken()
        cancel_token.throw_if_cancelled()

        self._in_flight.add(ctx.draft_key)
        start_time = time.monotonic()
        task: asyncio.Task[T] = asyncio.ensure_future(fn())
        cancel_token._task = task  # type: ignore[assignment]
        try:
            result = await asyncio.wait_for(task, timeout=self._timeout_ms / 1000)
        except TimeoutError as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            self._metrics.inc_error(ctx.step, "timeout")
            self._metrics.record_latency(ctx.step, "timeout", elapsed_ms)
            self._logger.log_commit(ctx, "timeout", elapsed_ms, error_reason="timeout")
            raise CommitTimeoutError(f"Commit of {ctx.step} timed out") from e
        except asyncio.CancelledError as e:
            if not cancel_token.cancelled:
                raise
            elapsed_ms = (time.monotonic() - start_time) * 1000
            self._metrics.record_latency(ctx.step, "cancelled", elapsed_ms)
            self._logger.log_commit(ctx, "cancelled", elapsed_ms, error_reason="cancelled")
            raise CommitCancelledError(f"Commit of {ctx.step} cancelled") from e
        except Exception as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            self._metrics.inc_error(ctx.step, type(e).__name__)
            self._metrics.record_latency(ctx.step, "error", elapsed_ms)
            self._logger.log_commit(ctx, "error", elapsed_ms, error_reason=type(e).__name__)
            raise
        finally:
            self._in_flight.discard(ctx.draft_key)
            cancel_token._task = None

        elapsed_ms = (time.monotonic() - start_time) * 1000
        self._metrics.record_latency(ctx.step, "success", elapsed_ms)
        self._logger.log_commit(ctx, "success", elapsed_ms)
        return result
