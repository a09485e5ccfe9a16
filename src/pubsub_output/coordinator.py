"""Publish batch coordinator.

Submits messages to the Pub/Sub publisher without blocking, then awaits every
publish future and reduces their outcomes to one batch Disposition:

    FATAL > RETRY > ACCEPTED

A single retryable failure makes the host redeliver the whole buffer, since
the host cannot redeliver a subset of it.
"""

import asyncio
import concurrent.futures
import logging
import time
from datetime import datetime
from typing import Any, Protocol, Sequence

from core.errors.exceptions import TransientPublishError
from core.errors.transport_classifier import classify_publish_error
from core.logging.utilities import log_exception, log_with_context
from pubsub_output import metrics
from pubsub_output.types import Disposition, OutboundMessage, PublishHandle

logger = logging.getLogger(__name__)

__all__ = ["Publisher", "PublishCoordinator"]


class Publisher(Protocol):
    """The slice of ``google.cloud.pubsub_v1.PublisherClient`` the coordinator uses."""

    def publish(self, topic: str, data: bytes, **attrs: str) -> concurrent.futures.Future:
        ...


class PublishCoordinator:
    """
    Fans a flush's messages out to the publisher and classifies the results.

    Logs through ``log`` when given, so a plugin instance's debug level
    covers its publishes too.
    """

    def __init__(
        self,
        publisher: Publisher,
        topic_path: str,
        log: logging.Logger | None = None,
    ):
        self.publisher = publisher
        self.topic_path = topic_path
        self.logger = log or logger

    def submit(
        self,
        message: OutboundMessage,
        timestamp: datetime | None = None,
    ) -> PublishHandle:
        """
        Hand one message to the publisher without waiting for it.

        A synchronous failure from the publisher is kept as an already
        failed handle so it still takes part in the batch disposition.
        """
        try:
            future = self.publisher.publish(
                self.topic_path, message.data, **message.attributes
            )
        except Exception as e:
            log_exception(
                self.logger,
                e,
                "Publisher rejected message at submission",
                include_traceback=False,
                topic_path=self.topic_path,
            )
            future = concurrent.futures.Future()
            future.set_exception(e)

        metrics.messages_submitted_total.inc()
        return PublishHandle(future=future, timestamp=timestamp)

    async def await_all(
        self,
        handles: Sequence[PublishHandle],
        timeout: float | None = None,
    ) -> Disposition:
        """
        Await every handle in submission order and return the worst outcome.

        Args:
            handles: Handles returned by submit(), each awaited exactly once
            timeout: Seconds allowed for the whole batch to settle; None waits
                for the publisher's own publish timeout

        Once the deadline passes, the remaining handles are only polled:
        settled ones are classified as usual and unsettled ones count as
        RETRY. Unsettled publishes are left running in the background.
        """
        for handle in handles:
            if handle.awaited:
                raise ValueError("publish handle was already awaited")
            handle.awaited = True

        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        start = time.perf_counter()
        outcomes: list[Disposition] = []
        expired = False

        for handle in handles:
            if expired:
                outcomes.append(self._poll(handle))
                continue

            waiter = asyncio.wrap_future(handle.future)
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            done, _ = await asyncio.wait({waiter}, timeout=remaining)
            if not done:
                expired = True
                self.logger.warning("Deadline exceeded while awaiting publishes. Will retry.")
                outcomes.append(Disposition.RETRY)
                continue
            outcomes.append(self._classify(waiter, handle))

        disposition = Disposition.worst(outcomes)
        pending = sum(1 for handle in handles if not handle.future.done())
        log_with_context(
            self.logger,
            logging.DEBUG,
            "Publishes settled",
            messages_submitted=len(handles),
            handles_pending=pending,
            disposition=disposition.name,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return disposition

    def _poll(self, handle: PublishHandle) -> Disposition:
        if not handle.future.done():
            metrics.record_publish_outcome("pending")
            return Disposition.RETRY
        return self._classify(handle.future, handle)

    def _classify(self, future: Any, handle: PublishHandle) -> Disposition:
        """Classify one settled future (asyncio or concurrent)."""
        log_ts = handle.timestamp.isoformat() if handle.timestamp else None

        if future.cancelled():
            error: BaseException = concurrent.futures.CancelledError()
        else:
            error = future.exception()

        if error is None:
            metrics.record_publish_outcome("accepted")
            self.logger.debug(
                "Message published",
                extra={"message_id": future.result(), "log_ts": log_ts},
            )
            return Disposition.ACCEPTED

        classified = classify_publish_error(error, context={"topic_path": self.topic_path})
        if isinstance(classified, TransientPublishError):
            metrics.record_publish_outcome("retry")
            log_exception(
                self.logger,
                classified,
                "Retryable publish error",
                level=logging.WARNING,
                include_traceback=False,
                error_code=classified.status_code,
                log_ts=log_ts,
            )
            return Disposition.RETRY

        metrics.record_publish_outcome("fatal")
        if classified.status_code is None:
            message = "Could not extract a gRPC status from publish error"
        else:
            message = "Unrecoverable publish error"
        log_exception(
            self.logger,
            classified,
            message,
            include_traceback=False,
            error_code=classified.status_code,
            error_type=type(error).__name__,
            log_ts=log_ts,
        )
        return Disposition.FATAL
