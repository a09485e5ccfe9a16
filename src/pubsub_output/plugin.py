"""Flush orchestration for one plugin instance.

One flush call runs:

    Start -> Decoding (loop) -> Awaiting -> ACCEPTED | RETRY | FATAL

Records that cannot be decoded or turned into messages are logged and
skipped; only publish outcomes decide the disposition returned to the host.
"""

import logging
import time

from core.errors.exceptions import MessageBuildError, RecordDecodeError
from core.logging.context_managers import LogContext
from core.logging.setup import generate_flush_id
from core.logging.utilities import log_exception, log_with_context, summarize_record
from pubsub_output import metrics
from pubsub_output.client import create_publisher, fetch_topic
from pubsub_output.config import OutputPluginConfig
from pubsub_output.coordinator import PublishCoordinator, Publisher
from pubsub_output.decoder import RecordDecoder
from pubsub_output.message import build_message
from pubsub_output.types import Disposition, PublishHandle

__all__ = ["OutputPlugin"]


class OutputPlugin:
    """
    A Pub/Sub output plugin instance.

    Owns one decoder (and its reusable buffer) and one publish coordinator.
    The host serializes flushes per instance.
    """

    def __init__(
        self,
        config: OutputPluginConfig,
        publisher: Publisher,
        topic_path: str,
        decoder: RecordDecoder | None = None,
    ):
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.{config.plugin_id}")
        self.logger.setLevel(logging.DEBUG if config.debug else logging.INFO)
        # decoding and publishing log under the instance logger so debug covers them
        self.decoder = decoder or RecordDecoder(self.logger)
        self.coordinator = PublishCoordinator(publisher, topic_path, self.logger)
        if config.debug:
            self.logger.debug("Debug logging enabled")

    @classmethod
    def from_config(cls, config: OutputPluginConfig) -> "OutputPlugin":
        """Create the publisher client, check the topic and build the plugin."""
        publisher = create_publisher(config)
        topic_path = fetch_topic(publisher, config)
        return cls(config, publisher, topic_path)

    @property
    def plugin_id(self) -> int:
        return self.config.plugin_id

    async def flush(self, data: bytes, tag: str) -> Disposition:
        """Decode, publish and classify one buffer delivered by the host."""
        with LogContext(
            plugin_id=str(self.plugin_id), tag=tag, flush_id=generate_flush_id()
        ):
            start = time.perf_counter()
            self.logger.debug("Receiving log entries", extra={"bytes": len(data)})

            handles, stats = self._decode_and_submit(data, tag)

            timeout = None
            if self.config.flush_timeout is not None:
                timeout = self.config.flush_timeout.total_seconds()
            disposition = await self.coordinator.await_all(handles, timeout=timeout)

            metrics.record_flush(disposition.name.lower())
            log_with_context(
                self.logger,
                logging.INFO if disposition is Disposition.ACCEPTED else logging.WARNING,
                "Flush finished",
                disposition=disposition.name,
                messages_submitted=len(handles),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                **stats,
            )
            return disposition

    def _decode_and_submit(self, data: bytes, tag: str) -> tuple[list[PublishHandle], dict]:
        self.decoder.reset(data)
        handles: list[PublishHandle] = []
        stats = {"records_decoded": 0, "decode_failures": 0, "build_failures": 0}

        while True:
            try:
                record = self.decoder.read_record()
            except RecordDecodeError as e:
                stats["decode_failures"] += 1
                metrics.record_error("decode")
                log_exception(
                    self.logger,
                    e,
                    "Error while reading a record",
                    include_traceback=False,
                    log_ts=e.context.get("log_ts"),
                    record=e.context.get("record"),
                )
                continue

            if record is None:
                self.logger.debug("End of buffer")
                break

            stats["records_decoded"] += 1
            metrics.records_decoded_total.inc()

            try:
                message = build_message(record, tag, self.config)
            except MessageBuildError as e:
                stats["build_failures"] += 1
                metrics.record_error("build")
                log_exception(
                    self.logger,
                    e,
                    "Error while creating Pub/Sub message from record",
                    include_traceback=False,
                    log_ts=record.timestamp.isoformat(),
                    record=summarize_record(record.fields),
                )
                continue

            handles.append(self.coordinator.submit(message, record.timestamp))

        return handles, stats

    def close(self) -> None:
        """Send any batched messages and release the publisher."""
        stop = getattr(self.coordinator.publisher, "stop", None)
        if callable(stop):
            self.logger.info("Stopping publisher")
            stop()
