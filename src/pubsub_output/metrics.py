"""Prometheus metrics for the flush cycle."""

from prometheus_client import Counter

records_decoded_total = Counter(
    "pubsub_output_records_decoded_total",
    "Records decoded from flush buffers",
)

record_errors_total = Counter(
    "pubsub_output_record_errors_total",
    "Records skipped because they could not be decoded or built",
    ["stage"],
)

messages_submitted_total = Counter(
    "pubsub_output_messages_submitted_total",
    "Messages handed to the Pub/Sub publisher",
)

publish_outcomes_total = Counter(
    "pubsub_output_publish_outcomes_total",
    "Settled publishes by outcome",
    ["outcome"],
)

flushes_total = Counter(
    "pubsub_output_flushes_total",
    "Flush cycles by returned disposition",
    ["disposition"],
)


def record_error(stage: str) -> None:
    record_errors_total.labels(stage=stage).inc()


def record_publish_outcome(outcome: str) -> None:
    publish_outcomes_total.labels(outcome=outcome).inc()


def record_flush(disposition: str) -> None:
    flushes_total.labels(disposition=disposition).inc()


__all__ = [
    "flushes_total",
    "messages_submitted_total",
    "publish_outcomes_total",
    "record_error",
    "record_errors_total",
    "record_flush",
    "record_publish_outcome",
    "records_decoded_total",
]
