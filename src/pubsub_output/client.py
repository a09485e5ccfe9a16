"""Pub/Sub publisher client construction.

The client is created once per plugin instance and shared read-only by all
of its flushes. Batching tunables from the configuration are passed through
to the client unmodified.
"""

import logging

from google.api_core import exceptions as api_exceptions
from google.cloud import pubsub_v1

from core.errors.exceptions import ConfigurationError
from core.logging.utilities import log_exception
from pubsub_output.config import OutputPluginConfig

logger = logging.getLogger(__name__)

__all__ = ["create_publisher", "fetch_topic"]


def _batch_settings(config: OutputPluginConfig) -> pubsub_v1.types.BatchSettings:
    settings = config.publish
    return pubsub_v1.types.BatchSettings(
        max_bytes=settings.byte_threshold,
        max_latency=settings.delay_threshold.total_seconds(),
        max_messages=settings.count_threshold,
    )


def _publisher_options(config: OutputPluginConfig) -> pubsub_v1.types.PublisherOptions:
    return pubsub_v1.types.PublisherOptions(
        timeout=config.publish.timeout.total_seconds(),
    )


def create_publisher(config: OutputPluginConfig) -> pubsub_v1.PublisherClient:
    """
    Create the PublisherClient for a plugin instance.

    Uses the configured credentials file when set, otherwise Application
    Default Credentials.
    """
    extra = {"project_id": config.project_id, "topic_id": config.topic_id}
    kwargs = {
        "batch_settings": _batch_settings(config),
        "publisher_options": _publisher_options(config),
    }
    try:
        if config.credentials_file:
            logger.info("Using credentials file to authenticate", extra=extra)
            return pubsub_v1.PublisherClient.from_service_account_file(
                config.credentials_file, **kwargs
            )
        logger.info(
            "No credentials file supplied. Attempting to use default credentials",
            extra=extra,
        )
        return pubsub_v1.PublisherClient(**kwargs)
    except Exception as e:
        log_exception(logger, e, "Unable to create Pub/Sub publisher client", **extra)
        raise ConfigurationError(
            f"unable to create Pub/Sub publisher client: {e}", cause=e, context=extra
        ) from e


def fetch_topic(publisher: pubsub_v1.PublisherClient, config: OutputPluginConfig) -> str:
    """
    Check that the configured topic exists and return its path.

    Raises:
        ConfigurationError: The topic does not exist or cannot be read.
    """
    topic_path = publisher.topic_path(config.project_id, config.topic_id)
    extra = {"topic_path": topic_path}
    logger.info("Retrieving topic", extra=extra)
    try:
        publisher.get_topic(request={"topic": topic_path})
    except api_exceptions.NotFound as e:
        logger.error("Topic does not exist in project", extra=extra)
        raise ConfigurationError(
            f"topic {config.topic_id} does not exist in project {config.project_id}",
            cause=e,
            context=extra,
        ) from e
    except api_exceptions.GoogleAPIError as e:
        log_exception(logger, e, "Unable to retrieve topic information", **extra)
        raise ConfigurationError(
            f"unable to access topic {topic_path}: {e}", cause=e, context=extra
        ) from e
    return topic_path
