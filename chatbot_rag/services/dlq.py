"""Dead Letter Queue for upload events that could not be processed."""

import json
import logging
import time
from typing import Optional

from aiokafka import AIOKafkaProducer

from chatbot_rag.core.config import settings
from chatbot_rag.core.exceptions import DLQError

logger = logging.getLogger(__name__)


class DLQService:
    """Publishes unprocessable upload events to a dead letter topic."""

    def __init__(self, enabled: Optional[bool] = None, topic: Optional[str] = None) -> None:
        """
        Initialize the DLQ service.

        Args:
            enabled: Whether failed events are published at all.
            topic: Dead letter topic.
        """
        self.producer: Optional[AIOKafkaProducer] = None
        self.enabled = settings.dlq_enabled if enabled is None else enabled
        self.topic = topic or settings.dlq_topic

    async def connect(self) -> None:
        """Start the Kafka producer."""
        if not self.enabled:
            return

        try:
            self.producer = AIOKafkaProducer(
                bootstrap_servers=settings.kafka_bootstrap_servers,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            )
            await self.producer.start()
            logger.info("DLQ service connected")
        except Exception as e:
            raise DLQError(f"Failed to connect DLQ service: {str(e)}") from e

    async def disconnect(self) -> None:
        """Stop the Kafka producer."""
        if self.producer:
            await self.producer.stop()

    async def send_failed_event(
        self,
        event_data: dict,
        error: str,
        offset: Optional[int] = None,
        partition: Optional[int] = None,
    ) -> None:
        """
        Publish a failed upload event.

        Args:
            event_data: Original event payload.
            error: Error message describing the failure.
            offset: Original message offset.
            partition: Original message partition.
        """
        if not self.enabled or not self.producer:
            logger.warning(f"DLQ disabled, dropping failed event: {error[:100]}")
            return

        message = {
            "original_event": event_data,
            "error": error,
            "original_topic": settings.kafka_topic_uploads,
            "offset": offset,
            "partition": partition,
            "timestamp": time.time(),
        }
        try:
            await self.producer.send_and_wait(self.topic, value=message)
        except Exception as e:
            raise DLQError(f"Failed to send event to DLQ: {str(e)}") from e

        logger.info(f"Sent failed event to DLQ: offset={offset}, error={error[:100]}")
