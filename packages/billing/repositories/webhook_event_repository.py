"""
Repository for webhook dedup tracking.
"""

from typing import Optional

from common.repositories.base import BaseRepository
from packages.billing.models.database.webhook_event import ProcessedWebhookEventEntity
from packages.billing.models.domain.webhook_event import (
    ProcessedWebhookEvent,
    ProcessedWebhookEventCreateModel,
)
from common.core.otel_axiom_exporter import trace_span


class WebhookEventRepository(
    BaseRepository[ProcessedWebhookEventEntity, ProcessedWebhookEvent]
):
    """Repository for processed webhook events."""

    def __init__(self):
        super().__init__(ProcessedWebhookEventEntity, ProcessedWebhookEvent)

    @trace_span
    async def get_by_event_id(self, event_id: str) -> Optional[ProcessedWebhookEvent]:
        return await self._get_one_by(ProcessedWebhookEventEntity.event_id, event_id)

    @trace_span
    async def record(
        self, create_model: ProcessedWebhookEventCreateModel
    ) -> ProcessedWebhookEvent:
        """
        Insert the dedup row.

        Raises IntegrityError when another delivery of the same event already
        committed its row.
        """
        return await self.create(create_model)
