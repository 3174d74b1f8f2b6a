"""
Event Store service for append-only audit logging.

Mutations are logged in the same session as the change they describe, so
the audit row commits or rolls back together with it.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from paperflow.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.FILE_UPLOADED,
            entity_type="file",
            entity_id=record.id,
            user_id=current_user.id,
            payload={"file_name": record.file_name, "version": 1},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> EventLog:
        """
        Add an event to the audit log.

        The row is added to the session only; the caller's flush/commit
        persists it together with the mutation.
        """
        event = EventLog(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=self._serialize_payload(payload) if payload else {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(event)
        return event

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
    ) -> List[EventLog]:
        """Events for one entity, newest first."""
        query = select(EventLog).where(
            and_(
                EventLog.entity_type == entity_type,
                EventLog.entity_id == entity_id,
            )
        )
        if event_types:
            query = query.where(EventLog.event_type.in_(event_types))

        query = query.order_by(desc(EventLog.created_at)).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert payload values to JSON-serializable types."""
        result = {}
        for key, value in payload.items():
            if isinstance(value, uuid.UUID):
                result[key] = str(value)
            elif isinstance(value, datetime):
                result[key] = value.isoformat()
            elif hasattr(value, "value"):
                result[key] = value.value
            elif isinstance(value, dict):
                result[key] = self._serialize_payload(value)
            else:
                result[key] = value
        return result
