"""
Event Store service for append-only audit logging.

Every state change made by the engines (edge added, attempt submitted,
warning recorded, quiz activated...) is appended here in the same
transaction as the change, so a rolled-back operation leaves no event.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import and_, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.PREREQUISITE_ADDED,
            entity_type="course",
            entity_id=course_id,
            user_id=actor_id,
            payload={"prerequisite_course_id": required_course_id},
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
        Append an event to the audit log.

        Args:
            event_type: The type of event
            entity_type: The type of entity (course, quiz, quiz_attempt, ...)
            entity_id: The ID of the entity
            user_id: The user who triggered the event (None for system events)
            payload: Additional event data
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            The pending EventLog record
        """
        if payload:
            payload = self._serialize_payload(payload)

        event = EventLog(
            event_type=EventType(event_type).value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=payload or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )

        self.session.add(event)
        # Flushed together with the state change by the caller's transaction
        return event

    async def log_from_model(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID],
        payload_model: BaseModel,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> EventLog:
        """Log an event using a Pydantic model from ``event_types`` as payload."""
        payload = payload_model.model_dump(mode="json")
        return await self.log(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=payload,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[EventLog]:
        """
        Get the event history for a specific entity, newest first.

        Args:
            entity_type: The type of entity
            entity_id: The ID of the entity
            event_types: Optional filter for specific event types
            limit: Maximum number of events to return
            offset: Number of events to skip
        """
        await self.session.flush()
        query = select(EventLog).where(
            and_(
                EventLog.entity_type == entity_type,
                EventLog.entity_id == entity_id,
            )
        )

        if event_types:
            query = query.where(EventLog.event_type.in_([e.value for e in event_types]))

        query = query.order_by(desc(EventLog.created_at)).offset(offset).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_events(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        event_type: Optional[EventType] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Count events matching the given criteria."""
        # Events logged earlier in this transaction are still pending under autoflush=False
        await self.session.flush()
        query = select(func.count(EventLog.id))

        if entity_type:
            query = query.where(EventLog.entity_type == entity_type)
        if entity_id:
            query = query.where(EventLog.entity_id == entity_id)
        if event_type:
            query = query.where(EventLog.event_type == event_type.value)
        if user_id:
            query = query.where(EventLog.user_id == user_id)

        result = await self.session.execute(query)
        return result.scalar() or 0

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convert payload values to JSON-serializable types."""
        result = {}
        for key, value in payload.items():
            if isinstance(value, uuid.UUID):
                result[key] = str(value)
            elif isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, dict):
                result[key] = self._serialize_payload(value)
            elif isinstance(value, list):
                result[key] = [
                    self._serialize_payload(v) if isinstance(v, dict)
                    else str(v) if isinstance(v, uuid.UUID)
                    else v.isoformat() if isinstance(v, datetime)
                    else v
                    for v in value
                ]
            else:
                result[key] = value
        return result
