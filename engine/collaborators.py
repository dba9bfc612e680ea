"""
Narrow interfaces to the systems the engine acts on but does not own:
the entity store, the event source, email delivery, reminders and the email
suppression list. The in-memory implementations are for local testing and
wiring examples, not for production.
"""

import copy
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from exceptions import EntityNotFoundError

Snapshot = Dict[str, Any]
EventHandler = Callable[..., Any]


class EntityStore(ABC):
    """Contact/deal CRUD, owned externally."""

    @abstractmethod
    def find_by_id(self, entity_type: str, entity_id: str) -> Optional[Snapshot]:
        """Return a snapshot of the entity, or None if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def update(self, entity_type: str, entity_id: str, fields: Snapshot) -> Snapshot:
        """Overwrite the given fields and return the updated snapshot.

        Raises EntityNotFoundError when the entity does not exist.
        """
        raise NotImplementedError


class EventSource(ABC):
    """Emits (trigger_type, entity_snapshot, user_id, **details) on entity mutation."""

    @abstractmethod
    def subscribe(self, handler: EventHandler) -> None:
        raise NotImplementedError


class EmailSender(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> None:
        raise NotImplementedError


class ReminderStore(ABC):
    @abstractmethod
    def create(
        self,
        title: str,
        description: str,
        due_at: datetime,
        linked_entity: Tuple[str, str],
        user_id: Optional[str] = None,
    ) -> str:
        """Create a reminder linked to (entity_type, entity_id) and return its id."""
        raise NotImplementedError


class SuppressionList(ABC):
    @abstractmethod
    def lookup(self, email: str) -> Optional[str]:
        """Return "unsubscribe", "bounce" or None for the given address."""
        raise NotImplementedError


class InMemoryEntityStore(EntityStore):
    def __init__(self) -> None:
        self._entities: Dict[Tuple[str, str], Snapshot] = {}
        self._lock = threading.Lock()

    def add(self, entity_type: str, entity: Snapshot) -> Snapshot:
        entity = dict(entity)
        entity.setdefault("id", str(uuid.uuid4()))
        with self._lock:
            self._entities[(entity_type, str(entity["id"]))] = entity
        return copy.deepcopy(entity)

    def delete(self, entity_type: str, entity_id: str) -> None:
        with self._lock:
            self._entities.pop((entity_type, entity_id), None)

    def find_by_id(self, entity_type: str, entity_id: str) -> Optional[Snapshot]:
        with self._lock:
            entity = self._entities.get((entity_type, entity_id))
            return copy.deepcopy(entity) if entity is not None else None

    def update(self, entity_type: str, entity_id: str, fields: Snapshot) -> Snapshot:
        with self._lock:
            entity = self._entities.get((entity_type, entity_id))
            if entity is None:
                raise EntityNotFoundError(entity_type, entity_id)
            entity.update(copy.deepcopy(fields))
            return copy.deepcopy(entity)


class InMemoryEventSource(EventSource):
    def __init__(self) -> None:
        self._handlers: List[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def emit(self, trigger_type: str, entity: Snapshot, user_id: Optional[str] = None, **details: Any) -> None:
        for handler in list(self._handlers):
            handler(trigger_type, entity, user_id, **details)


@dataclass
class SentEmail:
    to: str
    subject: str
    body: str


class RecordingEmailSender(EmailSender):
    """Keeps every message in an outbox instead of delivering it."""

    def __init__(self) -> None:
        self.outbox: List[SentEmail] = []

    def send(self, to: str, subject: str, body: str) -> None:
        self.outbox.append(SentEmail(to=to, subject=subject, body=body))


@dataclass
class Reminder:
    id: str
    title: str
    description: str
    due_at: datetime
    linked_entity: Tuple[str, str]
    user_id: Optional[str] = None


class InMemoryReminderStore(ReminderStore):
    def __init__(self) -> None:
        self.reminders: List[Reminder] = []

    def create(
        self,
        title: str,
        description: str,
        due_at: datetime,
        linked_entity: Tuple[str, str],
        user_id: Optional[str] = None,
    ) -> str:
        reminder = Reminder(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            due_at=due_at,
            linked_entity=linked_entity,
            user_id=user_id,
        )
        self.reminders.append(reminder)
        return reminder.id


@dataclass
class InMemorySuppressionList(SuppressionList):
    entries: Dict[str, str] = field(default_factory=dict)

    def suppress(self, email: str, reason: str) -> None:
        self.entries[email.lower()] = reason

    def lookup(self, email: str) -> Optional[str]:
        return self.entries.get(email.lower())
