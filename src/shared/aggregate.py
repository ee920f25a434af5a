"""Base classes for aggregates, entities and domain events.

Aggregates and entities validate on assignment, so field constraints hold
after every mutation. Aggregates collect the domain events they raise in
``_events``; the service that saved the aggregate drains them with
``collect_events()`` and hands them to its caller.
"""

from datetime import UTC, datetime
from typing import ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class DomainEvent(BaseModel):
    """An immutable fact about something that happened in the domain."""

    model_config = ConfigDict(frozen=True)

    __version__: ClassVar[str] = "v1"

    occurred_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def type_name(cls) -> str:
        return f"{cls.__name__}.{cls.__version__}"


class Entity(BaseModel):
    model_config = ConfigDict(validate_assignment=True, validate_default=True, use_enum_values=True)

    id: str = Field(default_factory=new_id)


class Aggregate(Entity):
    """Aggregate root: the unit of persistence and concurrency control."""

    version: int = 0

    _events: list[DomainEvent] = PrivateAttr(default_factory=list)

    def raise_(self, event: DomainEvent) -> None:
        self._events.append(event)

    def collect_events(self) -> list[DomainEvent]:
        events = list(self._events)
        self._events.clear()
        return events
