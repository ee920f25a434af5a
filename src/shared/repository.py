"""In-memory persistence adapter for aggregates.

The repository never hands out the object it stores: ``add`` keeps a
serialized snapshot and ``get`` rebuilds a fresh aggregate from it, so an
aggregate loaded by one flow can't be mutated behind the back of another.

Writes are a compare-and-swap on ``version``. An aggregate must be saved
against the version it was loaded at; if someone else saved in between, the
write is refused with ``ConcurrentModificationError`` and the caller retries
the whole operation against fresh state.
"""

import threading
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

import structlog

from shared.aggregate import Aggregate
from shared.errors import ConcurrentModificationError, ObjectNotFoundError

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=Aggregate)


class InMemoryRepository(Generic[T]):
    def __init__(self, aggregate_cls: type[T]):
        self.aggregate_cls = aggregate_cls
        self._snapshots: dict[str, dict] = {}
        self._lock = threading.Lock()

    def get(self, identifier: str) -> T:
        with self._lock:
            snapshot = self._snapshots.get(str(identifier))
        if snapshot is None:
            raise ObjectNotFoundError(
                {"id": [f"{self.aggregate_cls.__name__} with id {identifier} does not exist"]}
            )
        return self.aggregate_cls.model_validate(snapshot)

    def add(self, aggregate: T) -> T:
        key = str(aggregate.id)
        with self._lock:
            stored = self._snapshots.get(key)
            stored_version = stored["version"] if stored is not None else 0
            if stored_version != aggregate.version:
                logger.warning(
                    "Lost update detected",
                    aggregate=self.aggregate_cls.__name__,
                    id=key,
                    expected_version=aggregate.version,
                    stored_version=stored_version,
                )
                raise ConcurrentModificationError(
                    {
                        "version": [
                            f"{self.aggregate_cls.__name__} {key} was modified concurrently "
                            f"(loaded at v{aggregate.version}, now v{stored_version})"
                        ]
                    }
                )
            aggregate.version = stored_version + 1
            self._snapshots[key] = aggregate.model_dump()
        return aggregate

    def exists(self, identifier: str) -> bool:
        with self._lock:
            return str(identifier) in self._snapshots

    def all(self) -> list[T]:
        with self._lock:
            snapshots = list(self._snapshots.values())
        return [self.aggregate_cls.model_validate(snapshot) for snapshot in snapshots]

    def find(self, predicate: Callable[[T], bool]) -> list[T]:
        return [aggregate for aggregate in self.all() if predicate(aggregate)]

    def __iter__(self) -> Iterator[T]:
        return iter(self.all())

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)
