"""Conflict resolution strategies used when merging a cluster."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence, Type, TypeVar

from orgdedup.entities.core import Organisation

T = TypeVar("T")


class UnknownStrategyError(ValueError):
    """Raised when a strategy name has no registered implementation."""


@dataclass
class FieldValue:
    """A populated field value together with the member that supplied it."""

    record: Organisation
    value: Any


def _first_max(items: Sequence[T], key: Callable[[T], Any]) -> T:
    """Return the first item holding the maximum key; later ties never win."""

    best = items[0]
    best_key = key(best)
    for item in items[1:]:
        candidate = key(item)
        if candidate > best_key:
            best, best_key = item, candidate
    return best


class ConflictStrategy(ABC):
    """Chooses the base record of a cluster and settles conflicting field values."""

    name: str = ""
    requires_review: bool = False

    @abstractmethod
    def select_base(self, records: Sequence[Organisation]) -> Organisation:
        raise NotImplementedError

    @abstractmethod
    def resolve(self, values: Sequence[FieldValue]) -> Any:
        raise NotImplementedError

    def describe(self) -> str:
        return f"Resolved by {self.name} strategy"


class NewestStrategy(ConflictStrategy):
    name = "newest"

    def select_base(self, records: Sequence[Organisation]) -> Organisation:
        return _first_max(records, lambda record: record.last_updated)

    def resolve(self, values: Sequence[FieldValue]) -> Any:
        return _first_max(values, lambda item: item.record.last_updated).value


class HighestConfidenceStrategy(ConflictStrategy):
    name = "highest_confidence"

    def select_base(self, records: Sequence[Organisation]) -> Organisation:
        return _first_max(records, lambda record: record.best_source_confidence())

    def resolve(self, values: Sequence[FieldValue]) -> Any:
        return _first_max(values, lambda item: item.record.best_source_confidence()).value


class MostCompleteStrategy(ConflictStrategy):
    """Prefer the record with the highest stored completeness and, for strings, the longest value."""

    name = "most_complete"

    def select_base(self, records: Sequence[Organisation]) -> Organisation:
        return _first_max(records, lambda record: record.data_quality.completeness)

    def resolve(self, values: Sequence[FieldValue]) -> Any:
        strings = [item for item in values if isinstance(item.value, str)]
        if strings:
            return _first_max(strings, lambda item: len(item.value)).value
        # Dates, locations and lists keep the first present value.
        return values[0].value


class ManualStrategy(ConflictStrategy):
    """Keep the first record and value; the merge is flagged for human review."""

    name = "manual"
    requires_review = True

    def select_base(self, records: Sequence[Organisation]) -> Organisation:
        return records[0]

    def resolve(self, values: Sequence[FieldValue]) -> Any:
        return values[0].value

    def describe(self) -> str:
        return "Deferred to manual review; first value kept"


STRATEGIES: Dict[str, Type[ConflictStrategy]] = {
    strategy.name: strategy
    for strategy in (
        NewestStrategy,
        HighestConfidenceStrategy,
        MostCompleteStrategy,
        ManualStrategy,
    )
}


def get_strategy(name: str) -> ConflictStrategy:
    try:
        return STRATEGIES[name]()
    except KeyError as exc:
        raise UnknownStrategyError(
            f"Unknown conflict resolution strategy {name!r}; expected one of {sorted(STRATEGIES)}"
        ) from exc


__all__ = [
    "ConflictStrategy",
    "FieldValue",
    "HighestConfidenceStrategy",
    "ManualStrategy",
    "MostCompleteStrategy",
    "NewestStrategy",
    "STRATEGIES",
    "UnknownStrategyError",
    "get_strategy",
]
