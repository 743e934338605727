"""Result types for operations that run over many independent items."""

from dataclasses import dataclass, field
from typing import Generic, Iterable, List, TypeVar, Union

from .exceptions import Failure

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome for one item."""

    value: T
    reference: str = ""


Result = Union[Success[T], Failure]


@dataclass(frozen=True)
class BatchResult(Generic[T]):
    """Partial success across a batch.

    ``success`` is only true when no item failed; ``message`` repeats the
    first failure so callers have something to show.
    """

    items: List[T] = field(default_factory=list)
    failures: List[Failure] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: Iterable["Result[T]"]) -> "BatchResult[T]":
        items: List[T] = []
        failures: List[Failure] = []
        for result in results:
            if isinstance(result, Success):
                items.append(result.value)
            else:
                failures.append(result)
        return cls(items=items, failures=failures)

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def message(self) -> str:
        return self.failures[0].message if self.failures else "Success"

    @property
    def success_count(self) -> int:
        return len(self.items)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def count(self) -> int:
        return self.success_count + self.failure_count
