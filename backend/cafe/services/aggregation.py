# Overview: Periodic aggregation over dated ledgers (settlement buckets, payroll weeks, sales periods).

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Hashable, Iterable, TypeVar

T = TypeVar("T")


@dataclass
class Group(Generic[T]):
    key: Any
    total: float = 0
    records: list[T] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)


def group_and_sum(
    records: Iterable[T],
    key: Callable[[T], Hashable],
    amount: Callable[[T], float],
    *,
    sort: bool = True,
) -> list[Group[T]]:
    """
    Bucket records by key and sum amount per bucket.

    Records keep their input order inside a bucket, so callers that need a
    secondary ordering sort the input first. Buckets are returned sorted by
    key (or in first-seen order when sort=False).
    """
    groups: dict[Hashable, Group[T]] = {}
    for record in records:
        k = key(record)
        group = groups.get(k)
        if group is None:
            group = groups[k] = Group(key=k)
        group.total += amount(record)
        group.records.append(record)

    result = list(groups.values())
    if sort:
        result.sort(key=lambda g: g.key)
    return result
