"""
Grouping of enriched records into bounded dispatch groups.
"""

from typing import Iterable, Iterator, TypeVar

from sale_actions.utils.validation import validate_batch_size

T = TypeVar("T")


class Batcher:
    """
    Groups a stream into lists of at most ``batch_size`` items.

    Groups are flushed as soon as they are full, and once more for the
    trailing partial group. Arrival order is kept; an empty group is never
    produced.
    """

    def __init__(self, batch_size: int):
        self.batch_size = validate_batch_size(batch_size, "batch_size")

    def batches(self, items: Iterable[T]) -> Iterator[list[T]]:
        group: list[T] = []
        for item in items:
            group.append(item)
            if len(group) >= self.batch_size:
                yield group
                group = []
        if group:
            yield group
