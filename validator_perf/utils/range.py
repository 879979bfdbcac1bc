from itertools import batched
from typing import Iterable, Iterator, TypeVar, cast

T = TypeVar("T", bound=int)


def sequence(start: T, stop: T) -> Iterable[T]:
    """Slots or epochs from start to stop, both included"""
    if start > stop:
        raise ValueError(f"{start=} > {stop=}")
    return cast(Iterable, range(start, stop + 1))


def chunked_sequence(start: T, stop: T, size: int) -> Iterator[list[T]]:
    """`sequence(start, stop)` in order, split into lists of at most `size` items"""
    if size < 1:
        raise ValueError(f"{size=} must be positive")
    for chunk in batched(sequence(start, stop), size):
        yield list(chunk)
