"""Generation-checked slot storage for widget nodes."""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Generic, TypeVar

from ..models import StaleHandleError

__all__ = ["Arena", "NodeHandle"]

T = TypeVar("T")


@dataclass(frozen=True)
class NodeHandle:
    """Index of a slot plus the generation the slot had when it was filled."""

    index: int
    generation: int

    def __repr__(self) -> str:
        return f"<node {self.index}.{self.generation}>"


@dataclass
class _Slot(Generic[T]):
    generation: int = 0
    value: T | None = None


class Arena(Generic[T]):
    """Stores values in reusable slots.

    Freeing a slot bumps its generation so handles pointing at the previous
    occupant are detected as stale instead of silently aliasing the new one.
    """

    def __init__(self) -> None:
        self._slots: list[_Slot[T]] = []
        self._free: list[int] = []
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __contains__(self, handle: object) -> bool:
        if not isinstance(handle, NodeHandle) or handle.index >= len(self._slots):
            return False
        slot = self._slots[handle.index]
        return slot.value is not None and slot.generation == handle.generation

    def insert(self, value: T) -> NodeHandle:
        """Store `value` and return its handle."""
        if self._free:
            index = self._free.pop()
            slot = self._slots[index]
        else:
            index = len(self._slots)
            slot = _Slot()
            self._slots.append(slot)
        slot.value = value
        self._count += 1
        return NodeHandle(index, slot.generation)

    def get(self, handle: NodeHandle) -> T:
        """Return the value of a live handle.

        Raises:
            StaleHandleError: if the slot was freed since the handle was issued
        """
        if handle not in self:
            msg = f"{handle!r} refers to a destroyed widget"
            raise StaleHandleError(msg)
        return self._slots[handle.index].value  # type: ignore[return-value]

    def remove(self, handle: NodeHandle) -> T:
        """Free the slot of `handle` and return its former value."""
        value = self.get(handle)
        slot = self._slots[handle.index]
        slot.value = None
        slot.generation += 1
        self._free.append(handle.index)
        self._count -= 1
        return value

    def items(self) -> Iterator[tuple[NodeHandle, T]]:
        """Iterate over the live (handle, value) pairs."""
        for index, slot in enumerate(self._slots):
            if slot.value is not None:
                yield NodeHandle(index, slot.generation), slot.value

    def clear(self) -> None:
        """Free every slot."""
        for handle, _ in list(self.items()):
            self.remove(handle)
