"""Caller-owned registry of widget instances.

Instances live in slots of an arena and are addressed by handles. A
handle records the slot's generation at registration time, so a handle
kept after remove() never reaches a newer instance reusing the slot.
"""

from collections.abc import Iterator
from typing import Generic, NamedTuple, TypeVar

T = TypeVar("T")


class WidgetHandle(NamedTuple):
    index: int
    generation: int


class _Slot(Generic[T]):
    __slots__ = ("generation", "value")

    def __init__(self) -> None:
        self.generation = 0
        self.value: T | None = None


class WidgetRegistry(Generic[T]):
    """Arena of widget instances addressed by WidgetHandle."""

    def __init__(self) -> None:
        self._slots: list[_Slot[T]] = []
        self._free: list[int] = []

    def register(self, widget: T) -> WidgetHandle:
        if self._free:
            index = self._free.pop()
            slot = self._slots[index]
        else:
            index = len(self._slots)
            slot = _Slot()
            self._slots.append(slot)
        slot.value = widget
        return WidgetHandle(index, slot.generation)

    def _live(self, handle: WidgetHandle) -> tuple[_Slot[T], T]:
        if not 0 <= handle.index < len(self._slots):
            raise KeyError(handle)
        slot = self._slots[handle.index]
        value = slot.value
        if slot.generation != handle.generation or value is None:
            raise KeyError(handle)
        return slot, value

    def get(self, handle: WidgetHandle) -> T:
        """Widget behind a handle.

        Raises:
            KeyError: The handle was removed or never issued here.
        """
        return self._live(handle)[1]

    def remove(self, handle: WidgetHandle) -> T:
        """Drop a widget and invalidate its handle.

        Raises:
            KeyError: The handle was removed or never issued here.
        """
        slot, value = self._live(handle)
        slot.value = None
        slot.generation += 1
        self._free.append(handle.index)
        return value

    def __contains__(self, handle: object) -> bool:
        if not isinstance(handle, WidgetHandle):
            return False
        try:
            self._live(handle)
        except KeyError:
            return False
        return True

    def __len__(self) -> int:
        return len(self._slots) - len(self._free)

    def __iter__(self) -> Iterator[tuple[WidgetHandle, T]]:
        for index, slot in enumerate(self._slots):
            if slot.value is not None:
                yield WidgetHandle(index, slot.generation), slot.value
