import abc
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class PoolExhaustedError(Exception):
    capacity: int

    def __str__(self) -> str:
        return f"Node pool exhausted (capacity {self.capacity})"


class NodeAllocator(abc.ABC):
    """Hands out expression nodes for one compilation.

    Every allocated node remembers its allocator, so releasing a tree returns
    its nodes to wherever they came from.
    """

    def allocate(self, node: Any) -> Any:
        self._acquire(node)
        node.allocator = self
        return node

    def release(self, node: Any) -> None:
        if node.allocator is not self:
            return
        self._return(node)
        node.allocator = None

    @abc.abstractmethod
    def _acquire(self, node: Any) -> None:
        ...

    @abc.abstractmethod
    def _return(self, node: Any) -> None:
        ...

    @property
    @abc.abstractmethod
    def in_use(self) -> int:
        ...


class HeapAllocator(NodeAllocator):
    def __init__(self) -> None:
        self._count = 0

    def _acquire(self, node: Any) -> None:
        self._count += 1

    def _return(self, node: Any) -> None:
        self._count -= 1

    @property
    def in_use(self) -> int:
        return self._count


class PoolAllocator(NodeAllocator):
    """Fixed number of slots; each allocated node gets its slot index as `handle`."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"Pool capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.slots: list[Any | None] = [None] * capacity
        self._free: list[int] = list(reversed(range(capacity)))

    def _acquire(self, node: Any) -> None:
        if not self._free:
            logger.debug("Node pool of %d slots exhausted", self.capacity)
            raise PoolExhaustedError(capacity=self.capacity)
        handle = self._free.pop()
        self.slots[handle] = node
        node.handle = handle

    def _return(self, node: Any) -> None:
        self.slots[node.handle] = None
        self._free.append(node.handle)
        node.handle = None

    @property
    def in_use(self) -> int:
        return self.capacity - len(self._free)


def make_allocator(max_nodes: int | None) -> NodeAllocator:
    if max_nodes is None:
        return HeapAllocator()
    return PoolAllocator(max_nodes)
