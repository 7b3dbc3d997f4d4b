"""Skyline bottom-left rectangle packer for building texture atlases."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable

MAX_COORD = 0x7FFFFFFF
"""Coordinate given to rectangles that could not be packed."""

_SENTINEL_Y = 1 << 30


class Heuristic(enum.IntEnum):
    """How the packer chooses among candidate positions."""

    BL_SORT_HEIGHT = 0
    BF_SORT_HEIGHT = 1

    DEFAULT = 0


@dataclass
class PackRect:
    """A rectangle to pack; ``x``, ``y`` and ``was_packed`` are filled in by packing."""

    w: int
    h: int
    id: int = 0
    x: int = 0
    y: int = 0
    was_packed: bool = False


@dataclass
class _Node:
    x: int
    y: int


@dataclass
class _Placement:
    index: int
    x: int
    y: int


class RectPacker:
    """Packs rectangles into a fixed target area without rotating them."""

    def __init__(self, width: int, height: int, num_nodes: int) -> None:
        if width < 0 or height < 0:
            raise ValueError(f"invalid target size {width}x{height}")
        if num_nodes < 1:
            raise ValueError(f"need at least one node, got {num_nodes}")
        self.width = width
        self.height = height
        self.num_nodes = num_nodes
        self.heuristic = Heuristic.DEFAULT
        # The first node spans the full width; the last one is a sentinel.
        self._skyline = [_Node(0, 0), _Node(width, _SENTINEL_Y)]
        self.allow_out_of_mem(False)

    def allow_out_of_mem(self, allow: bool) -> None:
        """Pack at full precision (may run out of nodes) or quantise widths so it never does."""
        if allow:
            self._align = 1
        else:
            self._align = max(1, (self.width + self.num_nodes - 1) // self.num_nodes)

    def set_heuristic(self, heuristic: Heuristic | int) -> None:
        """Select the placement heuristic; raises ``ValueError`` for unknown values."""
        self.heuristic = Heuristic(heuristic)

    @property
    def _free_nodes(self) -> int:
        return self.num_nodes + 2 - len(self._skyline)

    def _find_min_y(self, first: int, x0: int, width: int) -> tuple[int, int]:
        """Return the lowest y at which ``width`` fits starting at ``x0``, and the wasted area."""
        nodes = self._skyline
        x1 = x0 + width
        min_y = 0
        waste = 0
        visited = 0
        i = first
        while nodes[i].x < x1:
            node, following = nodes[i], nodes[i + 1]
            if node.y > min_y:
                waste += visited * (node.y - min_y)
                min_y = node.y
                if node.x < x0:
                    visited += following.x - x0
                else:
                    visited += following.x - node.x
            else:
                under = following.x - node.x
                if under + visited > width:
                    under = width - visited
                waste += under * (min_y - node.y)
                visited += under
            i += 1
        return min_y, waste

    def _find_best_pos(self, width: int, height: int) -> _Placement | None:
        width = width + self._align - 1
        width -= width % self._align
        if width > self.width or height > self.height:
            return None

        nodes = self._skyline
        best: int | None = None
        best_y = _SENTINEL_Y
        best_waste = _SENTINEL_Y

        i = 0
        while nodes[i].x + width <= self.width:
            y, waste = self._find_min_y(i, nodes[i].x, width)
            if self.heuristic == Heuristic.BL_SORT_HEIGHT:
                if y < best_y:
                    best_y = y
                    best = i
            elif y + height <= self.height:
                if y < best_y or (y == best_y and waste < best_waste):
                    best_y = y
                    best_waste = waste
                    best = i
            i += 1

        best_x = 0 if best is None else nodes[best].x

        if self.heuristic == Heuristic.BF_SORT_HEIGHT:
            # Also try aligning the right edge with each skyline step.
            tail = 0
            node = 0
            while nodes[tail].x < width:
                tail += 1
            while tail < len(nodes):
                xpos = nodes[tail].x - width
                while nodes[node + 1].x <= xpos:
                    node += 1
                y, waste = self._find_min_y(node, xpos, width)
                if y + height <= self.height and y <= best_y:
                    if (
                        y < best_y
                        or waste < best_waste
                        or (waste == best_waste and xpos < best_x)
                    ):
                        best_x = xpos
                        best_y = y
                        best_waste = waste
                        best = node
                tail += 1

        if best is None:
            return None
        return _Placement(best, best_x, best_y)

    def _pack_one(self, width: int, height: int) -> _Placement | None:
        found = self._find_best_pos(width, height)
        if found is None or found.y + height > self.height or self._free_nodes == 0:
            return None

        nodes = self._skyline
        new_node = _Node(found.x, found.y + height)
        insert_at = found.index + 1 if nodes[found.index].x < found.x else found.index
        right = found.x + width
        end = insert_at
        while end + 1 < len(nodes) and nodes[end + 1].x <= right:
            end += 1
        if nodes[end].x < right:
            nodes[end].x = right
        nodes[insert_at:end] = [new_node]
        return found

    def pack(self, rects: Iterable[PackRect]) -> bool:
        """Place the rectangles in place; return True if every one of them fitted."""
        items = list(rects)
        order = sorted(items, key=lambda r: (-r.h, -r.w))
        for rect in order:
            if rect.w == 0 or rect.h == 0:
                rect.x = rect.y = 0
                continue
            placed = self._pack_one(rect.w, rect.h)
            if placed is None:
                rect.x = rect.y = MAX_COORD
            else:
                rect.x, rect.y = placed.x, placed.y

        all_packed = True
        for rect in items:
            rect.was_packed = not (rect.x == MAX_COORD and rect.y == MAX_COORD)
            if not rect.was_packed:
                all_packed = False
        return all_packed