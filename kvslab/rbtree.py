"""Red-black tree keyed by an arbitrary three-way comparison function."""

from __future__ import annotations

import enum
from typing import Any, Callable, Iterator, Optional

Compare = Callable[[Any, Any], int]


class Color(enum.Enum):
    """Colour of a red-black tree node."""

    RED = 0
    BLACK = 1


def _natural_compare(left: Any, right: Any) -> int:
    return (left > right) - (left < right)


class _Node:
    __slots__ = ("key", "value", "left", "right", "parent", "color")

    def __init__(self, key: Any, value: Any, color: Color) -> None:
        self.key = key
        self.value = value
        self.color = color
        self.left: Optional[_Node] = None
        self.right: Optional[_Node] = None
        self.parent: Optional[_Node] = None


def _color(node: Optional[_Node]) -> Color:
    return Color.BLACK if node is None else node.color


def _sibling(node: _Node) -> Optional[_Node]:
    parent = node.parent
    return parent.right if node is parent.left else parent.left


def _maximum(node: _Node) -> _Node:
    while node.right is not None:
        node = node.right
    return node


def _minimum(node: _Node) -> _Node:
    while node.left is not None:
        node = node.left
    return node


def _successors(node: Optional[_Node]) -> Iterator[_Node]:
    """Yield ``node`` and then every following node in key order."""
    while node is not None:
        yield node
        if node.right is not None:
            node = _minimum(node.right)
        else:
            while node.parent is not None and node is node.parent.right:
                node = node.parent
            node = node.parent


class RBTree:
    """Ordered map backed by a red-black tree.

    ``compare(a, b)`` must return a negative number, zero or a positive
    number when ``a`` is less than, equal to or greater than ``b``.
    """

    def __init__(self, compare: Compare = _natural_compare) -> None:
        self._compare = compare
        self._root: Optional[_Node] = None
        self._last_visited: Optional[_Node] = None
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[tuple[Any, Any]]:
        """Yield ``(key, value)`` pairs in increasing key order."""
        start = None if self._root is None else _minimum(self._root)
        for node in _successors(start):
            yield node.key, node.value

    def _lookup_node(self, key: Any) -> Optional[_Node]:
        node = self._root
        while node is not None:
            result = self._compare(key, node.key)
            if result == 0:
                self._last_visited = node
                return node
            node = node.left if result < 0 else node.right
        return None

    def _lookup_closest_node(self, key: Any) -> Optional[_Node]:
        node = self._root
        closest = None
        while node is not None:
            result = self._compare(key, node.key)
            if result == 0:
                self._last_visited = node
                return node
            if result < 0:
                closest = node
                node = node.left
            else:
                node = node.right
        return closest

    def lookup(self, key: Any) -> Any:
        """Return the value stored under ``key``, or None if it is absent."""
        node = self._lookup_node(key)
        return None if node is None else node.value

    def lookup_n(self, key: Any, n: int) -> list[tuple[Any, Any]]:
        """Return up to ``n`` pairs whose keys are the first ones >= ``key``."""
        if n <= 0:
            return []
        start = self._lookup_closest_node(key)
        result = []
        for node in _successors(start):
            result.append((node.key, node.value))
            if len(result) >= n:
                break
        return result

    def _replace(self, old: _Node, new: Optional[_Node]) -> None:
        parent = old.parent
        if parent is None:
            self._root = new
        elif old is parent.left:
            parent.left = new
        else:
            parent.right = new
        if new is not None:
            new.parent = parent

    def _rotate_left(self, node: _Node) -> None:
        right = node.right
        self._replace(node, right)
        node.right = right.left
        if right.left is not None:
            right.left.parent = node
        right.left = node
        node.parent = right

    def _rotate_right(self, node: _Node) -> None:
        left = node.left
        self._replace(node, left)
        node.left = left.right
        if left.right is not None:
            left.right.parent = node
        left.right = node
        node.parent = left

    def insert(self, key: Any, value: Any) -> None:
        """Insert ``key`` with ``value``, replacing any existing value."""
        last = self._last_visited
        if last is not None and self._compare(key, last.key) == 0:
            last.value = value
            return
        inserted = _Node(key, value, Color.RED)
        if self._root is None:
            self._root = inserted
            self._size = 1
        else:
            node = self._root
            while True:
                result = self._compare(key, node.key)
                if result == 0:
                    node.value = value
                    return
                if result < 0:
                    if node.left is None:
                        node.left = inserted
                        break
                    node = node.left
                else:
                    if node.right is None:
                        node.right = inserted
                        break
                    node = node.right
            self._size += 1
            inserted.parent = node
        self._fix_after_insert(inserted)

    def _fix_after_insert(self, node: _Node) -> None:
        while True:
            parent = node.parent
            if parent is None:
                node.color = Color.BLACK
                return
            if parent.color is Color.BLACK:
                return
            grandparent = parent.parent
            uncle = grandparent.right if parent is grandparent.left else grandparent.left
            if _color(uncle) is Color.RED:
                parent.color = Color.BLACK
                uncle.color = Color.BLACK
                grandparent.color = Color.RED
                node = grandparent
                continue
            if node is parent.right and parent is grandparent.left:
                self._rotate_left(parent)
                node = node.left
            elif node is parent.left and parent is grandparent.right:
                self._rotate_right(parent)
                node = node.right
            parent = node.parent
            grandparent = parent.parent
            parent.color = Color.BLACK
            grandparent.color = Color.RED
            if node is parent.left and parent is grandparent.left:
                self._rotate_right(grandparent)
            else:
                self._rotate_left(grandparent)
            return

    def delete(self, key: Any) -> None:
        """Remove ``key`` from the tree; a missing key is ignored."""
        node = self._lookup_node(key)
        if node is None:
            return
        self._size -= 1
        if node.left is not None and node.right is not None:
            pred = _maximum(node.left)
            node.key = pred.key
            node.value = pred.value
            node = pred
        child = node.left if node.right is None else node.right
        if node.color is Color.BLACK:
            node.color = _color(child)
            self._fix_before_delete(node)
        self._replace(node, child)
        if node.parent is None and child is not None:
            child.color = Color.BLACK
        self._last_visited = None

    def _fix_before_delete(self, node: _Node) -> None:
        while node.parent is not None:
            parent = node.parent
            sibling = _sibling(node)
            if _color(sibling) is Color.RED:
                parent.color = Color.RED
                sibling.color = Color.BLACK
                if node is parent.left:
                    self._rotate_left(parent)
                else:
                    self._rotate_right(parent)
                sibling = _sibling(node)
            children_black = (
                _color(sibling) is Color.BLACK
                and _color(sibling.left) is Color.BLACK
                and _color(sibling.right) is Color.BLACK
            )
            if parent.color is Color.BLACK and children_black:
                sibling.color = Color.RED
                node = parent
                continue
            if parent.color is Color.RED and children_black:
                sibling.color = Color.RED
                parent.color = Color.BLACK
                return
            if (
                node is parent.left
                and _color(sibling) is Color.BLACK
                and _color(sibling.left) is Color.RED
                and _color(sibling.right) is Color.BLACK
            ):
                sibling.color = Color.RED
                sibling.left.color = Color.BLACK
                self._rotate_right(sibling)
            elif (
                node is parent.right
                and _color(sibling) is Color.BLACK
                and _color(sibling.right) is Color.RED
                and _color(sibling.left) is Color.BLACK
            ):
                sibling.color = Color.RED
                sibling.right.color = Color.BLACK
                self._rotate_left(sibling)
            sibling = _sibling(node)
            sibling.color = parent.color
            parent.color = Color.BLACK
            if node is parent.left:
                sibling.right.color = Color.BLACK
                self._rotate_left(parent)
            else:
                sibling.left.color = Color.BLACK
                self._rotate_right(parent)
            return

    def verify(self) -> int:
        """Check the red-black invariants and return the tree's black height.

        Raises ValueError if any invariant is broken.
        """
        if _color(self._root) is not Color.BLACK:
            raise ValueError("root is not black")
        if self._root is not None and self._root.parent is not None:
            raise ValueError("root has a parent")

        count = 0

        def walk(node: Optional[_Node]) -> int:
            nonlocal count
            if node is None:
                return 1
            count += 1
            for child in (node.left, node.right):
                if child is not None and child.parent is not node:
                    raise ValueError("broken parent link")
            if node.color is Color.RED and (
                _color(node.left) is Color.RED or _color(node.right) is Color.RED
            ):
                raise ValueError("red node has a red child")
            left_height = walk(node.left)
            right_height = walk(node.right)
            if left_height != right_height:
                raise ValueError("unequal black heights")
            return left_height + (1 if node.color is Color.BLACK else 0)

        height = walk(self._root)
        if count != self._size:
            raise ValueError("element count does not match")
        previous = None
        for index, (key, _) in enumerate(self):
            if index and self._compare(previous, key) >= 0:
                raise ValueError("keys out of order")
            previous = key
        return height