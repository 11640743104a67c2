"""
Module: producao_engines.categories
Responsibility:
    Accounting category taxonomy as an adjacency map built once per run,
    answering subtree-membership queries for revenue classification.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - A subtree includes its root.
    - Subtrees are computed once per root and cached for the run.
    - Cycles in parent links never cause infinite traversal.

Failure modes:
    - KeyError from ``subtree`` when the root id is not a known category.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from producao_kernel.domain.records import CategoryNode


class CategoryTree:
    """
    Flat node index plus a parent -> children map.

    Guarantees:
        - ``subtree(root)`` returns a frozenset of every category id
          reachable from ``root`` through child links, ``root`` included.
    """

    def __init__(self, nodes: Iterable[CategoryNode]):
        self._nodes: dict[int, CategoryNode] = {}
        self._children: dict[int, list[int]] = defaultdict(list)
        for node in nodes:
            self._nodes[node.id] = node
            if node.parent_id is not None:
                self._children[node.parent_id].append(node.id)
        self._subtrees: dict[int, frozenset[int]] = {}

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, category_id: int) -> CategoryNode:
        return self._nodes[category_id]

    def children(self, category_id: int) -> tuple[int, ...]:
        return tuple(self._children.get(category_id, ()))

    def subtree(self, root_id: int) -> frozenset[int]:
        if root_id not in self._nodes:
            raise KeyError(f"Unknown category: {root_id}")
        if root_id not in self._subtrees:
            seen: set[int] = set()
            stack = [root_id]
            while stack:
                current = stack.pop()
                if current in seen:
                    continue
                seen.add(current)
                stack.extend(self._children.get(current, ()))
            self._subtrees[root_id] = frozenset(seen)
        return self._subtrees[root_id]
