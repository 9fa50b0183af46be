"""
Classification Tree - HSN code hierarchy.

Models the HSN registry as an arena of codes keyed by the code string.  Each
code holds only the key of its parent (a back-reference, never an owning
pointer), which keeps the structure acyclic in memory and makes path
reconstruction a sequence of dictionary lookups.

Pure functions with no I/O.  Trees are built by catalog administration
(YAML loader, database selector) and are read-only to the engines.

Usage:
    from gst_engines.classification import ClassificationCode, ClassificationTree

    tree = ClassificationTree([
        ClassificationCode(code="25", level=1, description="Salt; earths; cement"),
        ClassificationCode(code="2523", parent_code="25", level=2),
    ])
    tree.resolve_path("2523")            # ("25", "2523")
    tree.is_descendant_of("2523", "25")  # True
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Iterator, Protocol

from gst_kernel.exceptions import (
    BrokenClassificationChainError,
    ClassificationCycleError,
    ClassificationInactiveError,
    ClassificationLevelError,
    ClassificationNotFoundError,
)
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.classification")

# chapter / heading / sub-heading / tariff item, with headroom
MAX_CLASSIFICATION_DEPTH = 8


@dataclass(frozen=True)
class ClassificationCode:
    """
    One node of the HSN hierarchy.

    Immutable value object; ``parent_code`` is a lookup key, not a reference.
    """

    code: str
    level: int = 1
    parent_code: str | None = None
    description: str = ""
    active: bool = True
    effective_from: date | None = None
    effective_to: date | None = None
    unit_of_measurement: str | None = None

    def __post_init__(self) -> None:
        if not self.code or not self.code.strip():
            raise ValueError("code cannot be empty")
        if self.level < 1:
            raise ValueError(f"level must be >= 1, got {self.level}")
        if self.parent_code == self.code:
            raise ValueError(f"code {self.code} cannot be its own parent")
        if (
            self.effective_from is not None
            and self.effective_to is not None
            and self.effective_to <= self.effective_from
        ):
            raise ValueError("effective_to must be after effective_from")

    @property
    def is_root(self) -> bool:
        return self.parent_code is None

    def is_valid_for(self, as_of: date) -> bool:
        """Active and inside the optional effective window (end exclusive)."""
        if not self.active:
            return False
        if self.effective_from is not None and as_of < self.effective_from:
            return False
        if self.effective_to is not None and as_of >= self.effective_to:
            return False
        return True


class ClassificationLookup(Protocol):
    """Read-only access to classification codes by key."""

    def get(self, code: str) -> ClassificationCode | None:
        ...


def resolve_path(
    lookup: ClassificationLookup,
    code: str,
    max_depth: int = MAX_CLASSIFICATION_DEPTH,
) -> tuple[ClassificationCode, ...]:
    """
    Walk parent references from ``code`` up to its root.

    Works over any lookup, so the engine can use an in-memory tree or a
    database-backed selector interchangeably.

    Returns:
        Nodes ordered root -> code.

    Raises:
        ClassificationNotFoundError: If ``code`` does not exist.
        BrokenClassificationChainError: If a parent reference is unresolvable.
        ClassificationCycleError: If the chain revisits a code or exceeds
            ``max_depth``.
    """
    node = lookup.get(code)
    if node is None:
        raise ClassificationNotFoundError(code)

    chain: list[ClassificationCode] = [node]
    seen = {node.code}
    while node.parent_code is not None:
        parent = lookup.get(node.parent_code)
        if parent is None:
            logger.error("classification_parent_missing", extra={
                "classification_code": code,
                "missing_parent": node.parent_code,
            })
            raise BrokenClassificationChainError(node.code, node.parent_code)
        if parent.code in seen or len(chain) >= max_depth:
            path = tuple(n.code for n in reversed(chain)) + (parent.code,)
            raise ClassificationCycleError(code, path)
        seen.add(parent.code)
        chain.append(parent)
        node = parent

    chain.reverse()
    return tuple(chain)


def require_valid_classification(
    lookup: ClassificationLookup,
    code: str,
    as_of: date,
) -> tuple[ClassificationCode, ...]:
    """
    Resolve the path of ``code`` and check the leaf is valid on ``as_of``.

    Raises:
        ClassificationError subclasses (see resolve_path), or
        ClassificationInactiveError if the leaf is inactive or outside its
        effective window.
    """
    path = resolve_path(lookup, code)
    if not path[-1].is_valid_for(as_of):
        raise ClassificationInactiveError(code, as_of)
    return path


class ClassificationTree:
    """
    In-memory classification arena.

    Contract:
        Holds an immutable snapshot of codes keyed by code string.  All
        queries are O(depth); depth is small (<= 4 in practice).

    Non-goals:
        No mutation operations -- tree edits belong to catalog administration.
    """

    def __init__(self, codes: Iterable[ClassificationCode] = ()):
        arena: dict[str, ClassificationCode] = {}
        for node in codes:
            if node.code in arena:
                raise ValueError(f"Duplicate classification code: {node.code}")
            arena[node.code] = node
        self._arena = arena
        self._children: dict[str, tuple[str, ...]] = {}
        for node in sorted(arena.values(), key=lambda n: n.code):
            if node.parent_code is not None:
                self._children[node.parent_code] = (
                    self._children.get(node.parent_code, ()) + (node.code,)
                )

    def __len__(self) -> int:
        return len(self._arena)

    def __contains__(self, code: object) -> bool:
        return code in self._arena

    def __iter__(self) -> Iterator[ClassificationCode]:
        return iter(sorted(self._arena.values(), key=lambda n: n.code))

    def get(self, code: str) -> ClassificationCode | None:
        return self._arena.get(code)

    def resolve_path(self, code: str) -> tuple[str, ...]:
        """Ordered codes from root to ``code``."""
        return tuple(node.code for node in resolve_path(self, code))

    def full_path(self, code: str, separator: str = " > ") -> str:
        """Display form of the root -> code path."""
        return separator.join(self.resolve_path(code))

    def is_descendant_of(self, code: str, ancestor: str) -> bool:
        """True if ``ancestor`` is a strict ancestor of ``code``."""
        if code == ancestor:
            return False
        return ancestor in self.resolve_path(code)[:-1]

    def children_of(self, code: str) -> tuple[ClassificationCode, ...]:
        if code not in self._arena:
            raise ClassificationNotFoundError(code)
        return tuple(self._arena[c] for c in self._children.get(code, ()))

    def roots(self) -> tuple[ClassificationCode, ...]:
        return tuple(node for node in self if node.is_root)

    def validate(self) -> None:
        """
        Check every node's parent chain and declared level.

        Raises:
            BrokenClassificationChainError, ClassificationCycleError,
            ClassificationLevelError on the first inconsistent node.
        """
        for node in self:
            path = resolve_path(self, node.code)
            if node.level != len(path):
                raise ClassificationLevelError(node.code, node.level, len(path))
        logger.debug("classification_tree_validated", extra={
            "code_count": len(self._arena),
            "root_count": len(self.roots()),
        })
