"""
Tests for the HSN classification tree.

Covers:
- Path reconstruction root -> leaf
- Ancestor queries
- Validation of parent chains, cycles and levels
- Validity windows
"""

from datetime import date

import pytest

from gst_engines.classification import (
    ClassificationCode,
    ClassificationTree,
    require_valid_classification,
    resolve_path,
)
from gst_kernel.exceptions import (
    BrokenClassificationChainError,
    ClassificationCycleError,
    ClassificationError,
    ClassificationInactiveError,
    ClassificationLevelError,
    ClassificationNotFoundError,
)


def _cement_tree() -> ClassificationTree:
    return ClassificationTree([
        ClassificationCode(code="25", level=1, description="Salt; earths; cement"),
        ClassificationCode(code="2523", level=2, parent_code="25", description="Cement"),
        ClassificationCode(code="252329", level=3, parent_code="2523"),
        ClassificationCode(code="25232910", level=4, parent_code="252329"),
        ClassificationCode(code="2501", level=2, parent_code="25", description="Salt"),
    ])


class _DictLookup:
    """Lookup over a plain dict; lets tests build trees the arena rejects."""

    def __init__(self, *nodes: ClassificationCode):
        self._nodes = {n.code: n for n in nodes}

    def get(self, code):
        return self._nodes.get(code)


class TestClassificationPaths:
    """Tests for path reconstruction and ancestry."""

    def setup_method(self):
        self.tree = _cement_tree()

    def test_resolve_path_root_first(self):
        assert self.tree.resolve_path("25232910") == ("25", "2523", "252329", "25232910")

    def test_root_path_is_itself(self):
        assert self.tree.resolve_path("25") == ("25",)

    def test_full_path(self):
        assert self.tree.full_path("2523") == "25 > 2523"
        assert self.tree.full_path("2523", separator="/") == "25/2523"

    def test_is_descendant_of(self):
        assert self.tree.is_descendant_of("25232910", "25")
        assert self.tree.is_descendant_of("2523", "25")
        assert not self.tree.is_descendant_of("2501", "2523")

    def test_code_is_not_its_own_descendant(self):
        assert not self.tree.is_descendant_of("2523", "2523")

    def test_children_and_roots(self):
        assert [c.code for c in self.tree.children_of("25")] == ["2501", "2523"]
        assert [r.code for r in self.tree.roots()] == ["25"]
        assert self.tree.children_of("25232910") == ()

    def test_unknown_code(self):
        with pytest.raises(ClassificationNotFoundError) as exc_info:
            self.tree.resolve_path("9999")
        assert exc_info.value.classification_code == "9999"
        assert isinstance(exc_info.value, ClassificationError)

    def test_len_and_contains(self):
        assert len(self.tree) == 5
        assert "2523" in self.tree
        assert "9999" not in self.tree

    def test_duplicate_code_rejected(self):
        with pytest.raises(ValueError):
            ClassificationTree([ClassificationCode(code="25"), ClassificationCode(code="25")])


class TestClassificationValidation:
    """Tests for tree integrity checks."""

    def test_valid_tree_passes(self):
        _cement_tree().validate()

    def test_broken_parent_chain(self):
        tree = ClassificationTree([
            ClassificationCode(code="2523", level=2, parent_code="25"),
        ])
        with pytest.raises(BrokenClassificationChainError) as exc_info:
            tree.validate()
        assert exc_info.value.missing_parent == "25"

    def test_level_mismatch(self):
        tree = ClassificationTree([
            ClassificationCode(code="25", level=1),
            ClassificationCode(code="2523", level=3, parent_code="25"),
        ])
        with pytest.raises(ClassificationLevelError) as exc_info:
            tree.validate()
        assert exc_info.value.declared == 3
        assert exc_info.value.expected == 2

    def test_cycle_detected(self):
        lookup = _DictLookup(
            ClassificationCode(code="A", parent_code="B"),
            ClassificationCode(code="B", parent_code="A"),
        )
        with pytest.raises(ClassificationCycleError):
            resolve_path(lookup, "A")

    def test_self_parent_rejected(self):
        with pytest.raises(ValueError):
            ClassificationCode(code="25", parent_code="25")


class TestClassificationValidity:
    """Tests for the as-of validity check used by the engine."""

    def test_inactive_code_rejected(self):
        tree = ClassificationTree([ClassificationCode(code="25", active=False)])
        with pytest.raises(ClassificationInactiveError):
            require_valid_classification(tree, "25", date(2024, 1, 1))

    def test_window_end_is_exclusive(self):
        code = ClassificationCode(
            code="25",
            effective_from=date(2017, 7, 1),
            effective_to=date(2025, 1, 1),
        )
        assert code.is_valid_for(date(2024, 12, 31))
        assert not code.is_valid_for(date(2025, 1, 1))
        assert not code.is_valid_for(date(2017, 6, 30))

    def test_valid_code_returns_path(self):
        path = require_valid_classification(_cement_tree(), "2523", date(2024, 1, 1))
        assert [n.code for n in path] == ["25", "2523"]
