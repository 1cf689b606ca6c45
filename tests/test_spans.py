"""Tests for spans — merge spans, subtotal boundaries and parent span adjustment."""

from __future__ import annotations

import random

import numpy as np
import pytest

from pivot_layout.exceptions import IndexOutOfRangeError, InvalidInputError
from pivot_layout.spans import (
    SKIP_SPAN,
    GroupIndex,
    parent_span_adjustment,
    should_render_subtotal,
    span_size,
)

# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------

TWO_GROUPS = [["A", "X"], ["A", "Y"], ["B", "Z"]]
SINGLE_ROW = [["A", "X"]]
FLAT_LEAVES = [["A", "X"], ["A", "Y"], ["A", "Z"], ["B", "W"]]

THREE_LEVELS = [
    ("A", "X", "1"),
    ("A", "X", "2"),
    ("A", "Y", "1"),
    ("A", "Y", "2"),
    ("B", "Z", "1"),
]

FOUR_LEVELS = [
    ("A", "X", "p", "1"),
    ("A", "X", "p", "2"),
    ("A", "X", "q", "1"),
    ("A", "X", "q", "2"),
    ("A", "W", "r", "1"),
    ("A", "W", "r", "2"),
]


def _groups(matrix, level):
    """Maximal (start, end) runs sharing the prefix of length level+1."""
    groups = []
    start = 0
    for r in range(1, len(matrix) + 1):
        if r == len(matrix) or tuple(matrix[r][:level + 1]) != tuple(matrix[start][:level + 1]):
            groups.append((start, r - 1))
            start = r
    return groups


def _rendered_rows(matrix):
    """Body rows in render order: each data row followed by its subtotal rows, innermost first."""
    depth = len(matrix[0])
    closing = {
        level: {end for start, end in _groups(matrix, level) if end > start}
        for level in range(depth - 1)
    }
    rows = []
    for r in range(len(matrix)):
        rows.append(("data", r))
        for level in range(depth - 2, -1, -1):
            if r in closing[level]:
                rows.append(("subtotal", r, level))
    return rows


def _reference_span(matrix, position, level):
    for start, end in _groups(matrix, level):
        if start == position:
            return end - start + 1
    return SKIP_SPAN


def _reference_adjustment(matrix, position, level):
    """Subtotal rows rendered between a group's first and last data rows."""
    if level >= len(matrix[0]) - 1:
        return 0
    for start, end in _groups(matrix, level):
        if start == position:
            rows = _rendered_rows(matrix)
            first = rows.index(("data", start))
            last = rows.index(("data", end))
            return (last - first) - (end - start)
    return 0


def _random_matrix(rng: random.Random):
    depth = rng.randint(2, 4)
    n_rows = rng.randint(1, 14)
    alphabet = ["a", "b", "c"]
    keys = [tuple(rng.choice(alphabet) for _ in range(depth)) for _ in range(n_rows)]
    return sorted(keys)


RANDOM_MATRICES = [_random_matrix(random.Random(seed)) for seed in range(60)]


# ---------------------------------------------------------------------------
# 1. span_size
# ---------------------------------------------------------------------------


class TestSpanSize:
    def test_group_start_spans_group(self):
        assert span_size(TWO_GROUPS, 0, 0) == 2

    def test_singleton_group(self):
        assert span_size(TWO_GROUPS, 2, 0) == 1

    def test_inside_group_is_skipped(self):
        assert span_size(TWO_GROUPS, 1, 0) == SKIP_SPAN == -1

    def test_leaf_level_spans_one(self):
        assert [span_size(TWO_GROUPS, i, 1) for i in range(3)] == [1, 1, 1]

    def test_single_row_spans_one_everywhere(self):
        assert span_size(SINGLE_ROW, 0, 0) == 1
        assert span_size(SINGLE_ROW, 0, 1) == 1

    def test_inner_level_breaks_on_outer_change(self):
        # Same inner label under different outer labels never merges
        matrix = [["A", "X"], ["B", "X"]]
        assert span_size(matrix, 0, 1) == 1
        assert span_size(matrix, 1, 1) == 1

    def test_three_levels(self):
        assert span_size(THREE_LEVELS, 0, 0) == 4
        assert span_size(THREE_LEVELS, 0, 1) == 2
        assert span_size(THREE_LEVELS, 2, 1) == 2
        assert span_size(THREE_LEVELS, 3, 1) == SKIP_SPAN
        assert span_size(THREE_LEVELS, 4, 0) == 1

    def test_accepts_tuples_and_mixed_rows(self):
        matrix = (("A", "X"), ["A", "Y"])
        assert span_size(matrix, 0, 0) == 2

    @pytest.mark.parametrize("matrix", RANDOM_MATRICES)
    def test_matches_reference(self, matrix):
        for level in range(len(matrix[0])):
            for position in range(len(matrix)):
                assert span_size(matrix, position, level) == _reference_span(matrix, position, level)

    @pytest.mark.parametrize("matrix", RANDOM_MATRICES)
    def test_group_cover(self, matrix):
        for level in range(len(matrix[0])):
            spans = [span_size(matrix, p, level) for p in range(len(matrix))]
            assert sum(s for s in spans if s != SKIP_SPAN) == len(matrix)

    @pytest.mark.parametrize("matrix", RANDOM_MATRICES)
    def test_sentinel_consistency(self, matrix):
        for level in range(len(matrix[0])):
            for p in range(len(matrix)):
                starts_group = p == 0 or tuple(matrix[p - 1][:level + 1]) != tuple(matrix[p][:level + 1])
                assert (span_size(matrix, p, level) == SKIP_SPAN) == (not starts_group)


# ---------------------------------------------------------------------------
# 2. should_render_subtotal
# ---------------------------------------------------------------------------


class TestShouldRenderSubtotal:
    def test_end_of_group(self):
        assert should_render_subtotal(TWO_GROUPS, 1, 0) is True

    def test_other_positions_false(self):
        assert should_render_subtotal(TWO_GROUPS, 0, 0) is False
        assert should_render_subtotal(TWO_GROUPS, 2, 0) is False

    def test_leaf_level_never(self):
        assert not any(should_render_subtotal(TWO_GROUPS, i, 1) for i in range(3))

    def test_single_row_never(self):
        assert should_render_subtotal(SINGLE_ROW, 0, 0) is False

    def test_two_row_group_gets_subtotal(self):
        assert should_render_subtotal([["A", "X"], ["A", "Y"]], 1, 0) is True

    def test_last_row_closes_group(self):
        assert should_render_subtotal(FLAT_LEAVES, 2, 0) is True
        assert should_render_subtotal(FLAT_LEAVES, 3, 0) is False

    def test_nested_levels(self):
        assert should_render_subtotal(THREE_LEVELS, 1, 1) is True
        assert should_render_subtotal(THREE_LEVELS, 3, 1) is True
        assert should_render_subtotal(THREE_LEVELS, 3, 0) is True
        assert should_render_subtotal(THREE_LEVELS, 1, 0) is False

    @pytest.mark.parametrize("matrix", RANDOM_MATRICES)
    def test_subtotal_count_law(self, matrix):
        for level in range(len(matrix[0]) - 1):
            flagged = sum(should_render_subtotal(matrix, p, level) for p in range(len(matrix)))
            big_groups = sum(1 for start, end in _groups(matrix, level) if end > start)
            assert flagged == big_groups


# ---------------------------------------------------------------------------
# 3. parent_span_adjustment
# ---------------------------------------------------------------------------


class TestParentSpanAdjustment:
    def test_single_row(self):
        assert parent_span_adjustment(SINGLE_ROW, 0, 0) == 0
        assert parent_span_adjustment(SINGLE_ROW, 0, 1) == 0

    def test_two_levels_have_no_finer_subtotals(self):
        assert parent_span_adjustment(FLAT_LEAVES, 0, 0) == 0

    def test_not_group_start(self):
        assert parent_span_adjustment(THREE_LEVELS, 1, 0) == 0

    def test_leaf_level(self):
        assert parent_span_adjustment(THREE_LEVELS, 0, 2) == 0

    def test_counts_inner_subtotal(self):
        # Subtotal after row 1 (group A/X) lies inside group A
        assert parent_span_adjustment(THREE_LEVELS, 0, 0) == 1

    def test_coincident_end_not_counted(self):
        # A/Y closes on A's last row, so its subtotal sits below A's merged cell
        matrix = [("A", "X", "1"), ("A", "Y", "1"), ("A", "Y", "2")]
        assert should_render_subtotal(matrix, 2, 1) is True
        assert parent_span_adjustment(matrix, 0, 0) == 0

    def test_four_levels_outer(self):
        # Inside rows 0-4: (1, lvl 2), (3, lvl 2), (3, lvl 1); row 5 ties are excluded
        assert parent_span_adjustment(FOUR_LEVELS, 0, 0) == 3

    def test_four_levels_middle(self):
        assert parent_span_adjustment(FOUR_LEVELS, 0, 1) == 1
        assert parent_span_adjustment(FOUR_LEVELS, 4, 1) == 0

    def test_four_levels_penultimate(self):
        assert parent_span_adjustment(FOUR_LEVELS, 0, 2) == 0

    @pytest.mark.parametrize("matrix", RANDOM_MATRICES)
    def test_matches_rendered_reference(self, matrix):
        for level in range(len(matrix[0])):
            for position in range(len(matrix)):
                assert parent_span_adjustment(matrix, position, level) == \
                    _reference_adjustment(matrix, position, level)


# ---------------------------------------------------------------------------
# 4. Errors and purity
# ---------------------------------------------------------------------------

OPERATIONS = [span_size, should_render_subtotal, parent_span_adjustment]


class TestInvalidInput:
    @pytest.mark.parametrize("operation", OPERATIONS)
    def test_ragged_rows(self, operation):
        with pytest.raises(InvalidInputError):
            operation([["A", "X"], ["A"]], 0, 0)

    @pytest.mark.parametrize("operation", OPERATIONS)
    @pytest.mark.parametrize("matrix", [None, "AX", 42, {"A": "X"}, [["A", "X"], "AY"]])
    def test_not_a_matrix(self, operation, matrix):
        with pytest.raises(InvalidInputError):
            operation(matrix, 0, 0)

    @pytest.mark.parametrize("operation", OPERATIONS)
    @pytest.mark.parametrize("position, level", [(1.0, 0), (0, "0"), (True, 0)])
    def test_non_integer_indices(self, operation, position, level):
        with pytest.raises(InvalidInputError):
            operation(TWO_GROUPS, position, level)

    def test_invalid_input_is_value_error(self):
        with pytest.raises(ValueError):
            span_size([["A"], ["A", "B"]], 0, 0)


class TestIndexOutOfRange:
    @pytest.mark.parametrize("operation", OPERATIONS)
    @pytest.mark.parametrize("position, level", [(3, 0), (-1, 0), (0, 2), (0, -1)])
    def test_out_of_range(self, operation, position, level):
        with pytest.raises(IndexOutOfRangeError):
            operation(TWO_GROUPS, position, level)

    @pytest.mark.parametrize("operation", OPERATIONS)
    def test_empty_matrix_has_no_positions(self, operation):
        with pytest.raises(IndexOutOfRangeError):
            operation([], 0, 0)

    def test_is_index_error(self):
        with pytest.raises(IndexError):
            span_size(TWO_GROUPS, 10, 0)


class TestIdempotence:
    def test_repeated_calls_agree(self):
        matrix = [list(k) for k in FOUR_LEVELS]
        snapshot = [list(k) for k in matrix]
        for _ in range(3):
            assert span_size(matrix, 0, 1) == 4
            assert should_render_subtotal(matrix, 3, 1) is True
            assert parent_span_adjustment(matrix, 0, 0) == 3
        assert matrix == snapshot


class TestNumpyIndices:
    def test_functions_accept_numpy_integers(self):
        for p in np.arange(len(FOUR_LEVELS)):
            for level in np.arange(len(FOUR_LEVELS[0]), dtype=np.int64):
                assert span_size(FOUR_LEVELS, p, level) == span_size(FOUR_LEVELS, int(p), int(level))
                assert should_render_subtotal(FOUR_LEVELS, p, level) == should_render_subtotal(FOUR_LEVELS, int(p), int(level))
                assert parent_span_adjustment(FOUR_LEVELS, p, level) == parent_span_adjustment(FOUR_LEVELS, int(p), int(level))

    def test_results_are_plain_ints(self):
        result = span_size(TWO_GROUPS, np.int64(0), np.int64(0))
        assert result == 2
        assert type(result) is int

    def test_group_index_accepts_numpy_integers(self):
        index = GroupIndex(FOUR_LEVELS)
        assert index.span_size(np.int64(0), np.int64(1)) == 4
        assert index.should_render_subtotal(np.int64(3), np.int64(1)) is True
        assert index.parent_span_adjustment(np.int64(0), np.int64(0)) == 3
        assert index.subtotal_levels(np.int64(5)) == [2, 1, 0]

    @pytest.mark.parametrize("operation", OPERATIONS)
    def test_numpy_out_of_range(self, operation):
        with pytest.raises(IndexOutOfRangeError):
            operation(TWO_GROUPS, np.int64(3), 0)

    @pytest.mark.parametrize("operation", OPERATIONS)
    def test_numpy_floats_rejected(self, operation):
        with pytest.raises(InvalidInputError):
            operation(TWO_GROUPS, np.float64(0.0), 0)


# ---------------------------------------------------------------------------
# 5. GroupIndex
# ---------------------------------------------------------------------------


class TestGroupIndex:
    @pytest.mark.parametrize("matrix", RANDOM_MATRICES + [TWO_GROUPS, SINGLE_ROW, FOUR_LEVELS])
    def test_agrees_with_functions(self, matrix):
        index = GroupIndex(matrix)
        for level in range(len(matrix[0])):
            for p in range(len(matrix)):
                assert index.span_size(p, level) == span_size(matrix, p, level)
                assert index.should_render_subtotal(p, level) == should_render_subtotal(matrix, p, level)
                assert index.parent_span_adjustment(p, level) == parent_span_adjustment(matrix, p, level)

    def test_subtotal_levels_innermost_first(self):
        index = GroupIndex(FOUR_LEVELS)
        assert index.subtotal_levels(5) == [2, 1, 0]
        assert index.subtotal_levels(3) == [2, 1]
        assert index.subtotal_levels(0) == []

    def test_group_end(self):
        index = GroupIndex(FOUR_LEVELS)
        assert index.group_end(0, 1) == 3
        assert index.is_group_start(4, 1) is True
        assert index.is_group_start(5, 1) is False

    def test_empty_matrix(self):
        index = GroupIndex([])
        assert index.n_rows == 0
        with pytest.raises(IndexOutOfRangeError):
            index.span_size(0, 0)

    def test_rejects_ragged(self):
        with pytest.raises(InvalidInputError):
            GroupIndex([["A", "X"], ["B"]])

    def test_checks_indices(self):
        index = GroupIndex(TWO_GROUPS)
        with pytest.raises(IndexOutOfRangeError):
            index.parent_span_adjustment(0, 5)
        with pytest.raises(InvalidInputError):
            index.should_render_subtotal("1", 0)
