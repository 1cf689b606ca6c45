"""
Merge spans and subtotal boundaries for hierarchically grouped pivot keys.

A key matrix is an ordered sequence of equal-length keys, one label per
grouping level from outermost to innermost. The producer must sort it so that
keys sharing a prefix at any level are contiguous (see utils.sort_keys).

For every (position, level) this module answers three questions:

- span_size: how many rows/columns the merged header cell starting here
  covers, or SKIP_SPAN when the cell belongs to a group that started earlier.
- should_render_subtotal: whether a subtotal row follows this position at
  this level.
- parent_span_adjustment: how many subtotal rows of finer levels are inserted
  strictly inside the group starting here, so the merged header grows to
  cover them.

The module-level functions recompute group boundaries on every call.
GroupIndex scans a matrix once and answers the same questions from tables.
"""

import logging
import operator
from collections.abc import Sequence
from typing import Any, List, Tuple

from .exceptions import InvalidInputError, IndexOutOfRangeError

logger = logging.getLogger("pivot_layout.spans")

# Returned by span_size for cells already covered by the group's first cell
SKIP_SPAN = -1

# --- Validation Helpers ---

def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))

def _validate_matrix(matrix: Any) -> Tuple[int, int]:
    """
    Checks that matrix is a sequence of equal-length label sequences.

    Returns:
        A tuple (row_count, key_length). key_length is 0 for an empty matrix.

    Raises:
        InvalidInputError: If matrix or any of its rows is not a sequence, or
                           rows have unequal lengths.
    """
    if not _is_sequence(matrix):
        msg = f"Key matrix must be a sequence of keys, got {type(matrix).__name__}."
        logger.error(msg)
        raise InvalidInputError(msg)

    key_length = None
    for row_idx, key in enumerate(matrix):
        if not _is_sequence(key):
            msg = f"Key at position {row_idx} must be a sequence of labels, got {type(key).__name__}."
            logger.error(msg)
            raise InvalidInputError(msg)
        if key_length is None:
            key_length = len(key)
        elif len(key) != key_length:
            msg = f"Ragged key matrix: key at position {row_idx} has {len(key)} labels, expected {key_length}."
            logger.error(msg)
            raise InvalidInputError(msg)

    return len(matrix), key_length or 0

def _check_index(value: Any, bound: int, name: str) -> int:
    """
    Returns value as a plain int, raising unless it is an integer in [0, bound).

    Anything implementing __index__ (numpy integers included) is accepted.
    Booleans are not.
    """
    if isinstance(value, bool):
        msg = f"{name} must be an integer, got bool."
        logger.error(msg)
        raise InvalidInputError(msg)
    try:
        value = operator.index(value)
    except TypeError as e:
        msg = f"{name} must be an integer, got {type(value).__name__}."
        logger.error(msg)
        raise InvalidInputError(msg) from e
    if value < 0 or value >= bound:
        msg = f"{name} {value} is out of range [0, {bound})."
        logger.error(msg)
        raise IndexOutOfRangeError(msg)
    return value

def _validate_call(matrix: Any, position: Any, level: Any) -> Tuple[int, int, int, int]:
    """Returns (row_count, key_length, position, level) with both indices as ints."""
    n_rows, n_levels = _validate_matrix(matrix)
    position = _check_index(position, n_rows, "position")
    level = _check_index(level, n_levels, "level")
    return n_rows, n_levels, position, level

# --- Prefix Comparison Helpers ---

def _same_prefix(key_a: Sequence, key_b: Sequence, level: int) -> bool:
    """True if both keys carry identical labels for levels 0..level."""
    for x in range(level + 1):
        if key_a[x] != key_b[x]:
            return False
    return True

def _is_group_start(matrix: Sequence, position: int, level: int) -> bool:
    return position == 0 or not _same_prefix(matrix[position - 1], matrix[position], level)

def _group_end(matrix: Sequence, position: int, level: int) -> int:
    """Index of the last key in the run sharing matrix[position]'s prefix at level."""
    end = position
    while end + 1 < len(matrix) and _same_prefix(matrix[position], matrix[end + 1], level):
        end += 1
    return end

# --- Public Operations ---

def span_size(matrix: Sequence[Sequence[Any]], position: int, level: int) -> int:
    """
    Number of consecutive keys, starting at position, in the group at level.

    Args:
        matrix: The sorted key matrix.
        position: Row (or column) index into matrix.
        level: Grouping level, 0 being the outermost.

    Returns:
        The group length (>= 1) if position starts a group at level,
        otherwise SKIP_SPAN (-1).

    Raises:
        InvalidInputError: If matrix is malformed.
        IndexOutOfRangeError: If position or level is out of range.
    """
    _, _, position, level = _validate_call(matrix, position, level)

    if not _is_group_start(matrix, position, level):
        return SKIP_SPAN

    return _group_end(matrix, position, level) - position + 1

def should_render_subtotal(matrix: Sequence[Sequence[Any]], position: int, level: int) -> bool:
    """
    True if a subtotal row for level follows position.

    That is the case when position is the last key of a group of at least two
    keys at a non-leaf level. Leaf levels and single-key groups never get one.

    Raises:
        InvalidInputError: If matrix is malformed.
        IndexOutOfRangeError: If position or level is out of range.
    """
    n_rows, n_levels, position, level = _validate_call(matrix, position, level)

    if level >= n_levels - 1 or n_rows < 2 or position == 0:
        return False

    # The previous key must belong to the same group
    if not _same_prefix(matrix[position - 1], matrix[position], level):
        return False

    if position == n_rows - 1:
        return True

    return not _same_prefix(matrix[position], matrix[position + 1], level)

def parent_span_adjustment(matrix: Sequence[Sequence[Any]], position: int, level: int) -> int:
    """
    Extra rows the header cell at (position, level) must span to cover the
    subtotal rows of finer levels inserted inside its group.

    Only subtotals that follow rows strictly before the group's last row are
    counted. Subtotals following the last row itself close the group and sit
    below the merged cell.

    Returns:
        A non-negative count. 0 when position does not start a group at level
        or level is the leaf.

    Raises:
        InvalidInputError: If matrix is malformed.
        IndexOutOfRangeError: If position or level is out of range.
    """
    n_rows, n_levels, position, level = _validate_call(matrix, position, level)

    if level >= n_levels - 1 or not _is_group_start(matrix, position, level):
        return 0

    end = _group_end(matrix, position, level)
    count = 0

    for finer in range(level + 1, n_levels - 1):
        row = position
        # Walk the finer groups in order; each one that holds at least two keys
        # and closes before the parent's end contributes one subtotal row.
        while row < end:
            sub_end = _group_end(matrix, row, finer)
            if row < sub_end < end:
                count += 1
            row = sub_end + 1

    return count

# --- Memoized Group Index ---

class GroupIndex:
    """
    Group boundaries of one key matrix, computed once for every level.

    Answers span_size, should_render_subtotal and parent_span_adjustment with
    the same results and errors as the module-level functions, without
    rescanning the matrix for each cell.
    """

    def __init__(self, matrix: Sequence[Sequence[Any]]):
        self.n_rows, self.n_levels = _validate_matrix(matrix)
        self.keys: List[Tuple[Any, ...]] = [tuple(key) for key in matrix]

        n, depth = self.n_rows, self.n_levels
        self._starts: List[List[bool]] = []
        self._ends: List[List[int]] = []
        self._subtotals: List[List[bool]] = []

        for level in range(depth):
            outer = self._starts[level - 1] if level > 0 else [False] * n
            starts = [
                r == 0 or outer[r] or self.keys[r][level] != self.keys[r - 1][level]
                for r in range(n)
            ]
            ends = [0] * n
            for r in range(n - 1, -1, -1):
                ends[r] = r if r == n - 1 or starts[r + 1] else ends[r + 1]
            subtotals = [
                level < depth - 1 and not starts[r] and ends[r] == r
                for r in range(n)
            ]
            self._starts.append(starts)
            self._ends.append(ends)
            self._subtotals.append(subtotals)

        # _inner_before[level][i]: subtotals at levels level+1..depth-2 after rows 0..i-1
        self._inner_before: List[List[int]] = [[0] * (n + 1) for _ in range(depth)]
        per_row = [0] * n
        for level in range(depth - 2, -1, -1):
            for r in range(n):
                per_row[r] += self._subtotals[level + 1][r]
            running = self._inner_before[level]
            for r in range(n):
                running[r + 1] = running[r] + per_row[r]

        logger.debug(f"Built group index for {n} keys over {depth} levels.")

    def _check(self, position: Any, level: Any) -> Tuple[int, int]:
        return (_check_index(position, self.n_rows, "position"),
                _check_index(level, self.n_levels, "level"))

    def is_group_start(self, position: int, level: int) -> bool:
        position, level = self._check(position, level)
        return self._starts[level][position]

    def group_end(self, position: int, level: int) -> int:
        position, level = self._check(position, level)
        return self._ends[level][position]

    def span_size(self, position: int, level: int) -> int:
        position, level = self._check(position, level)
        if not self._starts[level][position]:
            return SKIP_SPAN
        return self._ends[level][position] - position + 1

    def should_render_subtotal(self, position: int, level: int) -> bool:
        position, level = self._check(position, level)
        return self._subtotals[level][position]

    def parent_span_adjustment(self, position: int, level: int) -> int:
        position, level = self._check(position, level)
        if level >= self.n_levels - 1 or not self._starts[level][position]:
            return 0
        end = self._ends[level][position]
        running = self._inner_before[level]
        return running[end] - running[position]

    def subtotal_levels(self, position: int) -> List[int]:
        """Levels whose subtotal rows follow position, innermost first."""
        position = _check_index(position, self.n_rows, "position")
        return [
            level for level in range(self.n_levels - 1, -1, -1)
            if self._subtotals[level][position]
        ]
