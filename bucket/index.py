import logging
import operator

import numpy as np
import torch

from .config import get_config
from .errors import (
    PreconditionViolation,
    RowIndexOutOfRange,
    UnsupportedContainer,
    ValueOutOfRange,
)

log = logging.getLogger(__name__)

# sentinel returned by find_upper_bound when the scan exhausts the row
NOT_FOUND = -1


def as_numeric_view(view) -> np.ndarray:
    """
    Return a 1-D numpy view sharing memory with ``view``.

    Accepts numpy arrays and CPU torch tensors with an integer or floating
    point element type. Anything that would need a copy (lists, CUDA
    tensors) is rejected, since later mutations by the caller would not be
    seen.
    """
    if isinstance(view, torch.Tensor):
        if view.device.type != "cpu":
            raise UnsupportedContainer(f"tensor must live on cpu, got {view.device}")
        try:
            arr = view.detach().numpy()
        except TypeError as e:
            raise UnsupportedContainer(str(e)) from e
    elif isinstance(view, np.ndarray):
        arr = view
    else:
        raise UnsupportedContainer(
            f"expected numpy.ndarray or torch.Tensor, got {type(view).__name__}"
        )

    if arr.ndim != 1:
        raise UnsupportedContainer(f"expected a flat sequence, got shape {arr.shape}")
    dt = arr.dtype
    if dt == np.bool_ or not (np.issubdtype(dt, np.integer) or np.issubdtype(dt, np.floating)):
        raise UnsupportedContainer(f"element type {dt} is not integer or floating point")
    return arr


def _running_sum(start, values: np.ndarray, dtype) -> np.ndarray:
    """out[k] = (((start + values[0]) + values[1]) + ...) + values[k]"""
    buf = np.empty(values.shape[0] + 1, dtype=dtype)
    buf[0] = start
    buf[1:] = values
    np.cumsum(buf, dtype=dtype, out=buf)
    return buf[1:]


def _readonly(arr: np.ndarray) -> np.ndarray:
    out = arr.view()
    out.flags.writeable = False
    return out


class Bucket:
    """
    Row-partitioned cumulative-sum index over a flat numeric sequence.

    The sequence is viewed as a ROWS x COLS grid (row-major). Two summary
    arrays are kept next to it:
      - row_sums[r]  = sum(view[r*COLS : (r+1)*COLS])          length ROWS
      - cum_sums[r]  = row_sums[0] + ... + row_sums[r-1]        length ROWS+1

    e.g. view = [1..9], ROWS = COLS = 3
        row_sums = [6, 15, 24]
        cum_sums = [0, 6, 21, 45]

    The view is not owned. The caller mutates it, calls ``update_row`` for
    every touched row, then ``refresh_cumsum`` (or ``rebuild_cumsum``), and
    may then query ``find_upper_bound``. The summaries are derived state
    that is only synchronised at those explicit calls.

    Values are assumed non-negative. This is not enforced; with negative
    weights cum_sums is no longer monotone and search results follow the
    arithmetic as-is.

    Contract checks (size at construction, row index, search domain) can be
    disabled per instance with ``checks=False`` or globally through
    ``BucketConfig.enable_checks``. Violating a precondition with checks
    off is undefined behaviour.
    """

    NOT_FOUND = NOT_FOUND

    def __init__(self, rows: int, cols: int, view, *, checks=None):
        rows = operator.index(rows)
        cols = operator.index(cols)
        if rows < 1 or cols < 1:
            raise PreconditionViolation(f"rows and cols must be >= 1, got {rows}x{cols}")

        self._view = as_numeric_view(view)
        self._checks = get_config().enable_checks if checks is None else bool(checks)
        if self._checks and self._view.shape[0] > rows * cols:
            raise PreconditionViolation(
                f"view of length {self._view.shape[0]} does not fit in {rows}x{cols}"
            )

        self._rows = rows
        self._cols = cols
        self._dtype = self._view.dtype
        self._row_sums = np.zeros(rows, dtype=self._dtype)
        self._cum_sums = np.zeros(rows + 1, dtype=self._dtype)

        self.update_all_rows()
        self.rebuild_cumsum()
        log.debug("built %dx%d bucket over %d %s values", rows, cols, self._view.shape[0], self._dtype)

    # ------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def size(self) -> int:
        """Logical ROWS x COLS, not the length of the viewed sequence."""
        return self._rows * self._cols

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def checks(self) -> bool:
        return self._checks

    @property
    def view(self) -> np.ndarray:
        return self._view

    @property
    def row_sums(self) -> np.ndarray:
        return _readonly(self._row_sums)

    @property
    def cum_sums(self) -> np.ndarray:
        return _readonly(self._cum_sums)

    @property
    def total(self):
        return self._cum_sums[self._rows]

    @property
    def dirty_range(self) -> tuple:
        """(min_row, max_row) touched since the last refresh; (ROWS, 0) when clean."""
        return self._min_row, self._max_row

    def __repr__(self):
        return (
            f"Bucket(rows={self._rows}, cols={self._cols}, dtype={self._dtype}, "
            f"cum_sums={self._cum_sums.tolist()})"
        )

    # ------------------------------------------------------------
    # row summaries
    # ------------------------------------------------------------

    def update_row(self, row: int):
        """
        Recompute the sum of ``row`` from the current view and mark it dirty.
        cum_sums is left untouched until the next refresh.
        """
        row = operator.index(row)
        if self._checks and not 0 <= row < self._rows:
            raise RowIndexOutOfRange(f"row {row} out of range for {self._rows} rows")

        start = row * self._cols
        self._row_sums[row] = self._view[start:start + self._cols].sum(dtype=self._dtype)

        if row < self._min_row:
            self._min_row = row
        if row > self._max_row:
            self._max_row = row

    def update_rows(self, rows):
        for row in np.asarray(rows, dtype=np.int64).reshape(-1):
            self.update_row(int(row))

    def update_index(self, index: int):
        """Mark the row holding flat element ``index`` as changed."""
        self.update_row(operator.index(index) // self._cols)

    def update_all_rows(self):
        """
        Recompute every row sum. Leaves the whole table dirty; follow with
        ``rebuild_cumsum``.
        """
        n = min(self._view.shape[0], self.size)
        full = n // self._cols
        if full:
            grid = self._view[:full * self._cols].reshape(full, self._cols)
            self._row_sums[:full] = grid.sum(axis=1, dtype=self._dtype)
        if full < self._rows:
            # partial last row (short view), then rows with no cells at all
            self._row_sums[full] = self._view[full * self._cols:n].sum(dtype=self._dtype)
            self._row_sums[full + 1:] = 0

        self._min_row = 0
        self._max_row = self._rows - 1

    # ------------------------------------------------------------
    # cumulative sums
    # ------------------------------------------------------------

    def _reset_dirty(self):
        self._min_row = self._rows
        self._max_row = 0

    def rebuild_cumsum(self):
        """Recompute cum_sums from scratch. O(ROWS), always exact."""
        self._cum_sums[0] = 0
        np.cumsum(self._row_sums, dtype=self._dtype, out=self._cum_sums[1:])
        self._reset_dirty()

    def refresh_cumsum(self):
        """
        Reconcile cum_sums with the rows marked dirty since the last refresh.

        The dirty segment [min_row, max_row] is recomputed in order; every
        entry past it is shifted by the net change of the segment. Cost is
        the dirty span plus the tail.

        Only exact if ``update_row`` was called on every row whose sum
        changed. Stale tracking gives a wrong (but well-formed) table.
        """
        lo, hi = self._min_row, self._max_row
        if lo > hi:
            log.debug("refresh_cumsum: nothing dirty")
            return

        old_tail = self._cum_sums[hi + 1:hi + 2].copy()
        self._cum_sums[lo + 1:hi + 2] = _running_sum(
            self._cum_sums[lo], self._row_sums[lo:hi + 1], self._dtype
        )
        # one-element arrays so unsigned wrap-around stays silent
        delta = old_tail - self._cum_sums[hi + 1:hi + 2]
        self._cum_sums[hi + 2:] -= delta

        log.debug("refresh_cumsum: rows %d..%d, tail %d", lo, hi, self._rows - hi - 1)
        self._reset_dirty()

    # ------------------------------------------------------------
    # search
    # ------------------------------------------------------------

    def is_valid_index(self, index) -> bool:
        return index != NOT_FOUND

    def find_upper_bound(self, value) -> int:
        """
        Flat index of the first element where the running sum reaches ``value``.

        Binary search over cum_sums picks the row, a linear scan inside the
        row picks the column. The result ``i`` satisfies
        ``prefix(0..i) < value <= prefix(0..i+1)``. Intended domain is
        0 < value < total; NOT_FOUND means the scan ran past the row, which
        can also happen through floating point round-off near a row boundary.
        """
        if self._checks:
            if not value > 0:
                raise ValueOutOfRange(f"{value} is not above the first cumulative sum (0)")
            if not value < self.total:
                raise ValueOutOfRange(f"{value} is not below the total {self.total}")

        # last row starting strictly below value, so a target equal to a row
        # boundary resolves to the element that closes the previous row
        row = int(np.searchsorted(self._cum_sums, value, side="left")) - 1
        if row < 0 or row >= self._rows:
            log.debug("find_upper_bound(%s): outside cumulative range", value)
            return NOT_FOUND

        start = row * self._cols
        cells = self._view[start:start + self._cols]
        running = _running_sum(self._cum_sums[row], cells, self._dtype)
        hits = np.flatnonzero(running >= value)
        if hits.size == 0:
            log.debug("find_upper_bound(%s): row %d exhausted", value, row)
            return NOT_FOUND
        return start + int(hits[0])

    def find_upper_bounds(self, values) -> np.ndarray:
        values = np.asarray(values).reshape(-1)
        return np.fromiter(
            (self.find_upper_bound(v) for v in values), dtype=np.int64, count=values.shape[0]
        )
