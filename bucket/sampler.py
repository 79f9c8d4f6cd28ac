import logging
import math
from typing import Optional

import numpy as np

from .config import BucketConfig, get_config
from .errors import RowIndexOutOfRange
from .index import NOT_FOUND, Bucket

log = logging.getLogger(__name__)


def default_shape(capacity: int) -> tuple:
    """Near-square grid: cols = ceil(sqrt(N)), rows = ceil(N / cols)."""
    cols = math.isqrt(capacity)
    if cols * cols < capacity:
        cols += 1
    rows = -(-capacity // cols)
    return rows, cols


class BucketSampler:
    """
    Proportional sampler over a priority array backed by a ``Bucket``.
      - priorities live in a flat numpy array owned by the sampler
      - update() touches only the affected rows, then refreshes the index
      - sample() draws stratified targets and inverts the CDF
    """

    def __init__(
        self,
        capacity: int,
        rows: Optional[int] = None,
        cols: Optional[int] = None,
        dtype=np.float64,
        config: Optional[BucketConfig] = None,
    ):
        assert capacity > 0
        self.capacity = int(capacity)
        self.config = config if config is not None else get_config()

        if rows is None and cols is None:
            rows, cols = default_shape(self.capacity)
        elif rows is None:
            rows = -(-self.capacity // cols)
        elif cols is None:
            cols = -(-self.capacity // rows)

        self.priorities = np.zeros(self.capacity, dtype=dtype)
        self.bucket = Bucket(rows, cols, self.priorities, checks=self.config.enable_checks)

    def __len__(self):
        return self.capacity

    @property
    def total(self) -> float:
        return float(self.bucket.total)

    def update(self, idx, new_p):
        """
        idx: int array [B] in [0, capacity)
        new_p: array [B] of non-negative priorities
        Later duplicates in ``idx`` win, as with numpy fancy assignment.
        """
        idx = np.asarray(idx, dtype=np.int64).reshape(-1)
        new_p = np.asarray(new_p, dtype=self.priorities.dtype).reshape(-1)
        if idx.size == 0:
            return
        if idx.min() < 0 or idx.max() >= self.capacity:
            raise RowIndexOutOfRange(f"indices must lie in [0, {self.capacity})")
        self.priorities[idx] = new_p

        self.bucket.update_rows(np.unique(idx // self.bucket.cols))

        lo, hi = self.bucket.dirty_range
        if hi - lo + 1 > self.config.full_rebuild_ratio * self.bucket.rows:
            self.bucket.rebuild_cumsum()
        else:
            self.bucket.refresh_cumsum()

    def sample(self, batch_size: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Stratified sampling: u_i in [i*seg, (i+1)*seg), seg = total / batch_size."""
        total = self.total
        if total <= 0.0:
            log.warning("sample() called with total priority %s", total)
            raise RuntimeError("Cannot sample: total priority is 0")

        rng = rng if rng is not None else np.random.default_rng()
        seg = total / batch_size
        u = (np.arange(batch_size) + rng.random(batch_size)) * seg
        # keep targets strictly inside (0, total)
        u = np.clip(u, np.nextafter(0.0, 1.0), np.nextafter(total, 0.0))

        out = self.bucket.find_upper_bounds(u)
        missed = np.flatnonzero(out == NOT_FOUND)
        for k in missed:
            out[k] = self._last_positive_in_row(u[k])
        return out

    def _last_positive_in_row(self, value) -> int:
        """
        Row scans can end a few ulps short of the row boundary (pairwise row
        sums vs. sequential scan). Resolve such targets to the last positive
        cell of the row they fall in.
        """
        b = self.bucket
        row = int(np.searchsorted(b.cum_sums, value, side="left")) - 1
        row = min(max(row, 0), b.rows - 1)
        start = row * b.cols
        hits = np.flatnonzero(self.priorities[start:start + b.cols] > 0)
        if hits.size == 0:
            return int(np.flatnonzero(self.priorities > 0)[-1])
        return start + int(hits[-1])
