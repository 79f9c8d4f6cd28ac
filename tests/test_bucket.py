import numpy as np
import pytest
import torch

from bucket import (
    NOT_FOUND,
    Bucket,
    PreconditionViolation,
    RowIndexOutOfRange,
    UnsupportedContainer,
    ValueOutOfRange,
)


@pytest.fixture
def data():
    return np.array([0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9])


@pytest.fixture
def b(data):
    return Bucket(3, 3, data)


def test_shape_and_initial_dirty_range(b):
    assert b.rows == 3
    assert b.cols == 3
    assert b.size == 9
    assert b.dirty_range == (3, 0)


def test_row_sums(b):
    assert b.row_sums.tolist() == pytest.approx([0.6, 1.5, 2.4])


def test_cum_sums(b):
    assert b.cum_sums.tolist() == pytest.approx([0.0, 0.6, 2.1, 4.5])
    assert b.total == pytest.approx(4.5)


def test_upper_bound_lookup(b):
    assert b.find_upper_bound(0.1) == 0
    assert b.find_upper_bound(0.7) == 3
    assert b.find_upper_bound(2.2) == 6
    assert b.find_upper_bound(4.4) == 8


def test_upper_bounds_vectorised(b):
    out = b.find_upper_bounds([0.1, 0.7, 2.2, 4.4])
    assert out.dtype == np.int64
    assert out.tolist() == [0, 3, 6, 8]


def test_index_validity(b):
    assert b.is_valid_index(0)
    assert b.is_valid_index(8)
    assert not b.is_valid_index(NOT_FOUND)
    assert not b.is_valid_index(Bucket.NOT_FOUND)


def test_underlying_change_with_rebuild(data, b):
    data[0] = 1.0
    b.update_row(0)
    b.rebuild_cumsum()
    assert b.row_sums[0] == pytest.approx(1.5)
    assert b.cum_sums.tolist() == pytest.approx([0.0, 1.5, 3.0, 5.4])

    data[0] = 0.1
    b.update_row(0)
    b.rebuild_cumsum()
    assert b.cum_sums.tolist() == pytest.approx([0.0, 0.6, 2.1, 4.5])


def test_underlying_change_with_refresh(data, b):
    data[0] = 1.0
    b.update_row(0)
    b.refresh_cumsum()
    assert b.row_sums[0] == pytest.approx(1.5)
    assert b.cum_sums.tolist() == pytest.approx([0.0, 1.5, 3.0, 5.4])
    assert b.cum_sums.tolist() == pytest.approx(Bucket(3, 3, data).cum_sums.tolist())


def test_update_row_leaves_cumsum_untouched(data, b):
    before = b.cum_sums.copy()
    data[4] = 10.0
    b.update_row(1)
    assert b.row_sums[1] == pytest.approx(11.0)
    assert np.array_equal(b.cum_sums, before)


def test_update_index_marks_containing_row(b):
    b.update_index(5)
    assert b.dirty_range == (1, 1)
    b.update_index(8)
    assert b.dirty_range == (1, 2)


def test_update_rows_batch(data, b):
    data[[0, 8]] = 2.0
    b.update_rows([2, 0])
    assert b.dirty_range == (0, 2)
    b.refresh_cumsum()
    assert b.cum_sums.tolist() == pytest.approx([0.0, 2.5, 4.0, 7.5])


def test_summaries_are_read_only(b):
    with pytest.raises(ValueError):
        b.row_sums[0] = 1.0
    with pytest.raises(ValueError):
        b.cum_sums[1] = 1.0


def test_short_view_partial_and_empty_rows():
    data = np.arange(1, 8, dtype=np.int64)  # 7 values in a 4x3 grid
    b = Bucket(4, 3, data)
    assert b.row_sums.tolist() == [6, 15, 7, 0]
    assert b.cum_sums.tolist() == [0, 6, 21, 28, 28]
    assert b.find_upper_bound(27) == 6

    data[6] = 1
    b.update_row(2)
    b.update_row(3)
    b.refresh_cumsum()
    assert b.cum_sums.tolist() == [0, 6, 21, 22, 22]


def test_dtype_follows_view():
    b = Bucket(2, 2, np.array([1, 2, 3, 4], dtype=np.int32))
    assert b.dtype == np.int32
    assert b.row_sums.dtype == np.int32
    assert b.cum_sums.dtype == np.int32


def test_torch_tensor_view_is_shared():
    t = torch.tensor([0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9], dtype=torch.float64)
    b = Bucket(3, 3, t)
    t[0] = 1.0
    b.update_row(0)
    b.refresh_cumsum()
    assert b.cum_sums.tolist() == pytest.approx([0.0, 1.5, 3.0, 5.4])


def test_repr_mentions_shape(b):
    assert "rows=3" in repr(b)
    assert "cols=3" in repr(b)


# ------------------------------------------------------------
# contract checks
# ------------------------------------------------------------

def test_view_larger_than_grid_rejected():
    with pytest.raises(PreconditionViolation):
        Bucket(2, 2, np.ones(5))


def test_view_larger_than_grid_allowed_unchecked():
    b = Bucket(2, 2, np.ones(5), checks=False)
    assert b.cum_sums.tolist() == [0.0, 2.0, 4.0]


@pytest.mark.parametrize("rows,cols", [(0, 3), (3, 0), (-1, 2)])
def test_non_positive_shape_rejected(rows, cols):
    with pytest.raises(PreconditionViolation):
        Bucket(rows, cols, np.ones(1))


def test_non_integer_shape_rejected():
    with pytest.raises(TypeError):
        Bucket(2.5, 2, np.ones(4))


@pytest.mark.parametrize("row", [3, 100, -1])
def test_row_out_of_range(b, row):
    with pytest.raises(RowIndexOutOfRange):
        b.update_row(row)


def test_row_error_is_an_index_error(b):
    with pytest.raises(IndexError):
        b.update_row(3)


@pytest.mark.parametrize("value", [0.0, -1.0, 4.6, 10.0, float("nan")])
def test_value_out_of_range(b, value):
    with pytest.raises(ValueOutOfRange):
        b.find_upper_bound(value)


@pytest.mark.parametrize(
    "view",
    [
        [0.1, 0.2, 0.3],
        (1, 2, 3),
        np.array([True, False, True]),
        np.ones((2, 2)),
        np.array([1 + 2j, 3 + 0j]),
        np.array(["a", "b"]),
        torch.tensor([True, False]),
        torch.zeros(3, dtype=torch.bfloat16),
    ],
)
def test_unsupported_containers(view):
    with pytest.raises(UnsupportedContainer):
        Bucket(2, 2, view)


def test_unsupported_container_is_type_error():
    with pytest.raises(TypeError):
        Bucket(2, 2, [1.0, 2.0])


# ------------------------------------------------------------
# not found / unchecked behaviour
# ------------------------------------------------------------

def test_not_found_past_total_when_unchecked(data):
    b = Bucket(3, 3, data, checks=False)
    assert b.find_upper_bound(b.total + 1.0) == NOT_FOUND
    assert b.find_upper_bound(100.0) == NOT_FOUND


def test_not_found_when_row_scan_falls_short():
    data = np.ones(4)
    b = Bucket(2, 2, data)
    # summaries deliberately left stale: the row scan cannot reach 3.0
    data[2:] = 0.0
    assert b.find_upper_bound(3.0) == NOT_FOUND


def test_negative_weights_are_not_clamped():
    data = np.array([1.0, -0.5, 2.0, 1.0])
    b = Bucket(2, 2, data)
    assert b.row_sums.tolist() == [0.5, 3.0]
    assert b.cum_sums.tolist() == [0.0, 0.5, 3.5]
    assert b.find_upper_bound(0.4) == 0
    assert b.find_upper_bound(0.8) == 2
