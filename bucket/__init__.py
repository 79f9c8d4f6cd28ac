from .baseline_cumsum import CumsumSampler, TorchCumsumSampler, sequential_upper_bound
from .config import BucketConfig, get_config, set_config
from .errors import (
    BucketError,
    PreconditionViolation,
    RowIndexOutOfRange,
    UnsupportedContainer,
    ValueOutOfRange,
)
from .index import NOT_FOUND, Bucket, as_numeric_view
from .log import configure_logging
from .sampler import BucketSampler

__all__ = [
    "NOT_FOUND",
    "Bucket",
    "BucketConfig",
    "BucketError",
    "BucketSampler",
    "CumsumSampler",
    "PreconditionViolation",
    "RowIndexOutOfRange",
    "TorchCumsumSampler",
    "UnsupportedContainer",
    "ValueOutOfRange",
    "as_numeric_view",
    "configure_logging",
    "get_config",
    "sequential_upper_bound",
    "set_config",
]
