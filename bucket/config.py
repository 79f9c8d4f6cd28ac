import os
from dataclasses import dataclass
from typing import Optional

_FALSE_STRINGS = ("0", "false", "no", "off")


@dataclass
class BucketConfig:
    # checked vs unchecked: contract checks on construction, row updates and search
    enable_checks: bool = True

    # sampler: dirty span above this fraction of ROWS -> full rebuild
    full_rebuild_ratio: float = 0.5

    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "BucketConfig":
        cfg = cls()
        checks = os.environ.get("BUCKET_ENABLE_CHECKS")
        if checks is not None:
            cfg.enable_checks = checks.strip().lower() not in _FALSE_STRINGS
        ratio = os.environ.get("BUCKET_FULL_REBUILD_RATIO")
        if ratio is not None:
            cfg.full_rebuild_ratio = float(ratio)
        level = os.environ.get("BUCKET_LOG_LEVEL")
        if level:
            cfg.log_level = level.strip().upper()
        return cfg


_config: Optional[BucketConfig] = None


def get_config() -> BucketConfig:
    """Process-wide default, read from the environment on first use."""
    global _config
    if _config is None:
        _config = BucketConfig.from_env()
    return _config


def set_config(cfg: Optional[BucketConfig]):
    """Replace the process default. ``None`` re-reads the environment lazily."""
    global _config
    _config = cfg
