import pytest

from bucket import BucketConfig, set_config


@pytest.fixture(autouse=True)
def default_config():
    """Every test starts from checked defaults regardless of the environment."""
    set_config(BucketConfig())
    yield
    set_config(None)
