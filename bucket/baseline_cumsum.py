import numpy as np
import torch

from .index import NOT_FOUND


def sequential_upper_bound(data: np.ndarray, val) -> int:
    """Full prefix sum + binary search: the O(N) per query reference."""
    prefix = np.zeros(data.shape[0] + 1, dtype=np.result_type(data.dtype, np.float64))
    np.cumsum(data, out=prefix[1:])
    pos = int(np.searchsorted(prefix, val, side="right"))
    if pos == prefix.shape[0]:
        return NOT_FOUND
    return pos - 1


class CumsumSampler:
    """
    Baseline sampler using cumsum + searchsorted.
    Priorities stored as a flat numpy array; the CDF is rebuilt per sample.
    """
    def __init__(self, capacity, dtype=np.float64):
        self.capacity = capacity
        self.priorities = np.zeros(capacity, dtype=dtype)

    def update(self, idx, new_p):
        self.priorities[idx] = new_p

    def sample(self, batch_size, rng=None):
        rng = rng if rng is not None else np.random.default_rng()
        cdf = np.cumsum(self.priorities)
        total = cdf[-1]

        seg = total / batch_size
        u = (np.arange(batch_size) + rng.random(batch_size)) * seg

        idx = np.searchsorted(cdf, u, side="left")
        np.clip(idx, 0, self.capacity - 1, out=idx)
        return idx


class TorchCumsumSampler:
    """
    Same baseline on torch tensors (cpu by default).
    """
    def __init__(self, capacity, device="cpu"):
        self.capacity = capacity
        self.device = torch.device(device)
        self.priorities = torch.zeros(capacity, device=self.device, dtype=torch.float32)

    @torch.no_grad()
    def update(self, idx, new_p):
        self.priorities[torch.as_tensor(idx, device=self.device)] = torch.as_tensor(
            new_p, device=self.device, dtype=torch.float32
        )

    @torch.no_grad()
    def sample(self, batch_size, generator=None):
        cdf = torch.cumsum(self.priorities, dim=0)
        total = cdf[-1]

        seg = total / batch_size
        u = (torch.arange(batch_size, device=self.device) +
             torch.rand(batch_size, device=self.device, generator=generator)) * seg

        idx = torch.searchsorted(cdf, u, right=False)
        idx.clamp_(0, self.capacity - 1)
        return idx
