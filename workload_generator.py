import numpy as np
from typing import List

from algorithms import RandomSource, make_rng

MIN_TASK_LOAD = 1.0
MAX_TASK_LOAD = 10.0


def generate_random_task_loads(num_tasks: int, rng: RandomSource = None) -> List[float]:
    """Task loads drawn uniformly from [MIN_TASK_LOAD, MAX_TASK_LOAD]."""
    if num_tasks <= 0:
        raise ValueError("num_tasks must be > 0")
    rng = make_rng(rng)
    return rng.uniform(MIN_TASK_LOAD, MAX_TASK_LOAD, size=num_tasks).tolist()


def generate_random_capabilities(num_servers: int, min_capability: int, max_capability: int,
                                 rng: RandomSource = None) -> List[int]:
    """Integer capabilities drawn uniformly from [min_capability, max_capability]."""
    if num_servers <= 0:
        raise ValueError("num_servers must be > 0")
    if min_capability <= 0 or max_capability < min_capability:
        raise ValueError(f"Invalid capability range {min_capability}-{max_capability}")
    rng = make_rng(rng)
    return rng.integers(min_capability, max_capability, size=num_servers, endpoint=True).tolist()


class WorkloadGenerator:
    def __init__(self, rng: RandomSource = None):
        self.rng = make_rng(rng)
        self._current: List[float] = []

    def generate_workload(self, num_tasks: int) -> List[float]:
        self._current = generate_random_task_loads(num_tasks, self.rng)
        return self._current.copy()

    def get_current_workload(self) -> List[float]:
        if not self._current:
            raise RuntimeError("No workload generated yet.")
        return self._current.copy()

    def has_workload(self) -> bool:
        return bool(self._current)
