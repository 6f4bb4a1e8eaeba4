import math
import numpy as np
from numbers import Real
from typing import Callable, Dict, List, Optional, Sequence, Type, Union

from exceptions import EmptyServerPool, InvalidTaskWeight
from server import Server, copy_servers

# ACO algorithm parameters
ALPHA = 1.0               # Pheromone importance
BETA = 2.0                # Heuristic importance
EVAPORATION_RATE = 0.5    # rho
PHEROMONE_DEPOSIT = 1.0   # Q
INITIAL_PHEROMONE = 1.0
NUM_ITERATIONS = 100

RandomSource = Union[np.random.Generator, int, None]


def make_rng(rng: RandomSource = None) -> np.random.Generator:
    """Accept a Generator, a seed or None and return a Generator."""
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def validate_task_loads(task_loads: Sequence[float]) -> List[float]:
    """Return the loads as floats, raising on the first non-positive or non-finite one."""
    validated = []
    for index, task_load in enumerate(task_loads):
        if isinstance(task_load, bool) or not isinstance(task_load, Real):
            raise InvalidTaskWeight(index, task_load)
        if not math.isfinite(task_load) or task_load <= 0:
            raise InvalidTaskWeight(index, task_load)
        validated.append(float(task_load))
    return validated


class LoadBalancingAlgorithm:
    """Base class for policies.

    A policy is bound to its own copy of the server pool at construction and
    mutates that copy in ``balance_load``. Subclasses that place tasks one at a
    time only implement ``select_server``.
    """

    name = "Base"

    def __init__(self, servers: Sequence[Server], rng: RandomSource = None,
                 log_callback: Optional[Callable] = None):
        if not servers:
            raise EmptyServerPool()
        self.servers = copy_servers(servers)
        self.rng = make_rng(rng)
        self.log_callback = log_callback

    def log(self, message: str):
        if self.log_callback:
            self.log_callback(message)

    def balance_load(self, task_loads: Sequence[float]):
        loads = validate_task_loads(task_loads)
        if not loads:
            return
        for task_load in loads:
            index = self.select_server(task_load)
            self.servers[index].add_load(task_load)
            self.after_assignment(index)
        self.log(f"{self.name}: placed {len(loads)} tasks, total load {self.get_total_load():.2f}")

    def select_server(self, task_load: float) -> int:
        raise NotImplementedError

    def after_assignment(self, server_index: int):
        pass

    def least_loaded_index(self) -> int:
        """First server holding the strictly smallest load, in ascending id order."""
        min_index = 0
        min_load = self.servers[0].get_load()
        for index, server in enumerate(self.servers):
            if server.get_load() < min_load:
                min_load = server.get_load()
                min_index = index
        return min_index

    def get_total_load(self) -> float:
        return sum(server.get_load() for server in self.servers)

    def get_loads(self) -> np.ndarray:
        return np.array([server.get_load() for server in self.servers], dtype=float)


class RandomLoadBalancing(LoadBalancingAlgorithm):
    name = "Random"

    def select_server(self, task_load: float) -> int:
        return int(self.rng.integers(0, len(self.servers)))


class RoundRobinLoadBalancing(LoadBalancingAlgorithm):
    """Cycles through servers; the cursor survives repeated calls on one instance."""

    name = "Round-Robin"

    def __init__(self, servers, rng=None, log_callback=None):
        super().__init__(servers, rng, log_callback)
        self.current_server = 0

    def select_server(self, task_load: float) -> int:
        return self.current_server

    def after_assignment(self, server_index: int):
        self.current_server = (self.current_server + 1) % len(self.servers)


class WeightedRoundRobinLoadBalancing(LoadBalancingAlgorithm):
    """Moves the cursor to the least loaded server after every assignment.

    Capability is not taken into account; ties go to the lowest id.
    """

    name = "Weighted Round-Robin"

    def __init__(self, servers, rng=None, log_callback=None):
        super().__init__(servers, rng, log_callback)
        self.current_server = 0

    def select_server(self, task_load: float) -> int:
        return self.current_server

    def after_assignment(self, server_index: int):
        self.current_server = self.least_loaded_index()


class ActiveClusteringLoadBalancing(LoadBalancingAlgorithm):
    name = "Active Clustering"

    def select_server(self, task_load: float) -> int:
        return self.least_loaded_index()


def initialize_pheromones(num_tasks: int, num_servers: int,
                          value: float = INITIAL_PHEROMONE) -> np.ndarray:
    """Uniform (task, server) pheromone matrix."""
    return np.full((num_tasks, num_servers), value, dtype=float)


def evaporate_pheromones(pheromones: np.ndarray, rho: float = EVAPORATION_RATE) -> np.ndarray:
    pheromones *= (1.0 - rho)
    return pheromones


def deposit_pheromones(pheromones: np.ndarray, server_loads: np.ndarray,
                       task_loads: np.ndarray, q: float = PHEROMONE_DEPOSIT) -> np.ndarray:
    """Deposit q / (server load + task load) on every (task, server) pair.

    Applied to all pairs, not only the ones an ant actually used.
    """
    server_loads = np.asarray(server_loads, dtype=float)
    task_loads = np.asarray(task_loads, dtype=float)
    pheromones += q / (server_loads[np.newaxis, :] + task_loads[:, np.newaxis])
    return pheromones


def update_pheromones(pheromones: np.ndarray, server_loads: np.ndarray, task_loads: np.ndarray,
                      rho: float = EVAPORATION_RATE, q: float = PHEROMONE_DEPOSIT) -> np.ndarray:
    evaporate_pheromones(pheromones, rho)
    return deposit_pheromones(pheromones, server_loads, task_loads, q)


def roulette_wheel_select(weights: np.ndarray, draw: float) -> int:
    """Index of the first server whose cumulative weight reaches the draw.

    Falls back to the last server when rounding leaves the draw above the
    final cumulative value.
    """
    cumulative = np.cumsum(weights)
    index = int(np.searchsorted(cumulative, draw, side="left"))
    return min(index, len(cumulative) - 1)


class AntColonyOptimizationLoadBalancing(LoadBalancingAlgorithm):
    """Each task is an ant that picks a server by roulette wheel over
    pheromone ** alpha * (load + task) ** -beta.

    Loads go back to their starting values between iterations. With
    ``keep_final_assignment`` the last iteration's placement is kept so the
    measured load is comparable with the other policies; without it loads are
    also reset after the final iteration.
    """

    name = "Ant Colony Optimization"

    def __init__(self, servers, rng=None, log_callback=None,
                 alpha: float = ALPHA, beta: float = BETA, rho: float = EVAPORATION_RATE,
                 q: float = PHEROMONE_DEPOSIT, num_iterations: int = NUM_ITERATIONS,
                 keep_final_assignment: bool = True):
        super().__init__(servers, rng, log_callback)
        if num_iterations < 1:
            raise ValueError("num_iterations must be at least 1")
        if not 0.0 <= rho < 1.0:
            raise ValueError("rho must be in [0, 1)")
        self.alpha = alpha
        self.beta = beta
        self.rho = rho
        self.q = q
        self.num_iterations = num_iterations
        self.keep_final_assignment = keep_final_assignment
        self.pheromones: Optional[np.ndarray] = None
        self.last_assignment: List[int] = []

    def balance_load(self, task_loads: Sequence[float]):
        loads = validate_task_loads(task_loads)
        if not loads:
            return
        task_array = np.array(loads, dtype=float)
        baseline = self.get_loads()
        self.pheromones = initialize_pheromones(len(loads), len(self.servers))

        for iteration in range(self.num_iterations):
            server_loads = baseline.copy()
            assignment = []
            for task_index, task_load in enumerate(loads):
                chosen = self.select_next_server(task_index, task_load, server_loads)
                server_loads[chosen] += task_load
                self.servers[chosen].add_load(task_load)
                assignment.append(chosen)

            update_pheromones(self.pheromones, server_loads, task_array, self.rho, self.q)
            self.last_assignment = assignment

            is_last = iteration == self.num_iterations - 1
            if not is_last or not self.keep_final_assignment:
                self._restore_loads(baseline)

        self.log(f"ACO: {self.num_iterations} iterations over {len(loads)} tasks, "
                 f"final load {self.get_total_load():.2f}")

    def select_next_server(self, task_index: int, task_load: float, server_loads: np.ndarray) -> int:
        weights = self.selection_weights(task_index, task_load, server_loads)
        draw = self.rng.uniform(0.0, float(weights.sum()))
        return roulette_wheel_select(weights, draw)

    def selection_weights(self, task_index: int, task_load: float, server_loads: np.ndarray) -> np.ndarray:
        heuristic = np.power(server_loads + task_load, -self.beta)
        return np.power(self.pheromones[task_index], self.alpha) * heuristic

    def _restore_loads(self, baseline: np.ndarray):
        for server, load in zip(self.servers, baseline):
            server.reset()
            if load:
                server.add_load(float(load))


ALGORITHMS: Dict[str, Type[LoadBalancingAlgorithm]] = {
    RandomLoadBalancing.name: RandomLoadBalancing,
    RoundRobinLoadBalancing.name: RoundRobinLoadBalancing,
    WeightedRoundRobinLoadBalancing.name: WeightedRoundRobinLoadBalancing,
    ActiveClusteringLoadBalancing.name: ActiveClusteringLoadBalancing,
    AntColonyOptimizationLoadBalancing.name: AntColonyOptimizationLoadBalancing,
}

ALGORITHM_KEYS = {
    "random": RandomLoadBalancing,
    "round-robin": RoundRobinLoadBalancing,
    "weighted-round-robin": WeightedRoundRobinLoadBalancing,
    "active-clustering": ActiveClusteringLoadBalancing,
    "aco": AntColonyOptimizationLoadBalancing,
}


def get_algorithm(name: str) -> Type[LoadBalancingAlgorithm]:
    if name in ALGORITHMS:
        return ALGORITHMS[name]
    if name.lower() in ALGORITHM_KEYS:
        return ALGORITHM_KEYS[name.lower()]
    raise ValueError(f"Unknown load balancing algorithm: {name}")
