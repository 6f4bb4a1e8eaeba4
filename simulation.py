"""Simulation driver: runs each policy on its own copy of a server pool and
collects execution time, total assigned load and throughput."""

import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Type

import pandas as pd
import simpy

from algorithms import (ALGORITHMS, AntColonyOptimizationLoadBalancing, LoadBalancingAlgorithm,
                        RandomSource, get_algorithm, make_rng)
from exceptions import EmptyServerPool, ZeroDurationThroughput
from server import Server, initialize_servers
from workload_generator import WorkloadGenerator, generate_random_capabilities

NUM_SERVERS = 20
NUM_TASKS = [100, 1000, 10000]
MIN_CAPABILITY = 1
MAX_CAPABILITY = 100
TIME_PER_TASK = 1.0  # simulated time units per dispatched task

RESULT_COLUMNS = ['Algorithm', 'NumTasks', 'ExecutionTime', 'TotalLoad', 'Throughput', 'SimulationID']


class TimingMode(Enum):
    WALL_CLOCK = "wall-clock"
    SIMULATED = "simulated"


class LoadBalancer:
    """Owns the reference server pool and measures one policy run at a time.

    The reference pool is never mutated; every run works on a fresh copy
    held by the policy instance, which is kept as ``last_algorithm`` so its
    load can be read back.
    """

    def __init__(self, capabilities: Optional[Sequence[float]] = None, num_servers: Optional[int] = None,
                 timing_mode: TimingMode = TimingMode.WALL_CLOCK, rng: RandomSource = None,
                 log_callback: Optional[Callable] = None):
        self.servers: List[Server] = initialize_servers(num_servers, capabilities)
        self.timing_mode = timing_mode
        self.rng = make_rng(rng)
        self.log_callback = log_callback
        self.last_algorithm: Optional[LoadBalancingAlgorithm] = None
        self.last_elapsed: Optional[float] = None

    def run(self, algorithm_cls: Type[LoadBalancingAlgorithm], task_loads: Sequence[float],
            **algorithm_options) -> float:
        """Run one policy and return the elapsed time.

        Wall-clock mode returns seconds spent inside ``balance_load``.
        Simulated mode returns simulated time units, one per task. Either
        value can be passed straight to ``get_throughput``.
        """
        algorithm = algorithm_cls(self.servers, rng=self.rng, log_callback=self.log_callback,
                                  **algorithm_options)
        self.last_algorithm = algorithm

        if self.timing_mode == TimingMode.SIMULATED:
            elapsed = self._run_simulated(algorithm, task_loads)
        else:
            start = time.perf_counter()
            algorithm.balance_load(task_loads)
            elapsed = time.perf_counter() - start
        self.last_elapsed = elapsed

        if self.log_callback:
            self.log_callback(f"{algorithm.name}: {len(task_loads)} tasks, elapsed {elapsed:.6g}, "
                              f"total load {self.get_total_load():.2f}")
        return elapsed

    @staticmethod
    def _run_simulated(algorithm: LoadBalancingAlgorithm, task_loads: Sequence[float]) -> float:
        env = simpy.Environment()

        def dispatch(env):
            for task_load in task_loads:
                algorithm.balance_load([task_load])
                yield env.timeout(TIME_PER_TASK)

        env.process(dispatch(env))
        env.run()
        return float(env.now)

    def get_total_load(self) -> float:
        if self.last_algorithm is None:
            return 0.0
        return self.last_algorithm.get_total_load()

    def get_total_capability(self) -> float:
        return sum(server.get_capability() for server in self.servers)

    def get_throughput(self, simulated_time: Optional[float] = None) -> float:
        """Load per unit time per unit of pool capability.

        Defaults to the duration of the last run, in the units ``run`` returned.
        """
        if simulated_time is None:
            simulated_time = self.last_elapsed or 0.0
        if simulated_time <= 0:
            raise ZeroDurationThroughput(simulated_time)
        return self.get_total_load() / simulated_time / self.get_total_capability()

    def get_server_loads(self) -> Dict[int, float]:
        servers = self.last_algorithm.servers if self.last_algorithm else self.servers
        return {server.get_id(): server.get_load() for server in servers}

    def reset(self):
        self.last_algorithm = None
        self.last_elapsed = None


def resolve_algorithms(names: Optional[Sequence[str]] = None) -> Dict[str, Type[LoadBalancingAlgorithm]]:
    """Selected policies in registry order; all of them when no names are given."""
    if not names:
        return dict(ALGORITHMS)
    selected = {get_algorithm(name) for name in names}
    return {name: algorithm_cls for name, algorithm_cls in ALGORITHMS.items() if algorithm_cls in selected}


def run_comparison(num_servers: int = NUM_SERVERS, task_counts: Sequence[int] = tuple(NUM_TASKS),
                   timing_mode: TimingMode = TimingMode.WALL_CLOCK, capability_aware: bool = True,
                   min_capability: int = MIN_CAPABILITY, max_capability: int = MAX_CAPABILITY,
                   seed: Optional[int] = None, num_iterations: Optional[int] = None,
                   algorithms: Optional[Sequence[str]] = None,
                   simulation_id: Optional[str] = None,
                   log_callback: Optional[Callable] = None) -> pd.DataFrame:
    """Run the selected policies on the same batches and tabulate the results.

    Capabilities are drawn once and shared by all batches. ExecutionTime is
    in microseconds for wall-clock mode and simulated units otherwise;
    throughput is per second or per simulated unit accordingly.
    """
    if not task_counts:
        raise ValueError("At least one task count is required")
    if not num_servers or num_servers <= 0:
        raise EmptyServerPool()
    selected = resolve_algorithms(algorithms)
    rng = make_rng(seed)

    if capability_aware:
        capabilities = generate_random_capabilities(num_servers, min_capability, max_capability, rng)
    else:
        capabilities = [1] * num_servers
    balancer = LoadBalancer(capabilities, timing_mode=timing_mode, rng=rng, log_callback=log_callback)
    workload_generator = WorkloadGenerator(rng)

    rows = []
    for num_tasks in task_counts:
        task_loads = workload_generator.generate_workload(num_tasks)
        if log_callback:
            log_callback(f"--- {num_tasks} tasks on {num_servers} servers ({timing_mode.value}) ---")

        for name, algorithm_cls in selected.items():
            options = {}
            if num_iterations is not None and algorithm_cls is AntColonyOptimizationLoadBalancing:
                options['num_iterations'] = num_iterations

            elapsed = balancer.run(algorithm_cls, task_loads, **options)
            try:
                throughput = balancer.get_throughput(elapsed)
            except ZeroDurationThroughput:
                # Clock resolution can report zero for tiny batches
                throughput = float('nan')

            rows.append({
                'Algorithm': name,
                'NumTasks': num_tasks,
                'ExecutionTime': elapsed * 1e6 if timing_mode == TimingMode.WALL_CLOCK else elapsed,
                'TotalLoad': balancer.get_total_load(),
                'Throughput': throughput,
                'SimulationID': simulation_id,
            })
            balancer.reset()

    return pd.DataFrame(rows, columns=RESULT_COLUMNS)
