import math
from types import SimpleNamespace

import pandas as pd
import pytest

from algorithms import (
    ALGORITHMS,
    ActiveClusteringLoadBalancing,
    AntColonyOptimizationLoadBalancing,
    RandomLoadBalancing,
    RoundRobinLoadBalancing,
)
import simulation
from exceptions import EmptyServerPool, ZeroDurationThroughput
from simulation import RESULT_COLUMNS, LoadBalancer, TimingMode, resolve_algorithms, run_comparison


def test_total_load_is_zero_before_any_run():
    balancer = LoadBalancer(num_servers=3)
    assert balancer.get_total_load() == 0


def test_run_reads_back_policy_load(task_loads):
    balancer = LoadBalancer(capabilities=[1, 2, 3], rng=5)
    elapsed = balancer.run(RoundRobinLoadBalancing, task_loads)
    assert elapsed >= 0
    assert balancer.get_total_load() == pytest.approx(sum(task_loads))
    # Reference pool stays untouched
    assert all(server.get_load() == 0 for server in balancer.servers)


def test_each_run_starts_from_a_fresh_pool(task_loads):
    balancer = LoadBalancer(num_servers=4)
    balancer.run(RoundRobinLoadBalancing, task_loads)
    balancer.run(ActiveClusteringLoadBalancing, task_loads)
    assert balancer.get_total_load() == pytest.approx(sum(task_loads))


def test_simulated_mode_counts_one_unit_per_task(task_loads):
    balancer = LoadBalancer(num_servers=4, timing_mode=TimingMode.SIMULATED)
    elapsed = balancer.run(RoundRobinLoadBalancing, task_loads)
    assert elapsed == len(task_loads)
    assert balancer.get_total_load() == pytest.approx(sum(task_loads))


def test_simulated_mode_keeps_round_robin_cursor():
    balancer = LoadBalancer(num_servers=2, timing_mode=TimingMode.SIMULATED)
    balancer.run(RoundRobinLoadBalancing, [3, 3, 3, 3])
    assert balancer.get_server_loads() == {0: 6, 1: 6}


def test_simulated_mode_aco_keeps_every_task(task_loads):
    balancer = LoadBalancer(num_servers=4, timing_mode=TimingMode.SIMULATED, rng=3)
    balancer.run(AntColonyOptimizationLoadBalancing, task_loads, num_iterations=5)
    assert balancer.get_total_load() == pytest.approx(sum(task_loads))


def test_simulated_mode_empty_batch():
    balancer = LoadBalancer(num_servers=2, timing_mode=TimingMode.SIMULATED)
    assert balancer.run(RandomLoadBalancing, []) == 0
    with pytest.raises(ZeroDurationThroughput):
        balancer.get_throughput(0)


def test_throughput_formula():
    balancer = LoadBalancer(capabilities=[1, 3], timing_mode=TimingMode.SIMULATED)
    balancer.run(RoundRobinLoadBalancing, [3, 3, 3, 3])
    assert balancer.get_total_capability() == 4
    assert balancer.get_throughput(4.0) == pytest.approx(12 / 4 / 4)


def test_throughput_scales_inversely_with_capability():
    tasks = [2.0, 4.0, 6.0]
    base = LoadBalancer(capabilities=[1, 2, 3])
    scaled = LoadBalancer(capabilities=[5, 10, 15])
    base.run(RoundRobinLoadBalancing, tasks)
    scaled.run(RoundRobinLoadBalancing, tasks)
    assert scaled.get_throughput(3.0) == pytest.approx(base.get_throughput(3.0) / 5)


@pytest.mark.parametrize("duration", [0, -1.0])
def test_throughput_rejects_zero_duration(duration):
    balancer = LoadBalancer(num_servers=2)
    with pytest.raises(ZeroDurationThroughput):
        balancer.get_throughput(duration)


def test_reset_discards_last_run(task_loads):
    balancer = LoadBalancer(num_servers=2)
    balancer.run(RoundRobinLoadBalancing, task_loads)
    balancer.reset()
    assert balancer.get_total_load() == 0
    assert balancer.get_server_loads() == {0: 0, 1: 0}


def test_empty_pool_rejected():
    with pytest.raises(EmptyServerPool):
        LoadBalancer(capabilities=[])


def test_log_callback_receives_run_summary(task_loads):
    messages = []
    balancer = LoadBalancer(num_servers=2, log_callback=messages.append)
    balancer.run(RoundRobinLoadBalancing, task_loads)
    assert any(message.startswith("Round-Robin:") for message in messages)


def test_run_comparison_table_shape():
    results = run_comparison(num_servers=5, task_counts=[10, 20], timing_mode=TimingMode.SIMULATED,
                             seed=11, num_iterations=3)
    assert list(results.columns) == RESULT_COLUMNS
    assert len(results) == 2 * len(ALGORITHMS)
    assert list(results['Algorithm'][:5]) == list(ALGORITHMS)
    assert set(results['NumTasks']) == {10, 20}
    assert (results[results['NumTasks'] == 20]['ExecutionTime'] == 20).all()


def test_run_comparison_all_policies_assign_the_same_volume():
    results = run_comparison(num_servers=4, task_counts=[25], timing_mode=TimingMode.SIMULATED,
                             seed=2, num_iterations=2)
    totals = results['TotalLoad'].tolist()
    assert all(total == pytest.approx(totals[0]) for total in totals)
    assert 25 <= totals[0] <= 250


@pytest.mark.parametrize("algorithm_cls", [RandomLoadBalancing, AntColonyOptimizationLoadBalancing])
def test_seeded_driver_reproduces_placements(algorithm_cls, task_loads):
    placements = []
    for _ in range(2):
        balancer = LoadBalancer(capabilities=[5, 10, 15, 20], rng=99)
        options = {'num_iterations': 4} if algorithm_cls is AntColonyOptimizationLoadBalancing else {}
        balancer.run(algorithm_cls, task_loads, **options)
        placements.append((balancer.get_server_loads(),
                           getattr(balancer.last_algorithm, 'last_assignment', None)))
    assert placements[0] == placements[1]


def test_seeded_driver_placements_depend_on_seed(task_loads):
    loads = []
    for seed in (1, 2, 3):
        balancer = LoadBalancer(num_servers=4, rng=seed)
        balancer.run(RandomLoadBalancing, task_loads)
        loads.append(tuple(balancer.get_server_loads().values()))
    assert len(set(loads)) > 1


def test_run_comparison_is_reproducible_with_seed():
    first = run_comparison(num_servers=4, task_counts=[30], timing_mode=TimingMode.SIMULATED,
                           seed=99, num_iterations=2)
    second = run_comparison(num_servers=4, task_counts=[30], timing_mode=TimingMode.SIMULATED,
                            seed=99, num_iterations=2)
    pd.testing.assert_frame_equal(first, second)


def test_run_comparison_uncapacitated_throughput():
    results = run_comparison(num_servers=4, task_counts=[40], timing_mode=TimingMode.SIMULATED,
                             capability_aware=False, seed=1, num_iterations=1)
    row = results.iloc[0]
    assert row['Throughput'] == pytest.approx(row['TotalLoad'] / 40 / 4)


def test_run_comparison_wall_clock():
    results = run_comparison(num_servers=3, task_counts=[15], seed=4, num_iterations=2)
    assert (results['ExecutionTime'] >= 0).all()
    for throughput in results['Throughput']:
        assert math.isnan(throughput) or throughput > 0


def test_run_comparison_requires_task_counts():
    with pytest.raises(ValueError):
        run_comparison(task_counts=[])


def test_wall_clock_run_returns_seconds_for_throughput(monkeypatch):
    ticks = iter([10.0, 10.5])
    monkeypatch.setattr(simulation, "time", SimpleNamespace(perf_counter=lambda: next(ticks)))
    balancer = LoadBalancer(capabilities=[1, 3])
    elapsed = balancer.run(RoundRobinLoadBalancing, [3, 3, 3, 3])
    assert elapsed == pytest.approx(0.5)
    assert balancer.get_throughput(elapsed) == pytest.approx(12 / 0.5 / 4)
    assert balancer.get_throughput() == pytest.approx(12 / 0.5 / 4)


def test_throughput_defaults_to_last_simulated_run():
    balancer = LoadBalancer(capabilities=[2, 2], timing_mode=TimingMode.SIMULATED)
    balancer.run(RoundRobinLoadBalancing, [1.0, 2.0, 3.0])
    assert balancer.get_throughput() == pytest.approx(6 / 3 / 4)


def test_throughput_without_a_run_is_rejected():
    balancer = LoadBalancer(num_servers=2)
    with pytest.raises(ZeroDurationThroughput):
        balancer.get_throughput()


def test_run_comparison_reports_wall_clock_time_in_microseconds(monkeypatch):
    ticks = iter([0.0, 0.002] * 5)
    monkeypatch.setattr(simulation, "time", SimpleNamespace(perf_counter=lambda: next(ticks)))
    results = run_comparison(num_servers=2, task_counts=[10], capability_aware=False, seed=6,
                             num_iterations=1)
    assert results['ExecutionTime'].tolist() == pytest.approx([2000.0] * 5)
    for _, row in results.iterrows():
        assert row['Throughput'] == pytest.approx(row['TotalLoad'] / 0.002 / 2)


@pytest.mark.parametrize("capability_aware", [True, False])
def test_run_comparison_rejects_empty_pool(capability_aware):
    with pytest.raises(EmptyServerPool):
        run_comparison(num_servers=0, task_counts=[10], capability_aware=capability_aware)


def test_run_comparison_selected_algorithms():
    results = run_comparison(num_servers=3, task_counts=[10], timing_mode=TimingMode.SIMULATED,
                             algorithms=["aco", "Random"], seed=5, num_iterations=1)
    assert results['Algorithm'].tolist() == ["Random", "Ant Colony Optimization"]


def test_run_comparison_unknown_algorithm():
    with pytest.raises(ValueError):
        run_comparison(num_servers=3, task_counts=[10], algorithms=["least-connections"])


def test_resolve_algorithms_defaults_to_registry():
    assert resolve_algorithms() == ALGORITHMS
    assert list(resolve_algorithms(["active-clustering", "random"])) == ["Random", "Active Clustering"]
