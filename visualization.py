import os
from datetime import datetime
from typing import List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from algorithms import ALGORITHMS

COLUMN_WIDTH = 20
NAME_HEADER = "Load Balancing Algorithm"
THROUGHPUT_PER_SECOND = "Load/s per capacity"
THROUGHPUT_PER_UNIT = "Load/unit per cap"
RESULTS_DIR = "simulation_results"


def generate_simulation_id():
    """Create unique ID for each simulation run"""
    return f"sim_{datetime.now().strftime('%Y%m%d_%H%M%S')}"


def _ordered_algorithms(results: pd.DataFrame) -> List[str]:
    present = set(results['Algorithm'])
    ordered = [name for name in ALGORITHMS if name in present]
    return ordered + sorted(present - set(ordered))


def name_column_width(algorithms: List[str]) -> int:
    """Name column grows past COLUMN_WIDTH so long names never shift the data columns."""
    longest = max([len(NAME_HEADER)] + [len(name) for name in algorithms])
    return max(COLUMN_WIDTH, longest + 2)


def _format_value(value) -> str:
    if pd.isna(value):
        return "n/a"
    return f"{value:.6g}"


def format_results_table(results: pd.DataFrame, time_label: str = "Execution Time (μs)",
                         throughput_label: str = THROUGHPUT_PER_SECOND) -> str:
    """Render results as fixed-width columns.

    One execution-time column per task count and a trailing throughput
    column holding the throughput of the last task count. Throughput is
    assigned load per time unit per unit of pool capability, so its label
    follows the timing mode (per second or per simulated unit).
    """
    width = COLUMN_WIDTH
    algorithms = _ordered_algorithms(results)
    name_width = name_column_width(algorithms)
    task_counts = sorted(results['NumTasks'].unique())
    last_count = task_counts[-1] if task_counts else None

    header = f"{NAME_HEADER:<{name_width}}"
    for num_tasks in task_counts:
        header += f"{'Num Tasks: ' + str(num_tasks):>{width}}"
    header += f"{throughput_label:>{width}}"

    sub_header = " " * name_width
    for _ in task_counts:
        sub_header += f"{time_label:>{width}}"

    lines = [header, sub_header]
    for name in algorithms:
        algo_data = results[results['Algorithm'] == name]
        line = f"{name:<{name_width}}"
        for num_tasks in task_counts:
            matching = algo_data[algo_data['NumTasks'] == num_tasks]['ExecutionTime']
            value = matching.iloc[0] if not matching.empty else np.nan
            line += f"{_format_value(value):>{width}}"
        throughput = algo_data[algo_data['NumTasks'] == last_count]['Throughput']
        line += f"{_format_value(throughput.iloc[0] if not throughput.empty else np.nan):>{width}}"
        lines.append(line)
    return "\n".join(lines)


def print_results_table(results: pd.DataFrame, time_label: str = "Execution Time (μs)",
                        throughput_label: str = THROUGHPUT_PER_SECOND):
    print(format_results_table(results, time_label, throughput_label))


def save_results_csv(results: pd.DataFrame, results_dir: str = RESULTS_DIR,
                     simulation_id: Optional[str] = None) -> str:
    """Save the results table and return the CSV path."""
    os.makedirs(results_dir, exist_ok=True)
    simulation_id = simulation_id or generate_simulation_id()
    csv_filename = os.path.join(results_dir, f"results_{simulation_id}.csv")
    results.to_csv(csv_filename, index=False)
    return csv_filename


def generate_summary_statistics(results: pd.DataFrame, results_dir: str = RESULTS_DIR,
                                simulation_id: Optional[str] = None) -> str:
    """Write a per-algorithm text summary and return its path."""
    os.makedirs(results_dir, exist_ok=True)
    simulation_id = simulation_id or generate_simulation_id()
    summary_filename = os.path.join(results_dir, f"summary_{simulation_id}.txt")

    with open(summary_filename, 'w') as f:
        f.write("LOAD BALANCER SIMULATION - SUMMARY\n")
        f.write("=" * 60 + "\n")
        f.write(f"Simulation ID: {simulation_id}\n")
        f.write(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write("=" * 60 + "\n\n")

        for name in _ordered_algorithms(results):
            algo_data = results[results['Algorithm'] == name]
            f.write(f"ALGORITHM: {name}\n")
            f.write("-" * 40 + "\n")
            for _, row in algo_data.iterrows():
                f.write(f"Tasks: {row['NumTasks']:,}  "
                        f"Time: {_format_value(row['ExecutionTime'])}  "
                        f"Total Load: {row['TotalLoad']:.2f}  "
                        f"Throughput: {_format_value(row['Throughput'])}\n")
            f.write(f"Mean Execution Time: {algo_data['ExecutionTime'].mean():.3f}\n")
            f.write(f"Mean Throughput: {algo_data['Throughput'].mean():.6f}\n")
            f.write("\n" + "=" * 60 + "\n\n")

    return summary_filename


def generate_comparison_plots(results: pd.DataFrame, results_dir: str = RESULTS_DIR,
                              simulation_id: Optional[str] = None) -> str:
    """Execution time per task count and final throughput per algorithm."""
    os.makedirs(results_dir, exist_ok=True)
    simulation_id = simulation_id or generate_simulation_id()
    algorithms = _ordered_algorithms(results)
    colors = ['#FF6B6B', '#4ECDC4', '#45B7D1', '#F7B801', '#6A4C93']

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(16, 6))

    # Subplot 1: Execution time against batch size
    for i, name in enumerate(algorithms):
        algo_data = results[results['Algorithm'] == name].sort_values('NumTasks')
        ax1.plot(algo_data['NumTasks'], algo_data['ExecutionTime'], marker='o',
                 color=colors[i % len(colors)], linewidth=2, label=name)
    ax1.set_title('1. Execution Time by Batch Size\n(Lower is Better)', fontweight='bold', fontsize=12)
    ax1.set_xlabel('Number of Tasks', fontweight='bold')
    ax1.set_ylabel('Execution Time', fontweight='bold')
    ax1.set_xscale('log')
    ax1.grid(True, alpha=0.3)
    ax1.legend()

    # Subplot 2: Throughput on the largest batch
    last_count = results['NumTasks'].max()
    throughputs = [
        results[(results['Algorithm'] == name) & (results['NumTasks'] == last_count)]['Throughput'].mean()
        for name in algorithms
    ]
    bars = ax2.bar(algorithms, throughputs, color=colors[:len(algorithms)],
                   alpha=0.8, edgecolor='black', linewidth=1.5)
    ax2.set_title(f'2. Throughput ({last_count} Tasks)\n(Higher is Better)', fontweight='bold', fontsize=12)
    ax2.set_ylabel('Throughput', fontweight='bold')
    ax2.grid(True, alpha=0.3, axis='y')
    ax2.tick_params(axis='x', rotation=45)

    for bar, value in zip(bars, throughputs):
        if np.isnan(value):
            continue
        ax2.text(bar.get_x() + bar.get_width() / 2., bar.get_height(),
                 f'{value:.4g}', ha='center', va='bottom', fontweight='bold', fontsize=9)

    plt.tight_layout()
    plot_filename = os.path.join(results_dir, f"comparison_{simulation_id}.png")
    fig.savefig(plot_filename, dpi=100)
    plt.close(fig)
    return plot_filename
