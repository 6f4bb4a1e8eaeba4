import argparse
import sys
from typing import List, Optional

from algorithms import ALGORITHM_KEYS
from simulation import (MAX_CAPABILITY, MIN_CAPABILITY, NUM_SERVERS, NUM_TASKS, TimingMode,
                        run_comparison)
from visualization import (RESULTS_DIR, THROUGHPUT_PER_SECOND, THROUGHPUT_PER_UNIT,
                           generate_comparison_plots, generate_simulation_id,
                           generate_summary_statistics, print_results_table, save_results_csv)


def log_message(message: str):
    """Simple console logging."""
    print(message)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compare load balancing algorithms on a simulated server pool")
    parser.add_argument("--servers", type=int, default=NUM_SERVERS, help="number of servers")
    parser.add_argument("--tasks", type=int, nargs="+", default=NUM_TASKS, help="task batch sizes")
    parser.add_argument("--mode", choices=[mode.value for mode in TimingMode],
                        default=TimingMode.WALL_CLOCK.value, help="timing mode")
    parser.add_argument("--uncapacitated", action="store_true",
                        help="give every server capability 1")
    parser.add_argument("--min-capability", type=int, default=MIN_CAPABILITY)
    parser.add_argument("--max-capability", type=int, default=MAX_CAPABILITY)
    parser.add_argument("--iterations", type=int, default=None, help="ACO iterations")
    parser.add_argument("--algorithms", nargs="+", choices=sorted(ALGORITHM_KEYS), default=None,
                        help="algorithms to compare (default: all)")
    parser.add_argument("--seed", type=int, default=None, help="random seed for reproducible runs")
    parser.add_argument("--save", action="store_true", help="save CSV, summary and plots")
    parser.add_argument("--results-dir", default=RESULTS_DIR)
    parser.add_argument("--verbose", action="store_true", help="print progress messages")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    timing_mode = TimingMode(args.mode)
    simulation_id = generate_simulation_id()

    try:
        results = run_comparison(
            num_servers=args.servers,
            task_counts=args.tasks,
            timing_mode=timing_mode,
            capability_aware=not args.uncapacitated,
            min_capability=args.min_capability,
            max_capability=args.max_capability,
            seed=args.seed,
            num_iterations=args.iterations,
            algorithms=args.algorithms,
            simulation_id=simulation_id,
            log_callback=log_message if args.verbose else None,
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    if timing_mode == TimingMode.WALL_CLOCK:
        time_label, throughput_label = "Execution Time (μs)", THROUGHPUT_PER_SECOND
    else:
        time_label, throughput_label = "Simulated Time", THROUGHPUT_PER_UNIT
    print_results_table(results, time_label, throughput_label)

    if args.save:
        csv_filename = save_results_csv(results, args.results_dir, simulation_id)
        summary_filename = generate_summary_statistics(results, args.results_dir, simulation_id)
        plot_filename = generate_comparison_plots(results, args.results_dir, simulation_id)
        print("=" * 50)
        print(f"Results CSV: {csv_filename}")
        print(f"Summary: {summary_filename}")
        print(f"Plots: {plot_filename}")
        print("=" * 50)

    return 0


if __name__ == "__main__":
    sys.exit(main())
