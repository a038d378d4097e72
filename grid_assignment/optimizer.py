"""
House -> Generator Assignment Optimizer

Starts from a greedy assignment (largest houses first, each on the least
utilized generator) and improves it with simulated annealing over the cost
`dispersion + penalty_factor * overload_penalty`. The best assignment seen is
committed to the network at the end of the run.

Run as a script to load a network file, optimize it and write results to
`data/outputs/`.
"""

from typing import List, Dict, Optional, Any
from dataclasses import dataclass, replace
import random
import math
import json
import argparse
import sys
import logging
import os
import tqdm
from grid_assignment.cost import cost, dispersion, load, overload_penalty, utilization
from grid_assignment.errors import NetworkError
from grid_assignment.network import Network
from grid_assignment.network_file import load_network, save_network, snapshot_network
from grid_assignment.utils import (
    _default_output_dir,
    _ensure_output_dir,
    _resolve_path,
    _to_json_compatible,
)
import matplotlib.pyplot as plt


@dataclass
class AlgorithmConfig:
    """Configuration for the simulated annealing run."""

    INITIAL_TEMP: float = 100.0
    COOLING_RATE: float = 0.999
    ITERATIONS: int = 50000
    MIN_TEMP: float = 1e-4
    RANDOM_SEED: Optional[int] = None
    SHOW_PROGRESS: bool = True

    def __post_init__(self):
        if not 0.0 < self.COOLING_RATE < 1.0:
            raise ValueError(f"COOLING_RATE must be strictly between 0 and 1, got {self.COOLING_RATE}")
        if self.INITIAL_TEMP <= 0:
            raise ValueError(f"INITIAL_TEMP must be positive, got {self.INITIAL_TEMP}")
        if self.MIN_TEMP < 0:
            raise ValueError(f"MIN_TEMP cannot be negative, got {self.MIN_TEMP}")
        if self.ITERATIONS < 0:
            raise ValueError(f"ITERATIONS cannot be negative, got {self.ITERATIONS}")


def evaluate(network: Network) -> Dict[str, float]:
    """Cost breakdown of the current assignment."""
    return {
        "cost": cost(network),
        "dispersion": dispersion(network),
        "overload_penalty": overload_penalty(network),
    }


class NetworkOptimizer:
    """
    Simulated annealing over the house -> generator assignment of a network.

    The optimizer owns the network's assignment for the duration of `solve()`.
    Randomness comes only from `rng` (or a `random.Random` seeded with
    `config.RANDOM_SEED`), so a fixed seed reproduces a run exactly.
    """

    def __init__(
        self,
        network: Network,
        config: Optional[AlgorithmConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.network = network
        self.config = config or AlgorithmConfig()
        self.rng = rng if rng is not None else random.Random(self.config.RANDOM_SEED)
        if rng is None and self.config.RANDOM_SEED is not None:
            logging.info(f"Random seed set to {self.config.RANDOM_SEED} for reproducibility")

        # Track annealing cost per iteration for logging/plotting
        self.annealing_cost_history: List[float] = []
        self.best_cost_history: List[float] = []
        self.annealing_temperature_history: List[float] = []

    def greedy_initialization(self) -> None:
        """
        Rebuild the assignment from scratch: houses sorted by decreasing demand
        (then by name), each connected to the generator with the lowest
        utilization at that moment. Ties go to the first generator encountered.
        """
        network = self.network
        network.clear_assignment()

        ordered = sorted(network.houses.values(), key=lambda h: (-h.demand_kw, h.name))
        for house in ordered:
            best_generator = None
            best_rate = math.inf
            for name in network.generators:
                rate = utilization(network, name)
                if rate < best_rate:
                    best_rate = rate
                    best_generator = name
            if best_generator is not None:
                network.assign(house.name, best_generator)

    def _pick_other_generator(
        self, generators: List[str], index: Dict[str, int], current: Optional[str]
    ) -> str:
        """Uniform choice among the generators other than `current`."""
        if current is None:
            return self.rng.choice(generators)
        idx = self.rng.randrange(len(generators) - 1)
        if idx >= index[current]:
            idx += 1
        return generators[idx]

    def _simulated_annealing(self, stats: Dict[str, Any]) -> float:
        network = self.network
        config = self.config

        current_cost = cost(network)
        best_assignment = network.snapshot_assignment()
        best_cost = current_cost
        temperature = config.INITIAL_TEMP
        stats["greedy_cost"] = current_cost

        # Initialize cost history (include starting cost at iteration 0)
        self.annealing_cost_history = [current_cost]
        self.best_cost_history = [best_cost]
        self.annealing_temperature_history = [temperature]

        houses = list(network.houses)
        generators = list(network.generators)
        if len(generators) < 2:
            logging.info("Single generator: no alternative assignment to explore.")
            return best_cost
        generator_index = {name: i for i, name in enumerate(generators)}

        with tqdm.tqdm(
            range(config.ITERATIONS),
            desc="Simulated annealing",
            disable=not config.SHOW_PROGRESS,
        ) as bar:
            for _ in bar:
                house = self.rng.choice(houses)
                previous = network.generator_of(house)
                candidate = self._pick_other_generator(generators, generator_index, previous)

                network.assign(house, candidate)
                new_cost = cost(network)
                delta = new_cost - current_cost

                # Metropolis criterion
                accept = delta < 0 or self.rng.random() < math.exp(-delta / temperature)
                if accept:
                    stats["accepted_moves"] += 1
                    if delta < 0:
                        stats["improving_moves"] += 1
                    current_cost = new_cost
                    if current_cost < best_cost:
                        best_cost = current_cost
                        best_assignment = network.snapshot_assignment()
                elif previous is None:
                    network.unassign(house)
                else:
                    network.assign(house, previous)

                temperature *= config.COOLING_RATE
                stats["iterations_run"] += 1

                self.annealing_cost_history.append(current_cost)
                self.best_cost_history.append(best_cost)
                self.annealing_temperature_history.append(temperature)
                bar.set_postfix(
                    cost=f"{current_cost:.4f}",
                    best=f"{best_cost:.4f}",
                    temp=f"{temperature:.4f}",
                    refresh=False,
                )

                if temperature < config.MIN_TEMP:
                    stats["stopped_early"] = True
                    break

        stats["final_temperature"] = temperature
        network.restore_assignment(best_assignment)
        return best_cost

    def solve(self) -> Dict[str, Any]:
        """
        Greedy initialization followed by simulated annealing; the best
        assignment found is left on the network.

        If a NetworkError interrupts the run (e.g. a generator with zero
        capacity), the assignment the network had before the call is restored
        and the error is re-raised.
        """
        network = self.network
        stats: Dict[str, Any] = {
            "total_houses": len(network.houses),
            "total_generators": len(network.generators),
            "initial_cost": None,
            "greedy_cost": None,
            "best_cost": None,
            "final_cost": None,
            "dispersion": None,
            "overload_penalty": None,
            "iterations_run": 0,
            "accepted_moves": 0,
            "improving_moves": 0,
            "final_temperature": self.config.INITIAL_TEMP,
            "stopped_early": False,
            "skipped": False,
        }

        if not network.houses or not network.generators:
            logging.info("Empty network (no houses or no generators), nothing to optimize.")
            stats["skipped"] = True
            return stats

        previous_assignment = network.snapshot_assignment()
        try:
            stats["initial_cost"] = cost(network)
            logging.info("Building the initial assignment greedily (largest houses first)...")
            self.greedy_initialization()
            logging.info("Optimizing the assignment using simulated annealing...")
            best_cost = self._simulated_annealing(stats)
        except NetworkError as e:
            logging.error(f"Optimization aborted, previous assignment restored: {e}")
            network.restore_assignment(previous_assignment)
            raise

        final = evaluate(network)
        stats.update(
            best_cost=best_cost,
            final_cost=final["cost"],
            dispersion=final["dispersion"],
            overload_penalty=final["overload_penalty"],
        )
        logging.info(
            f"Optimization finished after {stats['iterations_run']} iterations. "
            f"Best cost found: {best_cost:.4f}"
        )
        return stats


def optimize(
    network: Network,
    max_iterations: Optional[int] = None,
    seed: Optional[int] = None,
    config: Optional[AlgorithmConfig] = None,
) -> Dict[str, Any]:
    """
    Run greedy initialization + simulated annealing on `network` and return run statistics.

    Without an explicit `config` the progress bar is off; the CLI turns it on.
    """
    config = config or AlgorithmConfig(SHOW_PROGRESS=False)
    if max_iterations is not None:
        config = replace(config, ITERATIONS=max_iterations)
    if seed is not None:
        config = replace(config, RANDOM_SEED=seed)
    return NetworkOptimizer(network, config).solve()


def _save_results_markdown(
    network: Network, output_path: str, stats: Optional[Dict[str, Any]] = None
) -> None:
    """Save a human-readable Markdown report of the network state, one section per generator."""
    lines: List[str] = []

    if stats is not None:
        lines.append("Summary:")
        lines.append(f"- Houses: {len(network.houses)}")
        lines.append(f"- Generators: {len(network.generators)}")
        lines.append(f"- Penalty factor: {network.penalty_factor:g}")
        for key in ("cost", "best_cost", "dispersion", "overload_penalty"):
            value = stats.get(key)
            if value is not None:
                lines.append(f"- {key.replace('_', ' ').capitalize()}: {value:.4f}")
        if stats.get("iterations_run"):
            lines.append(f"- Iterations: {stats['iterations_run']}")
        lines.append("")

    for name, generator in network.generators.items():
        lines.append(f"Generator {name} (capacity {generator.capacity_kw:g} kW):")
        lines.append(f"- Load: {load(network, name):g} kW")
        try:
            rate = utilization(network, name)
            status = "OVERLOAD" if rate > 1.0 else "OK"
            lines.append(f"- Utilization: {rate * 100:.2f}% [{status}]")
        except NetworkError:
            lines.append("- Utilization: N/A [ERROR: zero capacity]")
        connected = network.houses_of(name)
        if connected:
            lines.append("- Houses:")
            for house_name in connected:
                house = network.houses[house_name]
                lines.append(f"  - {house_name} ({house.consumption.name}, {house.demand_kw} kW)")
        else:
            lines.append("- No house connected.")
        lines.append("")

    unconnected = [h for h in network.houses if h not in network.assignment]
    if unconnected:
        lines.append("Unconnected houses:")
        for house_name in unconnected:
            lines.append(f"- {house_name}")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines).strip() + "\n")


def _save_annealing_plot(optimizer: NetworkOptimizer, output_path: str) -> None:
    iterations = list(range(len(optimizer.annealing_cost_history)))
    fig, ax_cost = plt.subplots(figsize=(8, 4.5))

    ax_cost.plot(
        iterations,
        optimizer.annealing_cost_history,
        color="#1f77b4",
        linewidth=1.5,
        label="Cost",
    )
    ax_cost.plot(
        iterations,
        optimizer.best_cost_history,
        color="#2ca02c",
        linewidth=2,
        label="Best cost",
    )
    ax_cost.set_title("Simulated Annealing - Cost and Temperature")
    ax_cost.set_xlabel("Iteration")
    ax_cost.set_ylabel("Cost")
    ax_cost.grid(True, linestyle=":", alpha=0.5)

    ax_temp = ax_cost.twinx()
    ax_temp.plot(
        iterations,
        optimizer.annealing_temperature_history,
        color="#ff7f0e",
        linewidth=1.5,
        alpha=0.85,
        label="Temperature",
    )
    ax_temp.set_ylabel("Temperature")

    # Combined legend for both axes
    lines = ax_cost.get_lines() + ax_temp.get_lines()
    labels = [l.get_label() for l in lines]
    ax_cost.legend(lines, labels, loc="upper right")

    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)


def main(argv: Optional[List[str]] = None) -> None:
    """Main function with CLI support."""
    parser = argparse.ArgumentParser(
        description="Grid Assignment - Assigns houses to generators to balance load"
    )
    parser.add_argument(
        "--network", type=str, required=True, help="Path to the network file (text or .json)"
    )
    parser.add_argument(
        "--penalty-factor",
        type=float,
        help="Weight of the overload penalty in the cost (default: 10.0, or the snapshot's value)",
    )
    parser.add_argument("--iterations", type=int, help="Maximum number of annealing iterations")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible results")
    parser.add_argument("--config", type=str, help="Path to JSON file with algorithm configuration")
    parser.add_argument(
        "--no-optimization",
        action="store_true",
        help="Only evaluate and report the network as loaded",
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Hide the annealing progress bar"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory to write outputs (default: data/outputs under project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging level",
    )
    args = parser.parse_args(argv)

    # Configure logging
    numeric_level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    # Load algorithm config if provided
    config = AlgorithmConfig()
    if args.config:
        try:
            with open(_resolve_path(args.config), "r") as f:
                config_data = json.load(f)
                config = AlgorithmConfig(**config_data)
            logging.info(f"Loaded algorithm configuration from {args.config}")
        except (OSError, ValueError, TypeError) as e:
            logging.error(f"Error loading configuration file: {e}", exc_info=True)
            sys.exit(1)

    # Override with command-line values if provided
    if args.seed is not None:
        config = replace(config, RANDOM_SEED=args.seed)
    if args.iterations is not None:
        config = replace(config, ITERATIONS=args.iterations)
    if args.no_progress:
        config = replace(config, SHOW_PROGRESS=False)

    network_path = _resolve_path(args.network)
    try:
        network = load_network(network_path, penalty_factor=args.penalty_factor)
    except (OSError, ValueError) as e:
        logging.error(f"Cannot read network file {network_path}: {e}")
        sys.exit(1)
    except NetworkError as e:
        logging.error(f"Invalid network file {network_path}:\n{e}")
        sys.exit(1)

    try:
        network.validate()
    except NetworkError as e:
        if args.no_optimization:
            logging.error(str(e))
            sys.exit(1)
        logging.warning(f"{e}\nThe optimizer will build a complete assignment.")

    optimizer = None
    try:
        if args.no_optimization:
            stats: Dict[str, Any] = evaluate(network)
        else:
            optimizer = NetworkOptimizer(network, config)
            stats = optimizer.solve()
            if not stats["skipped"]:
                stats["cost"] = stats["final_cost"]
    except NetworkError as e:
        logging.error(str(e))
        sys.exit(1)

    # Save results
    output_dir = _ensure_output_dir(
        _resolve_path(args.output_dir) if args.output_dir else _default_output_dir()
    )
    results_path = os.path.join(output_dir, "assignment_results.json")
    with open(results_path, "w") as f:
        json.dump(
            {"network": snapshot_network(network).model_dump(), "stats": _to_json_compatible(stats)},
            f,
            indent=2,
        )
    logging.info(f"Saved results to {results_path}")

    md_path = os.path.join(output_dir, "assignment_results.md")
    _save_results_markdown(network, md_path, stats)
    logging.info(f"Saved Markdown report to {md_path}")

    suffix = os.path.splitext(network_path)[1] or ".txt"
    network_out_path = os.path.join(output_dir, f"optimized_network{suffix}")
    save_network(network, network_out_path)

    # Save simulated annealing cost plot if available
    if optimizer is not None and optimizer.annealing_cost_history:
        plot_path = os.path.join(output_dir, "annealing_cost.png")
        try:
            _save_annealing_plot(optimizer, plot_path)
            logging.info(f"Saved annealing cost plot to {plot_path}")
        except (OSError, ValueError) as e:
            logging.warning(f"Failed to save annealing cost plot: {e}")

    # Print results summary to logs
    logging.info("=== Grid Assignment Solution ===")
    logging.info(f"- Houses: {len(network.houses)}")
    logging.info(f"- Generators: {len(network.generators)}")
    logging.info(f"- Penalty factor: {network.penalty_factor:g}")
    if stats.get("cost") is not None:
        logging.info(f"- Cost: {stats['cost']:.4f}")
        logging.info(f"- Dispersion: {stats['dispersion']:.4f}")
        logging.info(f"- Overload penalty: {stats['overload_penalty']:.4f}")

    for name in network.generators:
        try:
            rate = utilization(network, name)
        except NetworkError:
            continue
        if rate > 1.0:
            logging.warning(f"Generator {name} is overloaded ({rate * 100:.2f}%)")


if __name__ == "__main__":
    main()
