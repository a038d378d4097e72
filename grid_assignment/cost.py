"""
Cost model of a house -> generator assignment.

    cost = dispersion + penalty_factor * overload_penalty

where dispersion is the sum of absolute deviations of generator utilizations
from their mean, and overload_penalty is the summed utilization above 100%.
A generator with zero capacity has no defined utilization and makes every
aggregate raise a LOGIC error.
"""

from typing import Dict, Union

from grid_assignment.errors import NetworkError
from grid_assignment.network import Generator, Network


def _generator(network: Network, generator: Union[Generator, str]) -> Generator:
    name = generator.name if isinstance(generator, Generator) else generator
    try:
        return network.generators[name]
    except KeyError:
        raise NetworkError.not_found("generator", name) from None


def load(network: Network, generator: Union[Generator, str]) -> float:
    """Total demand (kW) of the houses connected to a generator."""
    name = _generator(network, generator).name
    houses = network.houses
    return float(
        sum(houses[h].demand_kw for h, g in network.assignment.items() if g == name)
    )


def utilization(network: Network, generator: Union[Generator, str]) -> float:
    """Load divided by capacity (1.0 is exactly 100%)."""
    gen = _generator(network, generator)
    if gen.capacity_kw == 0:
        raise NetworkError.logic(
            f"Generator {gen.name} has a capacity of 0 kW, utilization is undefined", gen.name
        )
    return load(network, gen) / gen.capacity_kw


def utilizations(network: Network) -> Dict[str, float]:
    # Single pass over the assignment instead of one scan per generator
    loads = {name: 0.0 for name in network.generators}
    houses = network.houses
    for house, gen in network.assignment.items():
        loads[gen] += houses[house].demand_kw

    rates: Dict[str, float] = {}
    for name, gen in network.generators.items():
        if gen.capacity_kw == 0:
            raise NetworkError.logic(
                f"Generator {name} has a capacity of 0 kW, utilization is undefined", name
            )
        rates[name] = loads[name] / gen.capacity_kw
    return rates


def _dispersion(rates) -> float:
    if not rates:
        return 0.0
    mean = sum(rates) / len(rates)
    return sum(abs(u - mean) for u in rates)


def _overload(rates) -> float:
    return sum(max(u - 1.0, 0.0) for u in rates)


def dispersion(network: Network) -> float:
    return _dispersion(list(utilizations(network).values()))


def overload_penalty(network: Network) -> float:
    return _overload(list(utilizations(network).values()))


def cost(network: Network) -> float:
    """Objective minimized by the optimizer."""
    rates = list(utilizations(network).values())
    return _dispersion(rates) + network.penalty_factor * _overload(rates)
