"""
Electrical network model: houses, generators, and the house -> generator
assignment table.

Every mutation of the assignment goes through a `Network` method so that the
table only ever references known houses and known generators. A house name is
a key at most once, which is what limits a house to a single generator.
"""

from typing import Dict, List, Optional, Tuple, Union, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
import logging
import math

from grid_assignment.errors import ErrorKind, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_PENALTY_FACTOR: float = 10.0


class ConsumptionClass(Enum):
    LOW = 10
    NORMAL = 20
    HIGH = 40

    @property
    def demand_kw(self) -> int:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "ConsumptionClass":
        """Look up a class by name, case-insensitively."""
        key = text.strip().upper() if isinstance(text, str) else ""
        try:
            return cls[key]
        except KeyError:
            expected = ", ".join(c.name for c in cls)
            raise NetworkError.invalid_data(
                f"Unknown consumption class '{text}'. Use {expected}", str(text)
            ) from None


@dataclass
class Generator:
    name: str
    capacity_kw: float

    def __repr__(self):
        return f"Generator({self.name}, capacity={self.capacity_kw:g} kW)"


@dataclass
class House:
    name: str
    consumption: ConsumptionClass

    def __repr__(self):
        return f"House({self.name}, {self.consumption.name}={self.demand_kw} kW)"

    @property
    def demand_kw(self) -> int:
        return self.consumption.demand_kw


def _check_name(name: str, element: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise NetworkError.invalid_data(f"The {element} name cannot be empty")


def _check_capacity(name: str, capacity_kw: float) -> float:
    if isinstance(capacity_kw, bool) or not isinstance(capacity_kw, (int, float)):
        raise NetworkError.invalid_data(
            f"Capacity of generator '{name}' must be a number, got {capacity_kw!r}", name
        )
    if not math.isfinite(capacity_kw) or capacity_kw < 0:
        raise NetworkError.invalid_data(
            f"Capacity of generator '{name}' must be finite and non-negative ({capacity_kw})", name
        )
    return float(capacity_kw)


class Network:
    """
    Houses, generators and the assignment relation between them.

    `houses`, `generators` and `assignment` are exposed as read-only views;
    the assignment maps house names to generator names.
    """

    def __init__(self, penalty_factor: float = DEFAULT_PENALTY_FACTOR):
        self._houses: Dict[str, House] = {}
        self._generators: Dict[str, Generator] = {}
        self._assignment: Dict[str, str] = {}
        self.penalty_factor = penalty_factor

    def __repr__(self):
        return (
            f"Network(houses={len(self._houses)}, generators={len(self._generators)}, "
            f"connections={len(self._assignment)}, penalty_factor={self._penalty_factor})"
        )

    @property
    def houses(self) -> Mapping[str, House]:
        return MappingProxyType(self._houses)

    @property
    def generators(self) -> Mapping[str, Generator]:
        return MappingProxyType(self._generators)

    @property
    def assignment(self) -> Mapping[str, str]:
        return MappingProxyType(self._assignment)

    @property
    def penalty_factor(self) -> float:
        return self._penalty_factor

    @penalty_factor.setter
    def penalty_factor(self, value: float) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            raise NetworkError.invalid_data(f"Penalty factor must be a number, got {value!r}")
        if value < 0:
            raise NetworkError.invalid_data(f"Penalty factor cannot be negative ({value})")
        self._penalty_factor = float(value)

    # ------------------------------------------------------------------
    # Houses and generators
    # ------------------------------------------------------------------
    def upsert_generator(self, name: str, capacity_kw: float) -> bool:
        """
        Create a generator, or update the capacity of an existing one in place.

        Returns True when the generator was created. Assignment entries that
        reference an updated generator keep referencing it.
        """
        _check_name(name, "generator")
        capacity = _check_capacity(name, capacity_kw)

        existing = self._generators.get(name)
        if existing is not None:
            logger.debug(
                "Generator %s capacity updated from %g kW to %g kW",
                name,
                existing.capacity_kw,
                capacity,
            )
            existing.capacity_kw = capacity
            return False

        self._generators[name] = Generator(name=name, capacity_kw=capacity)
        logger.debug("Generator %s created with %g kW", name, capacity)
        return True

    def upsert_house(self, name: str, consumption: Union[ConsumptionClass, str]) -> bool:
        """Create a house, or update the consumption class of an existing one."""
        _check_name(name, "house")
        if not isinstance(consumption, ConsumptionClass):
            consumption = ConsumptionClass.parse(consumption)

        existing = self._houses.get(name)
        if existing is not None:
            existing.consumption = consumption
            logger.debug("House %s consumption updated to %s", name, consumption.name)
            return False

        self._houses[name] = House(name=name, consumption=consumption)
        logger.debug("House %s created (%s)", name, consumption.name)
        return True

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------
    def _candidate_pairs(self, name_a: str, name_b: str) -> List[Tuple[str, str]]:
        pairs = []
        if name_a in self._houses and name_b in self._generators:
            pairs.append((name_a, name_b))
        if name_b in self._houses and name_a in self._generators and name_a != name_b:
            pairs.append((name_b, name_a))
        return pairs

    def _find_pair(self, name_a: str, name_b: str) -> Optional[Tuple[str, str]]:
        pairs = self._candidate_pairs(name_a, name_b)
        return pairs[0] if len(pairs) == 1 else None

    def _resolve(self, name_a: str, name_b: str) -> Tuple[str, str]:
        """Return (house, generator) names for an unordered pair, or raise NOT_FOUND."""
        pairs = self._candidate_pairs(name_a, name_b)
        if len(pairs) == 1:
            return pairs[0]
        if pairs:
            # Both names are a house and a generator: either reading is possible
            raise NetworkError(
                ErrorKind.NOT_FOUND,
                f"Cannot tell which of '{name_a}' and '{name_b}' is the house",
                names=(name_a, name_b),
            )

        # One side resolved: report the other one as the missing element
        if name_a in self._houses:
            raise NetworkError.not_found("generator", name_b)
        if name_a in self._generators:
            raise NetworkError.not_found("house", name_b)
        if name_b in self._houses:
            raise NetworkError.not_found("generator", name_a)
        if name_b in self._generators:
            raise NetworkError.not_found("house", name_a)
        raise NetworkError(
            ErrorKind.NOT_FOUND,
            f"Element '{name_a}' or '{name_b}' not found",
            names=(name_a, name_b),
        )

    def connect(self, name_a: str, name_b: str) -> bool:
        """
        Connect a house to a generator, in either argument order.

        Overwrites any previous generator of the house. Returns True when the
        house had no generator before.
        """
        house, generator = self._resolve(name_a, name_b)
        previous = self._assignment.get(house)
        self._assignment[house] = generator
        if previous is not None and previous != generator:
            logger.debug("House %s moved from %s to %s", house, previous, generator)
        return previous is None

    def assign(self, house_name: str, generator_name: str) -> None:
        """Connect a house to a generator, with roles given explicitly."""
        if house_name not in self._houses:
            raise NetworkError.not_found("house", house_name)
        if generator_name not in self._generators:
            raise NetworkError.not_found("generator", generator_name)
        self._assignment[house_name] = generator_name

    def disconnect(self, name_a: str, name_b: str) -> None:
        house, generator = self._resolve(name_a, name_b)
        if self._assignment.get(house) != generator:
            raise NetworkError.logic(
                f"No connection between house '{house}' and generator '{generator}'",
                house,
                generator,
            )
        del self._assignment[house]

    def connection_exists(self, name_a: str, name_b: str) -> bool:
        if name_a is None or name_b is None:
            return False
        pair = self._find_pair(name_a, name_b)
        if pair is None:
            return False
        house, generator = pair
        return self._assignment.get(house) == generator

    def generator_of(self, house_name: str) -> Optional[str]:
        if house_name not in self._houses:
            raise NetworkError.not_found("house", house_name)
        return self._assignment.get(house_name)

    def houses_of(self, generator_name: str) -> List[str]:
        if generator_name not in self._generators:
            raise NetworkError.not_found("generator", generator_name)
        return [h for h, g in self._assignment.items() if g == generator_name]

    def unassign(self, house_name: str) -> None:
        """Drop the connection of a house, if it has one."""
        if house_name not in self._houses:
            raise NetworkError.not_found("house", house_name)
        self._assignment.pop(house_name, None)

    def clear_assignment(self) -> None:
        self._assignment.clear()

    def snapshot_assignment(self) -> Dict[str, str]:
        return dict(self._assignment)

    def restore_assignment(self, snapshot: Mapping[str, str]) -> None:
        """Replace the whole assignment table; every name must be known."""
        for house, generator in snapshot.items():
            if house not in self._houses:
                raise NetworkError.not_found("house", house)
            if generator not in self._generators:
                raise NetworkError.not_found("generator", generator)
        self._assignment = dict(snapshot)

    # ------------------------------------------------------------------
    # Structural checks
    # ------------------------------------------------------------------
    def validate(self) -> None:
        """
        Check that the network has houses, generators, and that every house
        has a connection. All problems are reported in one LOGIC error.
        """
        violations: List[str] = []
        if not self._houses:
            violations.append("The network must contain at least one house")
        if not self._generators:
            violations.append("The network must contain at least one generator")
        unconnected = [name for name in self._houses if name not in self._assignment]
        for name in unconnected:
            violations.append(f"House {name} has no connection")

        if violations:
            raise NetworkError.logic("The network is invalid", *unconnected, violations=violations)
