"""
Reading and writing network descriptions.

Two formats are supported:

- a line-oriented text format, one statement per line, each ending with a period:

      generator(G1,100).
      house(H1,NORMAL).
      connection(G1,H1).

  Generators must come first, then houses, then connections. Errors carry the
  1-based line number of the offending statement.

- a JSON snapshot validated with Pydantic models, which also records the
  penalty factor of the network.

Both readers rebuild the network only through `upsert_generator`, `upsert_house`
and `connect` (`assign` for snapshots, whose connections name their roles), so a
loaded network obeys the same invariants as one built by hand.
"""

from __future__ import annotations

import os
import json
import math
import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from grid_assignment.errors import ErrorKind, NetworkError
from grid_assignment.network import DEFAULT_PENALTY_FACTOR, ConsumptionClass, Network

logger = logging.getLogger(__name__)

GENERATOR_KEYWORD = "generator"
HOUSE_KEYWORD = "house"
CONNECTION_KEYWORD = "connection"

# Section order imposed on text files
_STAGES = {GENERATOR_KEYWORD: 0, HOUSE_KEYWORD: 1, CONNECTION_KEYWORD: 2}
_EXPECTED_FORMS = {
    GENERATOR_KEYWORD: "generator(name,capacity)",
    HOUSE_KEYWORD: "house(name,CLASS)",
    CONNECTION_KEYWORD: "connection(name1,name2)",
}


# Snapshot models
class GeneratorInfo(BaseModel):
    """A generator and its capacity."""

    name: str = Field(min_length=1, description="Unique name of the generator")
    capacity_kw: float = Field(ge=0, description="Maximum production capacity in kW")


class HouseInfo(BaseModel):
    """A house and its consumption class."""

    name: str = Field(min_length=1, description="Unique name of the house")
    consumption: str = Field(description="Consumption class name: LOW, NORMAL or HIGH")


class ConnectionInfo(BaseModel):
    """An active house -> generator connection."""

    house: str = Field(description="Name of the connected house")
    generator: str = Field(description="Name of the generator feeding the house")


class NetworkSnapshot(BaseModel):
    """Everything needed to rebuild an equivalent network."""

    penalty_factor: float = Field(
        default=DEFAULT_PENALTY_FACTOR, ge=0, description="Weight of the overload penalty"
    )
    generators: list[GeneratorInfo] = Field(default_factory=list, description="Generators")
    houses: list[HouseInfo] = Field(default_factory=list, description="Houses")
    connections: list[ConnectionInfo] = Field(default_factory=list, description="Connections")


def snapshot_network(network: Network) -> NetworkSnapshot:
    return NetworkSnapshot(
        penalty_factor=network.penalty_factor,
        generators=[
            GeneratorInfo(name=g.name, capacity_kw=g.capacity_kw)
            for g in network.generators.values()
        ],
        houses=[
            HouseInfo(name=h.name, consumption=h.consumption.name) for h in network.houses.values()
        ],
        connections=[
            ConnectionInfo(house=house, generator=generator)
            for house, generator in network.assignment.items()
        ],
    )


def build_network(snapshot: NetworkSnapshot) -> Network:
    """Rebuild a network from a snapshot: generators, then houses, then connections."""
    network = Network(penalty_factor=snapshot.penalty_factor)
    for g in snapshot.generators:
        network.upsert_generator(g.name, g.capacity_kw)
    for h in snapshot.houses:
        network.upsert_house(h.name, h.consumption)
    for c in snapshot.connections:
        network.assign(c.house, c.generator)
    return network


def read_network_json(path: str) -> Network:
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()
    try:
        snapshot = NetworkSnapshot.model_validate_json(raw)
    except ValidationError as e:
        raise NetworkError(
            ErrorKind.SYNTAX, f"Invalid network snapshot in {path}: {e.error_count()} error(s)\n{e}"
        ) from e
    network = build_network(snapshot)
    logger.info(
        "Loaded network snapshot from %s (%d generators, %d houses, %d connections)",
        path,
        len(network.generators),
        len(network.houses),
        len(network.assignment),
    )
    return network


def write_network_json(network: Network, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot_network(network).model_dump(), f, indent=2)
    logger.info("Network snapshot saved to %s", path)


# Text format
def _syntax(details: str, line: int) -> NetworkError:
    return NetworkError(ErrorKind.SYNTAX, details, line=line)


def _extract_arguments(statement: str, keyword: str, line: int) -> List[str]:
    """Split the comma separated arguments found between the parentheses."""
    open_idx = statement.find("(")
    close_idx = statement.rfind(")")
    if open_idx == -1 or close_idx == -1 or close_idx < open_idx or close_idx != len(statement) - 1:
        raise _syntax(f"Missing or misplaced parentheses for '{keyword}'", line)

    content = statement[open_idx + 1 : close_idx]
    if not content.strip():
        return []
    return [arg.strip() for arg in content.split(",")]


def _parse_capacity(text: str, name: str, line: int) -> float:
    try:
        capacity = float(text)
    except ValueError:
        capacity = math.nan
    if not math.isfinite(capacity) or capacity < 0:
        raise NetworkError(
            ErrorKind.INVALID_DATA,
            f"Capacity of generator '{name}' must be a non-negative number, got '{text}'",
            names=(name,),
            line=line,
        )
    return capacity


def _apply_statement(network: Network, keyword: str, args: List[str], line: int) -> None:
    if len(args) != 2:
        raise _syntax(
            f"Malformed {keyword} statement. Expected: {_EXPECTED_FORMS[keyword]}", line
        )
    first, second = args

    if keyword == GENERATOR_KEYWORD:
        network.upsert_generator(first, _parse_capacity(second, first, line))
    elif keyword == HOUSE_KEYWORD:
        network.upsert_house(first, ConsumptionClass.parse(second))
    else:
        # Check both names up front so the error names the unknown element
        for name in (first, second):
            if name not in network.houses and name not in network.generators:
                raise NetworkError(
                    ErrorKind.NOT_FOUND, f"Element '{name}' not found", names=(name,), line=line
                )
        network.connect(first, second)


def parse_network_text(
    lines: Iterable[str], penalty_factor: float = DEFAULT_PENALTY_FACTOR
) -> Network:
    """Build a network from the lines of a text description."""
    network = Network(penalty_factor=penalty_factor)
    stage = _STAGES[GENERATOR_KEYWORD]

    for line_no, raw in enumerate(lines, start=1):
        statement = raw.strip()
        if not statement:
            continue
        if not statement.endswith("."):
            raise _syntax("The line must end with a period '.'", line_no)
        statement = statement[:-1].strip()

        keyword = statement.split("(", 1)[0].strip()
        if keyword not in _STAGES:
            raise _syntax(f"Unknown keyword '{keyword}'", line_no)

        if _STAGES[keyword] < stage:
            reason = (
                "Generators must be defined at the beginning of the file"
                if keyword == GENERATOR_KEYWORD
                else "Houses must be defined before connections"
            )
            raise NetworkError(
                ErrorKind.ORDERING,
                f"Invalid definition order for '{keyword}'. {reason}",
                line=line_no,
            )
        stage = _STAGES[keyword]

        try:
            args = _extract_arguments(statement, keyword, line_no)
            _apply_statement(network, keyword, args, line_no)
        except NetworkError as e:
            if e.line is None:
                e.line = line_no
            raise

    return network


def read_network_text(path: str, penalty_factor: float = DEFAULT_PENALTY_FACTOR) -> Network:
    with open(path, "r", encoding="utf-8") as f:
        network = parse_network_text(f, penalty_factor=penalty_factor)
    logger.info(
        "Loaded network from %s (%d generators, %d houses, %d connections)",
        path,
        len(network.generators),
        len(network.houses),
        len(network.assignment),
    )
    return network


def _format_capacity(capacity_kw: float) -> str:
    if float(capacity_kw).is_integer():
        return str(int(capacity_kw))
    return repr(float(capacity_kw))


def _check_writable(name: str) -> str:
    if "," in name or name != name.strip():
        raise NetworkError.invalid_data(
            f"Name '{name}' cannot be written to a text network file", name
        )
    return name


def format_network_text(network: Network) -> List[str]:
    """Render the network as text statements, generators first, then houses, then connections."""
    lines: List[str] = []
    for g in network.generators.values():
        lines.append(
            f"{GENERATOR_KEYWORD}({_check_writable(g.name)},{_format_capacity(g.capacity_kw)})."
        )
    for h in network.houses.values():
        lines.append(f"{HOUSE_KEYWORD}({_check_writable(h.name)},{h.consumption.name}).")
    for house, generator in network.assignment.items():
        if house != generator and generator in network.houses and house in network.generators:
            raise NetworkError.invalid_data(
                f"Connection of house '{house}' to generator '{generator}' would read back"
                " the other way round, save the network as JSON instead",
                house,
                generator,
            )
        lines.append(f"{CONNECTION_KEYWORD}({generator},{house}).")
    return lines


def write_network_text(network: Network, path: str) -> None:
    lines = format_network_text(network)
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    logger.info("Network saved to %s", path)


def _is_json(path: str) -> bool:
    return os.path.splitext(path)[1].lower() == ".json"


def load_network(path: str, penalty_factor: Optional[float] = None) -> Network:
    """
    Load a network from a text or JSON file, chosen by the file suffix.

    `penalty_factor`, when given, overrides the value stored in a snapshot
    (text files do not store one).
    """
    if _is_json(path):
        network = read_network_json(path)
        if penalty_factor is not None:
            network.penalty_factor = penalty_factor
        return network
    return read_network_text(
        path, penalty_factor=DEFAULT_PENALTY_FACTOR if penalty_factor is None else penalty_factor
    )


def save_network(network: Network, path: str) -> None:
    if _is_json(path):
        write_network_json(network, path)
    else:
        write_network_text(network, path)
