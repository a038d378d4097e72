import matplotlib

matplotlib.use("Agg")

import pytest

from grid_assignment.network import ConsumptionClass, Network
from grid_assignment.optimizer import AlgorithmConfig


@pytest.fixture
def network() -> Network:
    return Network()


@pytest.fixture
def overloaded_network() -> Network:
    """One 10 kW generator feeding a 40 kW house."""
    net = Network()
    net.upsert_generator("G1", 10)
    net.upsert_house("M1", ConsumptionClass.HIGH)
    net.connect("M1", "G1")
    return net


@pytest.fixture
def unbalanced_network() -> Network:
    """G1 carries 20 kW, G2 carries 80 kW, both with 100 kW capacity."""
    net = Network()
    net.upsert_generator("G1", 100)
    net.upsert_generator("G2", 100)
    net.upsert_house("M1", ConsumptionClass.NORMAL)
    net.upsert_house("M2_A", ConsumptionClass.HIGH)
    net.upsert_house("M2_B", ConsumptionClass.HIGH)
    net.connect("M1", "G1")
    net.connect("M2_A", "G2")
    net.connect("M2_B", "G2")
    return net


@pytest.fixture
def town_network() -> Network:
    """Three generators, a dozen houses all piled onto the first generator."""
    net = Network()
    net.upsert_generator("G1", 120)
    net.upsert_generator("G2", 80)
    net.upsert_generator("G3", 60)
    classes = [ConsumptionClass.LOW, ConsumptionClass.NORMAL, ConsumptionClass.HIGH]
    for i in range(12):
        name = f"H{i:02d}"
        net.upsert_house(name, classes[i % 3])
        net.connect(name, "G1")
    return net


@pytest.fixture
def fast_config() -> AlgorithmConfig:
    return AlgorithmConfig(ITERATIONS=2000, COOLING_RATE=0.995, RANDOM_SEED=7, SHOW_PROGRESS=False)
