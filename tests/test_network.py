"""Tests for grid_assignment.network."""

import math

import pytest

from grid_assignment.errors import ErrorKind, NetworkError
from grid_assignment.network import DEFAULT_PENALTY_FACTOR, ConsumptionClass, Network


class TestConsumptionClass:
    def test_demands(self) -> None:
        assert ConsumptionClass.LOW.demand_kw == 10
        assert ConsumptionClass.NORMAL.demand_kw == 20
        assert ConsumptionClass.HIGH.demand_kw == 40

    def test_parse_is_case_insensitive(self) -> None:
        assert ConsumptionClass.parse("high") is ConsumptionClass.HIGH
        assert ConsumptionClass.parse(" Normal ") is ConsumptionClass.NORMAL

    def test_parse_unknown_class_is_invalid_data(self) -> None:
        with pytest.raises(NetworkError) as exc_info:
            ConsumptionClass.parse("GIGANTIC")
        assert exc_info.value.kind is ErrorKind.INVALID_DATA
        assert "GIGANTIC" in str(exc_info.value)


class TestUpsertGenerator:
    def test_create(self, network: Network) -> None:
        assert network.upsert_generator("G1", 100) is True
        assert network.generators["G1"].capacity_kw == 100

    def test_update_keeps_same_object(self, network: Network) -> None:
        network.upsert_generator("G1", 100)
        network.upsert_house("M1", ConsumptionClass.NORMAL)
        network.connect("M1", "G1")
        original = network.generators["G1"]

        assert network.upsert_generator("G1", 150) is False
        assert network.generators["G1"] is original
        assert original.capacity_kw == 150
        assert network.connection_exists("M1", "G1")

    def test_idempotent(self, network: Network) -> None:
        network.upsert_generator("G1", 75)
        once = (dict(network.generators), network.generators["G1"].capacity_kw)
        network.upsert_generator("G1", 75)
        assert (dict(network.generators), network.generators["G1"].capacity_kw) == once
        assert len(network.generators) == 1

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name_is_invalid_data(self, network: Network, name) -> None:
        with pytest.raises(NetworkError) as exc_info:
            network.upsert_generator(name, 100)
        assert exc_info.value.kind is ErrorKind.INVALID_DATA

    @pytest.mark.parametrize("capacity", [-1, -0.5, float("nan"), math.inf, "100", True])
    def test_bad_capacity_is_invalid_data(self, network: Network, capacity) -> None:
        with pytest.raises(NetworkError) as exc_info:
            network.upsert_generator("G1", capacity)
        assert exc_info.value.kind is ErrorKind.INVALID_DATA
        assert "G1" not in network.generators

    def test_zero_capacity_is_allowed(self, network: Network) -> None:
        network.upsert_generator("G0", 0)
        assert network.generators["G0"].capacity_kw == 0


class TestUpsertHouse:
    def test_create_and_update(self, network: Network) -> None:
        assert network.upsert_house("M1", ConsumptionClass.NORMAL) is True
        assert network.houses["M1"].demand_kw == 20
        assert network.upsert_house("M1", "high") is False
        assert network.houses["M1"].consumption is ConsumptionClass.HIGH

    def test_empty_name_is_invalid_data(self, network: Network) -> None:
        with pytest.raises(NetworkError) as exc_info:
            network.upsert_house("", ConsumptionClass.LOW)
        assert exc_info.value.kind is ErrorKind.INVALID_DATA


class TestConnections:
    @pytest.fixture
    def net(self, network: Network) -> Network:
        network.upsert_generator("G1", 100)
        network.upsert_generator("G2", 100)
        network.upsert_house("M1", ConsumptionClass.NORMAL)
        return network

    def test_connect_is_order_insensitive(self, net: Network) -> None:
        assert net.connect("G1", "M1") is True
        assert net.assignment == {"M1": "G1"}
        assert net.connection_exists("M1", "G1")
        assert net.connection_exists("G1", "M1")

    def test_reconnect_overwrites(self, net: Network) -> None:
        net.connect("M1", "G1")
        assert net.connect("M1", "G2") is False
        assert net.connection_exists("M1", "G2")
        assert not net.connection_exists("M1", "G1")
        assert len(net.assignment) == 1

    @pytest.mark.parametrize(
        "pair, missing",
        [
            (("M1", "G9"), "Generator 'G9'"),
            (("G9", "M1"), "Generator 'G9'"),
            (("G1", "M9"), "House 'M9'"),
            (("M9", "G1"), "House 'M9'"),
            (("M1", "M1"), "Generator 'M1'"),
        ],
    )
    def test_connect_names_missing_side(self, net: Network, pair, missing) -> None:
        with pytest.raises(NetworkError) as exc_info:
            net.connect(*pair)
        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert missing in str(exc_info.value)

    def test_connect_both_unknown(self, net: Network) -> None:
        with pytest.raises(NetworkError) as exc_info:
            net.connect("M_ghost", "G_ghost")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert exc_info.value.names == ("M_ghost", "G_ghost")

    def test_names_used_by_both_kinds_are_ambiguous(self, net: Network) -> None:
        net.upsert_generator("M1", 10)
        net.upsert_house("G1", ConsumptionClass.LOW)
        with pytest.raises(NetworkError) as exc_info:
            net.connect("M1", "G1")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert exc_info.value.names == ("M1", "G1")
        assert net.assignment == {}
        assert net.connection_exists("M1", "G1") is False

    def test_one_shared_name_still_resolves(self, net: Network) -> None:
        net.upsert_house("G1", ConsumptionClass.HIGH)
        net.upsert_generator("M1", 10)
        # M1 and G1 are each both kinds, G2 is only a generator
        assert net.connect("G2", "G1") is True
        assert net.assignment == {"G1": "G2"}

    def test_house_and_generator_with_the_same_name(self, net: Network) -> None:
        net.upsert_generator("M1", 50)
        net.connect("M1", "M1")
        assert net.assignment == {"M1": "M1"}
        assert net.connection_exists("M1", "M1")

    def test_assign_uses_explicit_roles(self, net: Network) -> None:
        net.upsert_generator("M1", 10)
        net.upsert_house("G1", ConsumptionClass.LOW)
        net.assign("G1", "M1")
        assert net.assignment == {"G1": "M1"}
        with pytest.raises(NetworkError) as exc_info:
            net.assign("G2", "M1")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert exc_info.value.names == ("G2",)

    def test_disconnect(self, net: Network) -> None:
        net.connect("M1", "G1")
        net.disconnect("G1", "M1")
        assert not net.connection_exists("M1", "G1")
        assert "M1" not in net.assignment

    def test_disconnect_inactive_connection_is_logic(self, net: Network) -> None:
        net.connect("M1", "G2")
        with pytest.raises(NetworkError) as exc_info:
            net.disconnect("M1", "G1")
        assert exc_info.value.kind is ErrorKind.LOGIC
        assert net.connection_exists("M1", "G2")

    def test_disconnect_unknown_is_not_found(self, net: Network) -> None:
        with pytest.raises(NetworkError) as exc_info:
            net.disconnect("M1", "G9")
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    def test_connection_exists_never_raises(self, net: Network) -> None:
        assert net.connection_exists("nope", "G1") is False
        assert net.connection_exists(None, "G1") is False
        assert net.connection_exists("M1", "G1") is False

    def test_assignment_view_is_read_only(self, net: Network) -> None:
        net.connect("M1", "G1")
        with pytest.raises(TypeError):
            net.assignment["M1"] = "G2"

    def test_restore_assignment_rejects_unknown_names(self, net: Network) -> None:
        net.connect("M1", "G1")
        with pytest.raises(NetworkError) as exc_info:
            net.restore_assignment({"M1": "G9"})
        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert net.assignment == {"M1": "G1"}

    def test_houses_of(self, net: Network) -> None:
        net.upsert_house("M2", ConsumptionClass.LOW)
        net.connect("M1", "G1")
        net.connect("M2", "G1")
        assert net.houses_of("G1") == ["M1", "M2"]
        assert net.houses_of("G2") == []


class TestValidate:
    def test_valid_network(self, overloaded_network: Network) -> None:
        overloaded_network.validate()

    def test_empty_network_reports_both_sides(self, network: Network) -> None:
        with pytest.raises(NetworkError) as exc_info:
            network.validate()
        err = exc_info.value
        assert err.kind is ErrorKind.LOGIC
        assert len(err.violations) == 2

    def test_unconnected_houses_are_listed(self, network: Network) -> None:
        network.upsert_generator("G1", 100)
        network.upsert_house("M1", ConsumptionClass.NORMAL)
        network.upsert_house("M2", ConsumptionClass.LOW)

        with pytest.raises(NetworkError) as exc_info:
            network.validate()
        err = exc_info.value
        assert err.kind is ErrorKind.LOGIC
        assert err.violations == ["House M1 has no connection", "House M2 has no connection"]
        assert str(err).count("no connection") == 2

    def test_overload_is_not_a_structural_error(self, overloaded_network: Network) -> None:
        overloaded_network.upsert_generator("G1", 1)
        overloaded_network.validate()


class TestPenaltyFactor:
    def test_default(self, network: Network) -> None:
        assert network.penalty_factor == DEFAULT_PENALTY_FACTOR == 10.0

    def test_set(self, network: Network) -> None:
        network.penalty_factor = 50
        assert network.penalty_factor == 50.0

    def test_negative_is_invalid_data(self, network: Network) -> None:
        with pytest.raises(NetworkError) as exc_info:
            network.penalty_factor = -1
        assert exc_info.value.kind is ErrorKind.INVALID_DATA
