"""
Tests for the composition graph records.
"""

import pytest

from cellcomposer import CompositionGraph, EdgeInstance, NodeInstance, PortKind, PortLabel, unique_instance_name
from cellcomposer.types import PortMismatch, port_mismatch


class TestPortKind:
    def test_parse_editor_names(self) -> None:
        """Both the short and the plural editor spelling are accepted."""
        assert PortKind.parse("exit") is PortKind.EXIT
        assert PortKind.parse("entrance_ports") is PortKind.ENTRANCE
        assert PortKind.parse(PortKind.GENERAL) is PortKind.GENERAL

    def test_parse_unknown(self) -> None:
        with pytest.raises(ValueError):
            PortKind.parse("sideways")

    @pytest.mark.parametrize(
        "source, target, expected",
        [
            (PortKind.EXIT, PortKind.ENTRANCE, None),
            (PortKind.ENTRANCE, PortKind.EXIT, None),
            (PortKind.GENERAL, PortKind.GENERAL, None),
            (PortKind.EXIT, PortKind.EXIT, PortMismatch.SHARED_EXIT_PORTS),
            (PortKind.ENTRANCE, PortKind.ENTRANCE, PortMismatch.SHARED_ENTRANCE_PORTS),
            (PortKind.GENERAL, PortKind.EXIT, PortMismatch.EXIT_CONNECTED_TO_GENERAL),
            (PortKind.ENTRANCE, PortKind.GENERAL, PortMismatch.ENTRANCE_CONNECTED_TO_GENERAL),
        ],
    )
    def test_port_mismatch(self, source, target, expected) -> None:
        assert port_mismatch(source, target) is expected


class TestPortLabel:
    def test_variables_become_tuple(self) -> None:
        port = PortLabel("flow", "exit", ["q"])
        assert port.variables == ("q",)
        assert port.kind is PortKind.EXIT
        assert not port.aggregating

    def test_empty_variables_rejected(self) -> None:
        with pytest.raises(ValueError):
            PortLabel("flow", "exit", [])

    def test_from_editor_mapping(self) -> None:
        port = PortLabel.from_mapping(
            {"label": "flow", "portType": "entrance_ports", "option": "q_in", "isMultiPortSum": True}
        )
        assert port == PortLabel("flow", PortKind.ENTRANCE, ["q_in"], aggregating=True)


class TestCompositionGraph:
    def test_port_lookup(self, pump_node) -> None:
        node = pump_node("p1")
        assert node.port("flow").variables == ("q_out",)
        assert node.port("pressure") is None

    def test_check_reports_duplicates_and_dangling_edges(self, pump_node, tank_node) -> None:
        graph = CompositionGraph(
            nodes=[pump_node("p1", "a"), tank_node("t1", "a")],
            edges=[EdgeInstance("p1", "missing")],
        )
        problems = graph.check()
        assert any("Duplicate instance name 'a'" in p for p in problems)
        assert any("unknown node 'missing'" in p for p in problems)

    def test_clean_graph(self, pump_to_tank) -> None:
        assert pump_to_tank.check() == []

    def test_neighbours(self, three_pumps_to_tank) -> None:
        inputs, outputs = three_pumps_to_tank.neighbours("t1")
        assert inputs == ["pump_1", "pump_2", "pump_3"]
        assert outputs == []
        assert three_pumps_to_tank.neighbours("p2") == ([], ["tank"])


def test_unique_instance_name():
    """Names get the first free numeric suffix."""
    assert unique_instance_name("pump", set()) == "pump"
    assert unique_instance_name("pump", {"pump"}) == "pump_1"
    assert unique_instance_name("pump", {"pump", "pump_1"}) == "pump_2"


def test_nodes_are_immutable(pump_node):
    node = pump_node("p1")
    with pytest.raises(AttributeError):
        node.name = "other"
