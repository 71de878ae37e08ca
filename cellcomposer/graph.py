"""
Composition graph: node instances of component templates joined by edges.

Graph records are plain data. The composition stages read them and never
mutate them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional, Union

from cellcomposer.types import PortKind


@dataclass(frozen=True)
class PortLabel:
    """
    A named port on a node instance.

    Two instances connect through a port when both carry a label with the
    same name. The port's variables are names of public variables of the
    instance's component, matched position by position with the other side.

    Attributes:
        label: Name shared by the ports that connect
        kind: Entrance, exit or general
        variables: Variable names in the instance's component
        aggregating: Combine every incoming contribution through a sum
    """

    label: str
    kind: PortKind
    variables: tuple[str, ...]
    aggregating: bool = False

    def __init__(
        self,
        label: str,
        kind: Union[PortKind, str],
        variables: Sequence[str],
        aggregating: bool = False,
    ):
        if not variables:
            raise ValueError(f"Port '{label}' must name at least one variable")
        object.__setattr__(self, "label", label)
        object.__setattr__(self, "kind", PortKind.parse(kind))
        object.__setattr__(self, "variables", tuple(variables))
        object.__setattr__(self, "aggregating", aggregating)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PortLabel:
        """
        Build a port from an editor record.

        Example:
            >>> PortLabel.from_mapping(
            ...     {"label": "flow", "portType": "exit_ports", "option": ["q"], "isMultiPortSum": False}
            ... )
        """
        option = data.get("variables", data.get("option", ()))
        if isinstance(option, str):
            option = [option]
        return cls(
            label=data["label"],
            kind=data.get("kind", data.get("portType", PortKind.GENERAL)),
            variables=list(option),
            aggregating=bool(data.get("aggregating", data.get("isMultiPortSum", False))),
        )


@dataclass(frozen=True)
class NodeInstance:
    """One placement of a component template in the graph."""

    id: str
    name: str  # Component name in the composed model
    source_file: str  # Template document
    component: str  # Template component inside the document
    ports: tuple[PortLabel, ...] = ()

    def __init__(
        self,
        id: str,
        name: str,
        source_file: str,
        component: str,
        ports: Sequence[PortLabel] = (),
    ):
        object.__setattr__(self, "id", id)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "source_file", source_file)
        object.__setattr__(self, "component", component)
        object.__setattr__(self, "ports", tuple(ports))

    def port(self, label: str) -> Optional[PortLabel]:
        """Get the port carrying a label."""
        return next((p for p in self.ports if p.label == label), None)


@dataclass(frozen=True)
class EdgeInstance:
    """A connection from one node instance to another."""

    source: str
    target: str
    id: str = ""


@dataclass
class CompositionGraph:
    """Node instances and the edges between them."""

    nodes: list[NodeInstance] = field(default_factory=list)
    edges: list[EdgeInstance] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[NodeInstance]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def names(self) -> set[str]:
        return {n.name for n in self.nodes}

    def check(self) -> list[str]:
        """
        Structural problems of the graph itself.

        Returns:
            Messages for duplicate node ids, duplicate instance names and
            edges whose endpoints are not in the graph
        """
        problems = []
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for node in self.nodes:
            if node.id in seen_ids:
                problems.append(f"Duplicate node id '{node.id}'")
            if node.name in seen_names:
                problems.append(f"Duplicate instance name '{node.name}'")
            seen_ids.add(node.id)
            seen_names.add(node.name)

        for edge in self.edges:
            for end in (edge.source, edge.target):
                if end not in seen_ids:
                    problems.append(f"Edge '{edge.id or edge.source + '->' + edge.target}' references unknown node '{end}'")
        return problems

    def neighbours(self, node_id: str) -> tuple[list[str], list[str]]:
        """
        Names of the instances feeding into and fed by a node.

        Returns:
            (inputs, outputs), each in edge order
        """
        inputs: list[str] = []
        outputs: list[str] = []
        for edge in self.edges:
            if edge.target == node_id:
                other = self.node(edge.source)
                if other is not None:
                    inputs.append(other.name)
            if edge.source == node_id:
                other = self.node(edge.target)
                if other is not None:
                    outputs.append(other.name)
        return inputs, outputs


def unique_instance_name(base: str, existing: Iterable[str]) -> str:
    """
    Make an instance name unique among existing names.

    Example:
        >>> unique_instance_name("pump", {"pump", "pump_1"})
        'pump_2'
    """
    taken = set(existing)
    name = base
    counter = 1
    while name in taken:
        name = f"{base}_{counter}"
        counter += 1
    return name
