"""
Equivalence wiring between node instances.

Edges are checked as a whole before anything is written to the model: a run
that fails here leaves no equivalences and no synthesized components behind.

Aggregating ports collect every contribution that reaches them, over all
edges, and are materialized once as a summation component::

    pump_1.q ─┐
    pump_2.q ─┼─> tank_inflow_sum: q = q_pump_1 + q_pump_2 + q_pump_3 ─> tank.q
    pump_3.q ─┘
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from collections.abc import Mapping
from typing import Optional

from libcellml import Component, Model, Variable

from cellcomposer.diagnostics import Category, Diagnostics, Stage
from cellcomposer.graph import CompositionGraph, EdgeInstance, NodeInstance, PortLabel, unique_instance_name
from cellcomposer.io.cellml import component_names, connect, sanitize_identifier, sum_equation, units_name
from cellcomposer.logging import logdata
from cellcomposer.types import port_mismatch

logger = logging.getLogger(__name__)


@dataclass
class Aggregation:
    """Contributions collected for one aggregating (instance, label) pair."""

    instance: NodeInstance
    label: str
    variable: str  # The aggregating port's single variable
    contributions: list[tuple[NodeInstance, str]] = field(default_factory=list)


@dataclass
class WiringReport:
    """What the wiring stage added to the model."""

    equivalences: int = 0
    aggregation_components: list[str] = field(default_factory=list)


class WiringEngine:
    """
    Turns graph edges into variable equivalences.

    Args:
        graph: The composition graph
        components: Node id to the instantiated component of that node
        model: The output model, receiving synthesized components
        diagnostics: Where topological and structural errors are reported
    """

    def __init__(
        self,
        graph: CompositionGraph,
        components: Mapping[str, Component],
        model: Model,
        diagnostics: Diagnostics,
    ):
        self.graph = graph
        self.components = dict(components)
        self.model = model
        self.diagnostics = diagnostics
        self._direct: list[tuple[Variable, Variable]] = []
        self._aggregations: dict[tuple[str, str], Aggregation] = {}

    def _error(self, category: Category, message: str, **details) -> None:
        logger.error("%s", message, **logdata(**details))
        self.diagnostics.add_error(Stage.WIRE, category, message, **details)

    def _variable(self, node: NodeInstance, name: str, label: str) -> Optional[Variable]:
        component = self.components.get(node.id)
        variable = component.variable(name) if component is not None else None
        if variable is None:
            self._error(
                Category.STRUCTURAL,
                f"Port '{label}' of '{node.name}' names variable '{name}' "
                f"which component '{node.component}' does not have",
                instance=node.name,
                label=label,
                variable=name,
            )
        return variable

    def _plan_edge(self, edge: EdgeInstance) -> None:
        source = self.graph.node(edge.source)
        target = self.graph.node(edge.target)
        if source is None or target is None:
            missing = edge.source if source is None else edge.target
            self._error(Category.STRUCTURAL, f"Edge references unknown instance '{missing}'", node=missing)
            return

        for source_port in source.ports:
            target_port = target.port(source_port.label)
            if target_port is not None:
                self._plan_port(source, source_port, target, target_port)

    def _plan_port(self, source: NodeInstance, source_port: PortLabel, target: NodeInstance, target_port: PortLabel) -> None:
        label = source_port.label
        mismatch = port_mismatch(source_port.kind, target_port.kind)
        if mismatch is not None:
            self._error(
                Category.TOPOLOGICAL,
                f"Mismatched port '{label}' between '{source.name}' ({source_port.kind.value}) "
                f"and '{target.name}' ({target_port.kind.value}): {mismatch.value}",
                label=label,
                source=source.name,
                target=target.name,
                mismatch=mismatch.value,
            )
            return

        if source_port.aggregating and target_port.aggregating:
            self._error(
                Category.TOPOLOGICAL,
                f"Port '{label}' aggregates on both '{source.name}' and '{target.name}'",
                label=label,
                source=source.name,
                target=target.name,
            )
            return

        if not source_port.aggregating and not target_port.aggregating:
            for source_name, target_name in zip(source_port.variables, target_port.variables):
                a = self._variable(source, source_name, label)
                b = self._variable(target, target_name, label)
                if a is not None and b is not None:
                    self._direct.append((a, b))
            return

        if source_port.aggregating:
            summed, summed_port, other, other_port = source, source_port, target, target_port
        else:
            summed, summed_port, other, other_port = target, target_port, source, source_port

        if len(summed_port.variables) != 1:
            self._error(
                Category.TOPOLOGICAL,
                f"Aggregating port '{label}' of '{summed.name}' must name exactly one variable, "
                f"got {len(summed_port.variables)} (connected to '{other.name}')",
                label=label,
                source=source.name,
                target=target.name,
            )
            return

        summed_variable = summed_port.variables[0]
        if self._variable(summed, summed_variable, label) is None:
            return
        key = (summed.id, label)
        aggregation = self._aggregations.get(key)
        if aggregation is None:
            aggregation = Aggregation(instance=summed, label=label, variable=summed_variable)
            self._aggregations[key] = aggregation
        for name in other_port.variables:
            if self._variable(other, name, label) is not None:
                aggregation.contributions.append((other, name))

    def check(self) -> bool:
        """
        Check every edge and plan the equivalences without touching the model.

        Returns:
            True if no error was found
        """
        self._direct.clear()
        self._aggregations.clear()
        errors = len(self.diagnostics.errors)
        for edge in self.graph.edges:
            self._plan_edge(edge)
        return len(self.diagnostics.errors) == errors

    def _materialize(self, aggregation: Aggregation) -> Component:
        taken = component_names(self.model)
        name = unique_instance_name(
            sanitize_identifier(f"{aggregation.instance.name}_{aggregation.label}_sum"), taken
        )
        summed = self.components[aggregation.instance.id].variable(aggregation.variable)

        component = Component(name)
        feed = Variable(aggregation.variable)
        feed.setUnits(units_name(summed))
        component.addVariable(feed)

        operands = []
        used = {aggregation.variable}
        for other, variable_name in aggregation.contributions:
            contributing = self.components[other.id].variable(variable_name)
            operand_name = unique_instance_name(sanitize_identifier(f"{variable_name}_{other.name}"), used)
            used.add(operand_name)
            operand = Variable(operand_name)
            operand.setUnits(units_name(contributing))
            component.addVariable(operand)
            connect(operand, contributing)
            operands.append(operand_name)

        component.setMath(sum_equation(feed.name(), operands))
        self.model.addComponent(component)
        connect(feed, summed)
        logger.debug("Synthesized '%s' summing %d contributions", name, len(operands))
        return component

    def wire(self) -> WiringReport:
        """
        Check all edges, then create every planned equivalence.

        Nothing is written if any edge fails the checks; the errors are in
        the diagnostics.
        """
        report = WiringReport()
        if not self.check():
            return report

        for a, b in self._direct:
            connect(a, b)
            report.equivalences += 1

        for aggregation in self._aggregations.values():
            component = self._materialize(aggregation)
            report.aggregation_components.append(component.name())
            report.equivalences += len(aggregation.contributions) + 1

        logger.info(
            "Wired %d equivalences, %d aggregation components",
            report.equivalences,
            len(report.aggregation_components),
        )
        return report
