"""
Parameter injection and global parameter factoring.

Parameter tables give literal values to template variables. A record named
``<variable>_<instance>`` targets one instance, a record named ``<variable>``
targets every instance of templates using that table. Each record becomes one
constant variable in an administrative component, equivalent to the variables
it sets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from collections.abc import Iterable, Mapping, Sequence
from typing import Optional, Union

import numpy as np
from libcellml import Component, Model, Variable

from cellcomposer.diagnostics import Category, Diagnostics, Stage
from cellcomposer.graph import NodeInstance
from cellcomposer.io.cellml import expose, units_name, variables
from cellcomposer.logging import logdata
from cellcomposer.templates import ComponentTemplate
from cellcomposer.types import ParameterScope, VariableClass
from cellcomposer.units import UnitResolver

logger = logging.getLogger(__name__)

AMBIGUOUS_MATCH_COUNT = 5


@dataclass
class ParameterRecord:
    """
    One row of a parameter table.

    Attributes:
        variable_name: ``<variable>_<instance>`` or ``<variable>``
        units: Units name; empty to take the target variable's units
        value: Finite numeric value
        data_reference: Free text provenance, not written to the model
    """

    variable_name: str
    units: str
    value: Union[float, int, str]
    data_reference: str = ""

    def __post_init__(self):
        if not self.variable_name:
            raise ValueError("Parameter record needs a variable name")
        try:
            value = float(self.value)
        except ValueError:
            raise ValueError(f"Parameter '{self.variable_name}' has non-numeric value {self.value!r}") from None
        if not np.isfinite(value):
            raise ValueError(f"Parameter '{self.variable_name}' has non-finite value {self.value!r}")
        self.value = value

    @property
    def literal(self) -> str:
        """The value as written into the model, e.g. ``10`` or ``0.0025``."""
        return np.format_float_positional(self.value, trim="-")

    @classmethod
    def from_row(cls, row: Mapping[str, str]) -> ParameterRecord:
        return cls(
            variable_name=row["variable_name"].strip(),
            units=(row.get("units") or "").strip(),
            value=(row.get("value") or "").strip(),
            data_reference=(row.get("data_reference") or "").strip(),
        )


def classify_variable(instance_name: str, variable_name: str, records: Iterable[ParameterRecord]) -> VariableClass:
    """
    How a variable of an instance will be provided.

    An instance specific record wins over a record shared by name.
    """
    qualified = f"{variable_name}_{instance_name}"
    shared = False
    for record in records:
        if record.variable_name == qualified:
            return VariableClass.CONSTANT
        if record.variable_name == variable_name:
            shared = True
    return VariableClass.GLOBAL_CONSTANT if shared else VariableClass.VARIABLE


@dataclass
class ParameterAssociation:
    """Suggested parameter table for one template document."""

    source_file: str
    table: Optional[str]  # None when no table shares a variable name
    matched: int
    total: int

    @property
    def ambiguous(self) -> bool:
        return self.matched < AMBIGUOUS_MATCH_COUNT


def suggest_parameter_tables(
    templates: Sequence[ComponentTemplate],
    tables: Mapping[str, Sequence[ParameterRecord]],
) -> list[ParameterAssociation]:
    """
    Propose a parameter table for every template document.

    The table sharing the most variable names with the document's components
    wins; ties keep the first table.
    """
    names_by_file: dict[str, set[str]] = {}
    for template in templates:
        names_by_file.setdefault(template.source_file, set()).update(v.name for v in template.variables)

    signatures = {name: {r.variable_name for r in records} for name, records in tables.items()}
    associations = []
    for source_file, names in names_by_file.items():
        best, best_score = None, 0
        for table, signature in signatures.items():
            score = len(names & signature)
            if score > best_score:
                best, best_score = table, score
        associations.append(
            ParameterAssociation(source_file=source_file, table=best, matched=best_score, total=len(names))
        )
    return associations


@dataclass
class ParameterClassification:
    """Outcome of global factoring; the three lists partition the parameters."""

    specific: list[str] = field(default_factory=list)
    global_: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def scope(self, name: str) -> Optional[ParameterScope]:
        if name in self.specific:
            return ParameterScope.SPECIFIC
        if name in self.global_:
            return ParameterScope.GLOBAL
        if name in self.removed:
            return ParameterScope.REMOVED
        return None


class ParameterInjector:
    """
    Wires parameter table records to instance variables.

    Args:
        model: The output model
        resolver: Imports the units of parameter records
        diagnostics: Where unit mismatches and missing tables are reported
        component_name: Name of the specific-parameter component
        global_component_name: Name of the global-parameter component
    """

    def __init__(
        self,
        model: Model,
        resolver: UnitResolver,
        diagnostics: Diagnostics,
        component_name: str = "parameters",
        global_component_name: str = "parameters_global",
    ):
        self.model = model
        self.resolver = resolver
        self.diagnostics = diagnostics
        self.component = Component(component_name)
        self.global_component = Component(global_component_name)
        self.injected = 0

    def declare(self, record: ParameterRecord, fallback_units: str = "") -> Variable:
        """Create, or reuse by record name, the constant variable of a record."""
        variable = self.component.variable(record.variable_name)
        if variable is not None:
            return variable

        units = record.units or fallback_units
        variable = Variable(record.variable_name)
        if units:
            variable.setUnits(units)
            self.resolver.ensure_unit_imported(units, Stage.INJECT_PARAMETERS)
        variable.setInitialValue(record.literal)
        expose(variable)
        self.component.addVariable(variable)
        return variable

    def inject(
        self,
        instances: Sequence[tuple[NodeInstance, Component]],
        tables: Mapping[str, Sequence[ParameterRecord]],
        table_for_file: Mapping[str, str],
    ) -> int:
        """
        Look up every top-level variable of every instance in its table.

        Returns:
            Number of variables given a parameter
        """
        count = 0
        indexed = {name: {r.variable_name: r for r in reversed(records)} for name, records in tables.items()}
        for node, component in instances:
            table_name = table_for_file.get(node.source_file)
            if table_name is None:
                continue
            table = indexed.get(table_name)
            if table is None:
                message = f"Parameter table '{table_name}' for '{node.source_file}' is not available"
                logger.warning("%s", message)
                self.diagnostics.add_warning(
                    Stage.INJECT_PARAMETERS, Category.STRUCTURAL, message, table=table_name
                )
                continue

            for target in variables(component):
                name = target.name()
                record = table.get(f"{name}_{node.name}") or table.get(name)
                if record is None:
                    continue
                self._wire(record, target, node)
                count += 1

        self.injected += count
        logger.info("Injected %d parameters", count)
        return count

    def _wire(self, record: ParameterRecord, target: Variable, node: NodeInstance) -> None:
        target_units = units_name(target)
        parameter = self.declare(record, fallback_units=target_units)
        parameter_units = units_name(parameter)
        if target_units and not self.resolver.compatible(parameter_units, target_units):
            message = (
                f"Parameter '{record.variable_name}' in '{parameter_units}' may not be compatible "
                f"with '{node.name}.{target.name()}' in '{target_units}'"
            )
            logger.warning("%s", message, **logdata(parameter=record.variable_name, instance=node.name))
            self.diagnostics.add_warning(
                Stage.INJECT_PARAMETERS,
                Category.UNIT,
                message,
                parameter=record.variable_name,
                instance=node.name,
                variable=target.name(),
            )

        target.removeInitialValue()
        expose(target)
        Variable.addEquivalence(parameter, target)

    def factor_globals(self) -> ParameterClassification:
        """
        Split the injected parameters by how many variables they feed.

        One connection stays in the specific component, none is dropped and
        more than one moves to the global component. Each administrative
        component is added to the model only if it holds a variable.
        """
        classification = ParameterClassification()
        for variable in variables(self.component):
            connections = variable.equivalentVariableCount()
            if connections == 1:
                classification.specific.append(variable.name())
            elif connections == 0:
                classification.removed.append(variable.name())
            else:
                classification.global_.append(variable.name())

        for name in classification.removed:
            self.component.removeVariable(name)
        for name in classification.global_:
            self.global_component.addVariable(self._take(name))

        for component in (self.component, self.global_component):
            if component.variableCount():
                self.model.addComponent(component)

        logger.info(
            "Parameters: %d specific, %d global, %d removed",
            len(classification.specific),
            len(classification.global_),
            len(classification.removed),
        )
        return classification

    def _take(self, name: str) -> Variable:
        index = next(i for i, v in enumerate(variables(self.component)) if v.name() == name)
        return self.component.takeVariable(index)
