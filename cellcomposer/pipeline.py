"""
Composition pipeline.

Stages run strictly in order::

    Instantiate -> Wire -> LinkUnits -> InjectParameters -> FactorGlobals
    -> UnifyEnvironment -> Validate -> ResolveImports+Flatten -> Analyse
    -> Serialize

Instantiate, Wire, Validate and ResolveImports+Flatten are fatal: when one
of them reports an error the run stops and no model text is produced. Unit
problems and analyser findings are warnings.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from collections.abc import Mapping, Sequence
from typing import Optional, Union

from libcellml import Component, Model, Units

from cellcomposer.diagnostics import Category, CompositionError, Diagnostics, Issue, Stage
from cellcomposer.environment import unify_environment
from cellcomposer.graph import CompositionGraph
from cellcomposer.io.cellml import (
    analyse_model,
    move_component_first,
    print_model,
    referenced_units,
    resolve_and_flatten,
    validate_model,
)
from cellcomposer.parameters import ParameterInjector, ParameterRecord
from cellcomposer.templates import TemplateCatalogue, TemplateLookupError
from cellcomposer.units import UnitLibrary, UnitResolver
from cellcomposer.wiring import WiringEngine

logger = logging.getLogger(__name__)

_NOT_DEFINED = re.compile(r"not fully defined", re.IGNORECASE)


@dataclass
class CompositionOptions:
    """
    Settings of a composition run.

    Attributes:
        model_name: Name of the composed model
        environment_component: Component holding the shared time variable
        time_variable: Name of the shared time variable
        time_unit: Units of the shared time variable
        time_aliases: Local variable names linked to the shared time
        parameters_component: Component of instance specific parameters
        global_parameters_component: Component of shared parameters
        strict_parsing: Only accept CellML 2.0 templates and libraries
        analyse: Run the analyser on the flattened model
    """

    model_name: str = "composed_model"
    environment_component: str = "environment"
    time_variable: str = "time"
    time_unit: str = "second"
    time_aliases: tuple[str, ...] = ("t", "time")
    parameters_component: str = "parameters"
    global_parameters_component: str = "parameters_global"
    strict_parsing: bool = False
    analyse: bool = True


@dataclass
class CompositionSummary:
    """Counts of what a run added to the model."""

    equivalences: int = 0
    aggregation_components: list[str] = field(default_factory=list)
    injected_parameters: int = 0
    specific_parameters: list[str] = field(default_factory=list)
    global_parameters: list[str] = field(default_factory=list)
    removed_parameters: list[str] = field(default_factory=list)
    time_links: int = 0
    imported_units: dict[str, str] = field(default_factory=dict)
    local_units: dict[str, str] = field(default_factory=dict)
    unresolved_units: list[str] = field(default_factory=list)


@dataclass
class CompositionResult:
    """Outcome of :func:`compose`."""

    model: Optional[str]  # Serialized CellML, None when a fatal stage failed
    diagnostics: Diagnostics
    summary: CompositionSummary

    @property
    def ok(self) -> bool:
        return self.model is not None and not self.diagnostics.has_errors

    @property
    def errors(self) -> list[Issue]:
        return self.diagnostics.errors

    @property
    def warnings(self) -> list[Issue]:
        return self.diagnostics.warnings

    def raise_for_errors(self) -> None:
        """
        Raises:
            CompositionError: If the run failed
        """
        if not self.ok:
            raise CompositionError(self.errors)


class CompositionRun:
    """
    State of a single composition.

    Owns the output model, the node to component map and the template and
    units library caches. Use as a context manager so the caches are
    released however the run ends.

    Example:
        >>> with CompositionRun(graph, catalogue) as run:
        ...     text = run.execute()
    """

    def __init__(
        self,
        graph: CompositionGraph,
        catalogue: TemplateCatalogue,
        unit_libraries: Sequence[UnitLibrary] = (),
        parameter_tables: Optional[Mapping[str, Sequence[ParameterRecord]]] = None,
        table_for_file: Optional[Mapping[str, str]] = None,
        options: Optional[CompositionOptions] = None,
    ):
        self.graph = graph
        self.catalogue = catalogue
        self.parameter_tables = dict(parameter_tables or {})
        self.table_for_file = dict(table_for_file or {})
        self.options = options or CompositionOptions()
        self.diagnostics = Diagnostics()
        self.summary = CompositionSummary()
        self.model = Model(self.options.model_name)
        self.resolver = UnitResolver(self.model, unit_libraries, self.diagnostics, strict=self.options.strict_parsing)
        self.components: dict[str, Component] = {}
        self.synthesized: list[Component] = []
        self.injector: Optional[ParameterInjector] = None
        self.flat: Optional[Model] = None

    def __enter__(self) -> CompositionRun:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        """Release every cache and intermediate object of the run."""
        self.catalogue.clear()
        self.resolver.close()
        self.components.clear()
        self.synthesized.clear()
        self.flat = None

    def execute(self) -> str:
        """
        Run every stage and return the serialized model.

        Raises:
            CompositionError: When a fatal stage reports errors
        """
        self.instantiate()
        self.wire()
        self.link_units()
        self.inject_parameters()
        self.factor_globals()
        self.unify_environment()
        self.validate()
        self.resolve_and_flatten()
        self.analyse()
        return self.serialize()

    def instantiate(self) -> None:
        """Clone one template component per node, under the node's name."""
        stage = Stage.INSTANTIATE
        for problem in self.graph.check():
            self.diagnostics.add_error(stage, Category.STRUCTURAL, problem)

        reserved = {
            self.options.environment_component,
            self.options.parameters_component,
            self.options.global_parameters_component,
        }
        for node in self.graph.nodes:
            if node.name in reserved:
                self.diagnostics.add_error(
                    stage,
                    Category.STRUCTURAL,
                    f"Instance name '{node.name}' is reserved for an administrative component",
                    instance=node.name,
                )

        for node in self.graph.nodes:
            try:
                template = self.catalogue.component(node.source_file, node.component)
            except TemplateLookupError as exc:
                self.diagnostics.add_error(
                    stage,
                    Category.STRUCTURAL,
                    f"Cannot instantiate '{node.name}': {exc}",
                    instance=node.name,
                    source_file=node.source_file,
                    component=node.component,
                )
                continue
            component = template.clone()
            component.setName(node.name)
            self.model.addComponent(component)
            self.components[node.id] = component

        self.diagnostics.check(stage)
        logger.info("Instantiated %d components", len(self.components))

    def wire(self) -> None:
        engine = WiringEngine(self.graph, self.components, self.model, self.diagnostics)
        report = engine.wire()
        self.diagnostics.check(Stage.WIRE)
        self.summary.equivalences += report.equivalences
        self.summary.aggregation_components = list(report.aggregation_components)
        self.synthesized = [self.model.component(name) for name in report.aggregation_components]

    def _record_units(self) -> None:
        self.summary.imported_units = dict(self.resolver.imported)
        self.summary.local_units = dict(self.resolver.local)
        self.summary.unresolved_units = list(self.resolver.unresolved)

    def link_units(self) -> None:
        """
        Provide every units name the instances and synthesized components use.

        Units an instance's template document defines are copied from it;
        anything else is imported from the units libraries.
        """
        for node in self.graph.nodes:
            template = self.catalogue.load(node.source_file)
            for name in referenced_units(self.components[node.id]):
                self.resolver.ensure_unit_imported(name, Stage.LINK_UNITS, template=template)
        for component in self.synthesized:
            for name in referenced_units(component):
                self.resolver.ensure_unit_imported(name, Stage.LINK_UNITS)
        self._record_units()

    def inject_parameters(self) -> None:
        self.injector = ParameterInjector(
            self.model,
            self.resolver,
            self.diagnostics,
            component_name=self.options.parameters_component,
            global_component_name=self.options.global_parameters_component,
        )
        instances = [(node, self.components[node.id]) for node in self.graph.nodes]
        self.summary.injected_parameters = self.injector.inject(
            instances, self.parameter_tables, self.table_for_file
        )
        self._record_units()

    def factor_globals(self) -> None:
        classification = self.injector.factor_globals()
        self.summary.specific_parameters = classification.specific
        self.summary.global_parameters = classification.global_
        self.summary.removed_parameters = classification.removed
        self.summary.equivalences += self.injector.injected

    def unify_environment(self) -> None:
        _, links = unify_environment(
            self.model,
            [*self.components.values(), *self.synthesized],
            self.resolver,
            component_name=self.options.environment_component,
            time_variable=self.options.time_variable,
            time_unit=self.options.time_unit,
            aliases=self.options.time_aliases,
        )
        self.summary.time_links = links
        self.summary.equivalences += links

    def _restates_unresolved(self, message: str) -> Optional[str]:
        return next(
            (name for name in self.resolver.unresolved if re.search(rf"\b{re.escape(name)}\b", message)),
            None,
        )

    def validate(self) -> None:
        """
        Validate the assembled model.

        Validator messages about units already reported as unresolved are
        kept as unit warnings; every other message is fatal.
        """
        stage = Stage.VALIDATE
        self.model.linkUnits()
        for message in validate_model(self.model):
            units = self._restates_unresolved(message)
            if units is not None:
                self.diagnostics.add_warning(stage, Category.UNIT, message, units=units)
            else:
                self.diagnostics.add_error(stage, Category.TOOLING, message)
        self.diagnostics.check(stage)

    def resolve_and_flatten(self) -> None:
        """
        Resolve units imports and flatten the model.

        Unresolved units get an empty local definition while flattening so
        the model counts as fully defined; their references stay dangling in
        the output.
        """
        stage = Stage.RESOLVE_AND_FLATTEN
        placeholders = [name for name in self.resolver.unresolved if not self.model.hasUnits(name)]
        for name in placeholders:
            self.model.addUnits(Units(name))
        self.model.linkUnits()

        flat, errors = resolve_and_flatten(self.model, self.resolver.library_models())

        for name in placeholders:
            self.model.removeUnits(name)
            if flat is not None:
                flat.removeUnits(name)

        if flat is None and placeholders and errors and all(_NOT_DEFINED.search(m) for m in errors):
            # Imports are resolved at this point; keep the unflattened model
            for message in errors:
                self.diagnostics.add_warning(
                    stage, Category.UNIT, f"{message} Undefined units: {', '.join(placeholders)}", units=placeholders
                )
            flat, errors = self.model, []

        for message in errors:
            self.diagnostics.add_error(stage, Category.TOOLING, message)
        self.diagnostics.check(stage)
        self.flat = flat

    def analyse(self) -> None:
        """Best effort: analyser findings never stop the run."""
        if not self.options.analyse:
            return
        for message in analyse_model(self.flat):
            self.diagnostics.add_warning(Stage.ANALYSE, Category.ANALYSIS, message)

    def serialize(self) -> str:
        move_component_first(self.flat, self.options.environment_component)
        self._record_units()
        return print_model(self.flat)


def compose(
    graph: CompositionGraph,
    templates: Union[TemplateCatalogue, Mapping[str, str]],
    unit_libraries: Sequence[UnitLibrary] = (),
    parameter_tables: Optional[Mapping[str, Sequence[ParameterRecord]]] = None,
    table_for_file: Optional[Mapping[str, str]] = None,
    options: Optional[CompositionOptions] = None,
) -> CompositionResult:
    """
    Compose a graph of template instances into one flat CellML model.

    Args:
        graph: Node instances and edges
        templates: Template catalogue, or ``{filename: text}`` of template documents
        unit_libraries: Units libraries, searched in order
        parameter_tables: Table name to its parameter records
        table_for_file: Template filename to the table applied to its instances
        options: Run settings, defaults if omitted

    Returns:
        The model text with every warning, or no model and the errors of the
        stage that failed

    Example:
        >>> result = compose(graph, {"pump.cellml": pump, "tank.cellml": tank},
        ...                  unit_libraries=[UnitLibrary("units.cellml", units)])
        >>> result.raise_for_errors()
        >>> open("model.cellml", "w").write(result.model)
    """
    options = options or CompositionOptions()
    if not isinstance(templates, TemplateCatalogue):
        templates = TemplateCatalogue.from_sources(templates, strict=options.strict_parsing)

    with CompositionRun(graph, templates, unit_libraries, parameter_tables, table_for_file, options) as run:
        try:
            text = run.execute()
        except CompositionError as exc:
            logger.error("Composition failed at %s with %d errors", exc.stage.value, len(exc.issues))
            return CompositionResult(model=None, diagnostics=run.diagnostics, summary=run.summary)

    logger.info("Composed '%s' with %d warnings", options.model_name, len(run.diagnostics.warnings))
    return CompositionResult(model=text, diagnostics=run.diagnostics, summary=run.summary)
