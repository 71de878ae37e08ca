"""
cellcomposer - Compose CellML component templates into one flat model

Node instances of component templates are wired through port labels,
parameterised from tables, given a shared time variable, validated and
flattened into a single CellML 2.0 document.
"""

from beartype.claw import beartype_package

beartype_package(__name__)

__version__ = "0.1.0"

from cellcomposer.diagnostics import Category, CompositionError, Diagnostics, Issue, Severity, Stage
from cellcomposer.graph import CompositionGraph, EdgeInstance, NodeInstance, PortLabel, unique_instance_name
from cellcomposer.parameters import (
    ParameterRecord,
    classify_variable,
    suggest_parameter_tables,
)
from cellcomposer.pipeline import (
    CompositionOptions,
    CompositionResult,
    CompositionRun,
    CompositionSummary,
    compose,
)
from cellcomposer.templates import ComponentTemplate, TemplateCatalogue, TemplateLookupError
from cellcomposer.types import PortKind, PortMismatch, VariableClass
from cellcomposer.units import STANDARD_UNITS, UnitLibrary, UnitResolver, extract_units

__all__ = [
    "__version__",
    "compose",
    "CompositionOptions",
    "CompositionResult",
    "CompositionRun",
    "CompositionSummary",
    "CompositionGraph",
    "NodeInstance",
    "PortLabel",
    "EdgeInstance",
    "PortKind",
    "PortMismatch",
    "unique_instance_name",
    "TemplateCatalogue",
    "ComponentTemplate",
    "TemplateLookupError",
    "UnitLibrary",
    "UnitResolver",
    "STANDARD_UNITS",
    "extract_units",
    "ParameterRecord",
    "VariableClass",
    "classify_variable",
    "suggest_parameter_tables",
    "Diagnostics",
    "Issue",
    "Stage",
    "Category",
    "Severity",
    "CompositionError",
]
