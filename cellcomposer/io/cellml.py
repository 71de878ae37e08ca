"""
Thin helpers around the libcellml Python bindings.

libcellml reports problems through its logger interface (``errorCount`` /
``error(i)``) rather than exceptions; these helpers turn those reports into
plain lists of messages so the stages can record them as issues.
"""

import re
from pathlib import Path
from collections.abc import Mapping, Sequence
from typing import Optional, Union

from libcellml import (
    Analyser,
    Component,
    Importer,
    Model,
    Parser,
    Printer,
    Validator,
    Variable,
)

MATHML_NS = "http://www.w3.org/1998/Math/MathML"

_MATH_UNITS = re.compile(r"\bunits\s*=\s*\"([A-Za-z_][A-Za-z0-9_]*)\"")
_IDENTIFIER_INVALID = re.compile(r"[^A-Za-z0-9_]")


def _error_messages(reporter) -> list[str]:
    return [reporter.error(i).description() for i in range(reporter.errorCount())]


def parse_model(text: str, strict: bool = True) -> tuple[Optional[Model], list[str]]:
    """
    Parse a CellML document.

    Args:
        text: CellML document text
        strict: Only accept CellML 2.0 (False also accepts 1.x documents)

    Returns:
        The parsed model and the parser's error messages (empty on success)

    Example:
        >>> model, errors = parse_model(open("pump.cellml").read())
        >>> assert not errors
    """
    parser = Parser(strict)
    model = parser.parseModel(text)
    return model, _error_messages(parser)


def is_cellml(text: str, strict: bool = True) -> bool:
    """True if the text parses as a CellML model without errors."""
    _, errors = parse_model(text, strict)
    return not errors


def read_sources(paths: Sequence[Union[str, Path]]) -> dict[str, str]:
    """Read files into a ``{filename: text}`` mapping keyed by base name."""
    sources = {}
    for path in paths:
        path = Path(path)
        sources[path.name] = path.read_text()
    return sources


def print_model(model: Model) -> str:
    """Serialize a model to CellML 2.0 text."""
    return Printer().printModel(model)


def validate_model(model: Model) -> list[str]:
    """Run the libcellml validator and return its error messages."""
    validator = Validator()
    validator.validateModel(model)
    return _error_messages(validator)


def analyse_model(model: Model) -> list[str]:
    """Run the libcellml analyser and return its error messages."""
    analyser = Analyser()
    analyser.analyseModel(model)
    return _error_messages(analyser)


def resolve_and_flatten(model: Model, libraries: Mapping[str, Model]) -> tuple[Optional[Model], list[str]]:
    """
    Resolve the model's imports against in-memory libraries and flatten it.

    Args:
        model: Model holding import placeholders
        libraries: Import URL to the parsed library model it refers to

    Returns:
        The flattened model (None on failure) and the importer's error messages
    """
    importer = Importer()
    for url, library in libraries.items():
        importer.addModel(library, url)

    importer.resolveImports(model, "")
    errors = _error_messages(importer)
    if not errors and model.hasUnresolvedImports():
        errors.append(f"Model '{model.name()}' still has unresolved imports after import resolution.")
    if errors:
        return None, errors

    flat = importer.flattenModel(model)
    errors = _error_messages(importer)
    if flat is None and not errors:
        errors.append(f"Model '{model.name()}' could not be flattened.")
    return (flat if not errors else None), errors


def units_name(variable: Variable) -> str:
    """Name of a variable's units, or an empty string when it has none."""
    units = variable.units()
    return units.name() if units is not None else ""


def variables(component: Component) -> list[Variable]:
    return [component.variable(i) for i in range(component.variableCount())]


def components(model: Model) -> list[Component]:
    return [model.component(i) for i in range(model.componentCount())]


def component_names(model: Model) -> set[str]:
    return {component.name() for component in components(model)}


def referenced_units(component: Component) -> list[str]:
    """
    Units names used by a component and its encapsulated children.

    Covers variable declarations and ``cellml:units`` attributes on numbers
    in the component's MathML, in first-seen order.
    """
    names: list[str] = []
    pending = [component]
    while pending:
        current = pending.pop(0)
        for variable in variables(current):
            name = units_name(variable)
            if name and name not in names:
                names.append(name)
        for name in _MATH_UNITS.findall(current.math() or ""):
            if name not in names:
                names.append(name)
        pending.extend(current.component(i) for i in range(current.componentCount()))
    return names


def expose(variable: Variable) -> None:
    """Make a variable visible to equivalences from sibling components."""
    current = variable.interfaceType()
    if current in ("public", "public_and_private"):
        return
    variable.setInterfaceType("public_and_private" if current == "private" else "public")


def connect(first: Variable, second: Variable) -> None:
    """Expose both variables and declare them equivalent."""
    expose(first)
    expose(second)
    Variable.addEquivalence(first, second)


def sanitize_identifier(name: str) -> str:
    """Turn an arbitrary label into a valid CellML identifier."""
    identifier = _IDENTIFIER_INVALID.sub("_", name)
    if not identifier or identifier[0].isdigit():
        identifier = f"c_{identifier}"
    return identifier


def sum_equation(target: str, operands: Sequence[str]) -> str:
    """
    MathML for ``target = operands[0] + ... + operands[n-1]``.

    A single operand is assigned directly.
    """
    if not operands:
        raise ValueError(f"Sum for '{target}' needs at least one operand")
    if len(operands) == 1:
        rhs = f"<ci>{operands[0]}</ci>"
    else:
        terms = "".join(f"<ci>{name}</ci>" for name in operands)
        rhs = f"<apply><plus/>{terms}</apply>"
    return f'<math xmlns="{MATHML_NS}">' f"<apply><eq/><ci>{target}</ci>{rhs}</apply>" "</math>"


def move_component_first(model: Model, name: str) -> bool:
    """
    Reorder the model's top-level components so ``name`` comes first.

    Returns:
        False if the model has no such component
    """
    ordered = components(model)
    index = next((i for i, component in enumerate(ordered) if component.name() == name), None)
    if index is None:
        return False
    if index == 0:
        return True
    ordered.insert(0, ordered.pop(index))
    model.removeAllComponents()
    for component in ordered:
        model.addComponent(component)
    return True
