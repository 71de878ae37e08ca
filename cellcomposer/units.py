"""
Unit resolution against an ordered list of units libraries.

Units used by the composed model that it does not define itself are copied from
the template document that defines them, or imported from the first library
that does. Libraries are parsed on first use and kept for the rest of the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from collections.abc import Sequence
from typing import Optional

from libcellml import ImportSource, Model, Units

from cellcomposer.diagnostics import Category, Diagnostics, Stage
from cellcomposer.io.cellml import parse_model, print_model
from cellcomposer.logging import logdata

logger = logging.getLogger(__name__)

STANDARD_UNITS = frozenset(
    {
        "ampere",
        "becquerel",
        "candela",
        "coulomb",
        "dimensionless",
        "farad",
        "gram",
        "gray",
        "henry",
        "hertz",
        "joule",
        "katal",
        "kelvin",
        "kilogram",
        "litre",
        "lumen",
        "lux",
        "metre",
        "mole",
        "newton",
        "ohm",
        "pascal",
        "radian",
        "second",
        "siemens",
        "sievert",
        "steradian",
        "tesla",
        "volt",
        "watt",
        "weber",
    }
)


@dataclass(frozen=True)
class UnitLibrary:
    """A CellML document whose units definitions can be imported."""

    filename: str  # Used as the import URL
    content: str


def extract_units(content: str, strict: bool = False) -> tuple[Optional[str], int]:
    """
    Reduce a CellML document to its units definitions.

    Args:
        content: CellML document text
        strict: Only accept CellML 2.0

    Returns:
        (units-only model text, number of units), or (None, 0) when the
        document does not parse
    """
    model, errors = parse_model(content, strict)
    if errors or model is None:
        logger.warning("Units document could not be parsed: %s", "; ".join(errors))
        return None, 0

    units_model = Model("units")
    for i in range(model.unitsCount()):
        units_model.addUnits(model.units(i).clone())
    return print_model(units_model), model.unitsCount()


class UnitResolver:
    """
    Imports missing units definitions into one output model.

    Args:
        model: The model receiving import placeholders
        libraries: Units libraries, searched in order
        diagnostics: Where unresolved units and unreadable libraries are reported
        strict: Only accept CellML 2.0 libraries
    """

    def __init__(
        self,
        model: Model,
        libraries: Sequence[UnitLibrary],
        diagnostics: Diagnostics,
        strict: bool = False,
    ):
        self.model = model
        self.libraries = list(libraries)
        self.diagnostics = diagnostics
        self.strict = strict
        self._parsed: dict[str, Optional[Model]] = {}
        self._sources: dict[str, ImportSource] = {}
        self.imported: dict[str, str] = {}  # units name -> library filename
        self.local: dict[str, str] = {}  # units name -> template model name
        self.unresolved: list[str] = []
        self._standard_model = Model("standard_units")

    @property
    def import_sources(self) -> dict[str, ImportSource]:
        """Import sources registered so far, by library filename."""
        return dict(self._sources)

    @property
    def parsed_libraries(self) -> list[str]:
        """Filenames of the libraries parsed so far."""
        return list(self._parsed)

    def library_models(self) -> dict[str, Model]:
        """Parsed models of the libraries the output model imports from."""
        return {filename: self._parsed[filename] for filename in self._sources}

    def _library(self, library: UnitLibrary, stage: Stage) -> Optional[Model]:
        if library.filename not in self._parsed:
            model, errors = parse_model(library.content, self.strict)
            if errors or model is None:
                logger.warning(
                    "Skipping units library '%s': %s",
                    library.filename,
                    "; ".join(errors),
                    **logdata(library=library.filename),
                )
                self.diagnostics.add_warning(
                    stage,
                    Category.UNIT,
                    f"Units library '{library.filename}' could not be parsed and was skipped",
                    library=library.filename,
                    errors=errors,
                )
                model = None
            self._parsed[library.filename] = model
        return self._parsed[library.filename]

    def _import_source(self, filename: str) -> ImportSource:
        if filename not in self._sources:
            source = ImportSource()
            source.setUrl(filename)
            self._sources[filename] = source
        return self._sources[filename]

    def _copy_local(self, unit_name: str, template: Model, stage: Stage) -> bool:
        if not template.hasUnits(unit_name):
            return False
        units = template.units(unit_name)
        if units.isImport():
            return False
        self.model.addUnits(units.clone())
        self.local[unit_name] = template.name()
        if unit_name in self.unresolved:
            self.unresolved.remove(unit_name)
        logger.debug("Copied units '%s' from template model '%s'", unit_name, template.name())
        for i in range(units.unitCount()):
            self.ensure_unit_imported(units.unitAttributeReference(i), stage, template=template)
        return True

    def ensure_unit_imported(
        self,
        unit_name: str,
        stage: Stage = Stage.LINK_UNITS,
        template: Optional[Model] = None,
    ) -> bool:
        """
        Make a units name usable in the output model.

        Standard units and units the model already holds need nothing. Units
        defined by the template model the name comes from are copied from it,
        along with the units they are built from. Any other name is imported
        from the first library that defines it.

        Returns:
            False if no library defines the units
        """
        if not unit_name or unit_name in STANDARD_UNITS or self.model.hasUnits(unit_name):
            return True
        if template is not None and self._copy_local(unit_name, template, stage):
            return True
        if unit_name in self.unresolved:
            return False

        for library in self.libraries:
            library_model = self._library(library, stage)
            if library_model is None or not library_model.hasUnits(unit_name):
                continue
            units = Units(unit_name)
            units.setImportSource(self._import_source(library.filename))
            units.setImportReference(unit_name)
            self.model.addUnits(units)
            self.imported[unit_name] = library.filename
            logger.debug("Imported units '%s' from '%s'", unit_name, library.filename)
            return True

        logger.warning("Units '%s' not found in any units library", unit_name, **logdata(units=unit_name))
        self.diagnostics.add_warning(
            stage,
            Category.UNIT,
            f"Units '{unit_name}' are not defined by the model or any units library",
            units=unit_name,
        )
        self.unresolved.append(unit_name)
        return False

    def _standard(self, unit_name: str) -> Units:
        # Wraps a standard unit in a units definition of its own
        wrapper = f"{unit_name}_standard"
        if not self._standard_model.hasUnits(wrapper):
            units = Units(wrapper)
            units.addUnit(unit_name)
            self._standard_model.addUnits(units)
        return self._standard_model.units(wrapper)

    def definition(self, unit_name: str) -> Optional[Units]:
        """The units definition a name refers to, if the resolver can see it."""
        if unit_name in STANDARD_UNITS:
            return self._standard(unit_name)
        if self.model.hasUnits(unit_name):
            units = self.model.units(unit_name)
            if not units.isImport():
                return units
        filename = self.imported.get(unit_name)
        if filename is not None and self._parsed.get(filename) is not None:
            return self._parsed[filename].units(unit_name)
        return None

    def compatible(self, first: str, second: str) -> bool:
        """
        True if two units names can be shown to be compatible.

        Identical names are compatible. Otherwise both definitions must be
        visible to the resolver; unknown definitions are incompatible.
        """
        if first == second:
            return True
        a = self.definition(first)
        b = self.definition(second)
        if a is None or b is None:
            return False
        return Units.compatible(a, b)

    def close(self) -> None:
        """Release the cached library models."""
        self._parsed.clear()
        self._sources.clear()
