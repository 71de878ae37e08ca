"""
Component templates: the reusable components defined in CellML documents.

A :class:`TemplateCatalogue` holds the raw template documents of a
composition, parses each document at most once and hands out components to
clone into the composed model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from collections.abc import Mapping, Sequence
from typing import Optional, Union

from libcellml import Component, Model

from cellcomposer.io.cellml import parse_model, read_sources, units_name, variables

logger = logging.getLogger(__name__)


class TemplateLookupError(LookupError):
    """A template document or component is not available."""


@dataclass(frozen=True)
class VariableDeclaration:
    """A variable as declared by a template component."""

    name: str
    units: str
    public: bool


@dataclass(frozen=True)
class ComponentTemplate:
    """Description of one component of a template document."""

    source_file: str
    name: str
    variables: tuple[VariableDeclaration, ...] = ()

    @property
    def key(self) -> tuple[str, str]:
        return (self.source_file, self.name)

    @property
    def port_options(self) -> list[VariableDeclaration]:
        """Variables that can be offered on ports (the public ones)."""
        return [v for v in self.variables if v.public]


def _describe(source_file: str, component: Component) -> ComponentTemplate:
    declarations = tuple(
        VariableDeclaration(
            name=v.name(),
            units=units_name(v),
            public=v.interfaceType() in ("public", "public_and_private"),
        )
        for v in variables(component)
    )
    return ComponentTemplate(source_file=source_file, name=component.name(), variables=declarations)


class TemplateCatalogue:
    """
    Template documents available to a composition.

    Args:
        sources: Template filename to CellML document text
        strict: Only accept CellML 2.0 documents

    Example:
        >>> catalogue = TemplateCatalogue.from_sources({"pump.cellml": text})
        >>> [t.name for t in catalogue.templates()]
        ['pump']
    """

    def __init__(self, sources: Mapping[str, str], strict: bool = False):
        self._sources = dict(sources)
        self.strict = strict
        self._parsed: dict[str, tuple[Optional[Model], list[str]]] = {}

    @classmethod
    def from_sources(cls, sources: Mapping[str, str], strict: bool = False) -> TemplateCatalogue:
        return cls(sources, strict=strict)

    @classmethod
    def from_files(cls, paths: Sequence[Union[str, Path]], strict: bool = False) -> TemplateCatalogue:
        """Load template documents from disk, keyed by file name."""
        return cls(read_sources(paths), strict=strict)

    @property
    def filenames(self) -> list[str]:
        return list(self._sources)

    def __contains__(self, source_file: str) -> bool:
        return source_file in self._sources

    def source(self, source_file: str) -> str:
        """Raw text of a template document."""
        if source_file not in self._sources:
            raise TemplateLookupError(f"Template file '{source_file}' is not available")
        return self._sources[source_file]

    def load(self, source_file: str) -> Model:
        """
        Parsed model of a template document, parsed on first use.

        Raises:
            TemplateLookupError: If the file is unknown or does not parse
        """
        text = self.source(source_file)
        if source_file not in self._parsed:
            logger.debug("Parsing template file '%s'", source_file)
            self._parsed[source_file] = parse_model(text, self.strict)
        model, errors = self._parsed[source_file]
        if errors or model is None:
            raise TemplateLookupError(
                f"Template file '{source_file}' could not be parsed: " + "; ".join(errors)
            )
        return model

    def component(self, source_file: str, name: str) -> Component:
        """
        A template component, ready to be cloned.

        Raises:
            TemplateLookupError: If the file or the component is not available
        """
        component = self.load(source_file).component(name)
        if component is None:
            raise TemplateLookupError(f"Component '{name}' not found in template file '{source_file}'")
        return component

    def templates(self, source_file: Optional[str] = None) -> list[ComponentTemplate]:
        """
        Describe the components of one or every parsable template document.

        Documents that fail to parse are logged and skipped.
        """
        filenames = [source_file] if source_file is not None else self.filenames
        found = []
        for filename in filenames:
            try:
                model = self.load(filename)
            except TemplateLookupError as exc:
                if source_file is not None:
                    raise
                logger.warning("%s", exc)
                continue
            found.extend(_describe(filename, model.component(i)) for i in range(model.componentCount()))
        return found

    def get(self, source_file: str, name: str) -> Optional[ComponentTemplate]:
        """Describe one template component, or None if it is not available."""
        try:
            return _describe(source_file, self.component(source_file, name))
        except TemplateLookupError:
            return None

    def clear(self) -> None:
        """Drop every parsed document; sources are kept."""
        self._parsed.clear()
