"""
Composition diagnostics.

Every stage reports what it finds as an :class:`Issue` in a shared
:class:`Diagnostics` collection. Fatal stages are aborted by raising
:class:`CompositionError` once the stage has finished collecting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Stage(Enum):
    """Pipeline stage that reported an issue."""

    INSTANTIATE = "instantiate"
    WIRE = "wire"
    LINK_UNITS = "link_units"
    INJECT_PARAMETERS = "inject_parameters"
    FACTOR_GLOBALS = "factor_globals"
    UNIFY_ENVIRONMENT = "unify_environment"
    VALIDATE = "validate"
    RESOLVE_AND_FLATTEN = "resolve_and_flatten"
    ANALYSE = "analyse"
    SERIALIZE = "serialize"


class Category(Enum):
    """Category of a composition issue."""

    STRUCTURAL = "structural"  # Missing files, components, instances or variables
    TOPOLOGICAL = "topological"  # Invalid port pairings
    UNIT = "unit"  # Unresolved or incompatible units
    TOOLING = "tooling"  # Validator, importer and flattener errors
    ANALYSIS = "analysis"  # Analyser findings


class Severity(Enum):
    """Severity level of a composition issue."""

    ERROR = "error"  # Aborts the run at the end of the stage
    WARNING = "warning"  # Reported, run continues


@dataclass
class Issue:
    """A single composition issue."""

    stage: Stage
    category: Category
    severity: Severity
    message: str
    index: int = 0  # Position among the issues of the same stage
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"[{self.severity.value.upper()}] {self.stage.value}#{self.index} "
            f"{self.category.value}: {self.message}"
        )


class CompositionError(Exception):
    """Raised when a fatal stage finished with errors."""

    def __init__(self, issues: list[Issue]):
        self.issues = list(issues)
        lines = [str(issue) for issue in self.issues] or ["composition failed"]
        super().__init__("\n".join(lines))

    @property
    def stage(self) -> Optional[Stage]:
        return self.issues[0].stage if self.issues else None


@dataclass
class Diagnostics:
    """Ordered collection of the issues reported during one composition."""

    issues: list[Issue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """True if there are any errors."""
        return any(i.severity == Severity.ERROR for i in self.issues)

    @property
    def has_warnings(self) -> bool:
        """True if there are any warnings."""
        return any(i.severity == Severity.WARNING for i in self.issues)

    @property
    def errors(self) -> list[Issue]:
        """Get all errors."""
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Issue]:
        """Get all warnings."""
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def for_stage(self, stage: Stage) -> list[Issue]:
        """Get the issues reported by one stage."""
        return [i for i in self.issues if i.stage == stage]

    def add(self, stage: Stage, category: Category, severity: Severity, message: str, **details) -> Issue:
        """Add an issue, numbering it within its stage."""
        issue = Issue(
            stage=stage,
            category=category,
            severity=severity,
            message=message,
            index=len(self.for_stage(stage)),
            details=details,
        )
        self.issues.append(issue)
        return issue

    def add_error(self, stage: Stage, category: Category, message: str, **details) -> Issue:
        """Add an error."""
        return self.add(stage, category, Severity.ERROR, message, **details)

    def add_warning(self, stage: Stage, category: Category, message: str, **details) -> Issue:
        """Add a warning."""
        return self.add(stage, category, Severity.WARNING, message, **details)

    def check(self, stage: Stage) -> None:
        """
        Abort after a fatal stage.

        Raises:
            CompositionError: If the stage reported any error.
        """
        errors = [i for i in self.for_stage(stage) if i.severity == Severity.ERROR]
        if errors:
            raise CompositionError(errors)

    def summary(self) -> str:
        """Get a summary of the reported issues."""
        status = "FAILED" if self.has_errors else "OK"
        lines = [
            f"Composition: {status}",
            f"  Errors: {len(self.errors)}",
            f"  Warnings: {len(self.warnings)}",
        ]

        if self.issues:
            lines.append("\nIssues:")
            for issue in self.issues:
                lines.append(f"  - {issue}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()
