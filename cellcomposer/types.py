"""
Type definitions shared by the composition stages.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Optional, Union


class PortKind(Enum):
    """Kind of a port label on a node instance."""

    ENTRANCE = "entrance"  # Receives from an exit port
    EXIT = "exit"  # Feeds an entrance port
    GENERAL = "general"  # Symmetric, connects only to general ports

    @classmethod
    def parse(cls, value: Union[PortKind, str]) -> PortKind:
        """
        Convert a port kind name to a PortKind.

        Accepts the enum itself, its value ("exit") or the plural editor
        spelling ("exit_ports").

        Raises:
            ValueError: If the name is not a known port kind.
        """
        if isinstance(value, PortKind):
            return value
        name = value.strip().lower()
        if name.endswith("_ports"):
            name = name[: -len("_ports")]
        for kind in cls:
            if kind.value == name:
                return kind
        raise ValueError(f"Unknown port kind: {value!r}")


class PortMismatch(Enum):
    """Reason two port kinds cannot be connected."""

    SHARED_EXIT_PORTS = "shared_exit_ports"
    SHARED_ENTRANCE_PORTS = "shared_entrance_ports"
    EXIT_CONNECTED_TO_GENERAL = "exit_connected_to_general"
    ENTRANCE_CONNECTED_TO_GENERAL = "entrance_connected_to_general"


_PORT_PAIRS: dict[tuple[PortKind, PortKind], Optional[PortMismatch]] = {
    (PortKind.GENERAL, PortKind.GENERAL): None,
    (PortKind.ENTRANCE, PortKind.EXIT): None,
    (PortKind.EXIT, PortKind.ENTRANCE): None,
    (PortKind.EXIT, PortKind.EXIT): PortMismatch.SHARED_EXIT_PORTS,
    (PortKind.ENTRANCE, PortKind.ENTRANCE): PortMismatch.SHARED_ENTRANCE_PORTS,
    (PortKind.EXIT, PortKind.GENERAL): PortMismatch.EXIT_CONNECTED_TO_GENERAL,
    (PortKind.GENERAL, PortKind.EXIT): PortMismatch.EXIT_CONNECTED_TO_GENERAL,
    (PortKind.ENTRANCE, PortKind.GENERAL): PortMismatch.ENTRANCE_CONNECTED_TO_GENERAL,
    (PortKind.GENERAL, PortKind.ENTRANCE): PortMismatch.ENTRANCE_CONNECTED_TO_GENERAL,
}


def port_mismatch(source: PortKind, target: PortKind) -> Optional[PortMismatch]:
    """Return why two port kinds cannot be connected, or None if they can."""
    return _PORT_PAIRS[(source, target)]


class VariableClass(Enum):
    """How a template variable is provided in the composed model."""

    CONSTANT = "constant"  # Instance specific parameter
    GLOBAL_CONSTANT = "global_constant"  # Parameter shared by name
    VARIABLE = "variable"  # Computed by the model


class ParameterScope(Enum):
    """Outcome of global parameter factoring."""

    SPECIFIC = auto()  # Exactly one connection
    GLOBAL = auto()  # Shared by several variables
    REMOVED = auto()  # Never connected
