"""
Shared environment: one time variable for the whole composed model.
"""

import logging
from collections.abc import Sequence

from libcellml import Component, Model, Variable

from cellcomposer.io.cellml import connect, units_name
from cellcomposer.units import UnitResolver

logger = logging.getLogger(__name__)


def unify_environment(
    model: Model,
    components: Sequence[Component],
    resolver: UnitResolver,
    component_name: str = "environment",
    time_variable: str = "time",
    time_unit: str = "second",
    aliases: Sequence[str] = ("t", "time"),
) -> tuple[Component, int]:
    """
    Add the environment component and link local time variables to it.

    Each component's first variable named after one of the aliases is made
    equivalent to the shared time variable when its units are compatible with
    the time unit; otherwise it is left alone.

    Args:
        model: The output model
        components: Components that may carry a local time variable
        resolver: Decides units compatibility
        component_name: Name of the environment component
        time_variable: Name of the shared time variable
        time_unit: Units of the shared time variable
        aliases: Local variable names treated as time

    Returns:
        The environment component and the number of linked variables
    """
    environment = Component(component_name)
    time = Variable(time_variable)
    time.setUnits(time_unit)
    time.setInterfaceType("public")
    environment.addVariable(time)
    model.addComponent(environment)

    links = 0
    for component in components:
        local = next((component.variable(a) for a in aliases if component.variable(a) is not None), None)
        if local is None:
            continue
        if not resolver.compatible(units_name(local), time_unit):
            logger.debug(
                "Not linking '%s.%s': units '%s' are not compatible with '%s'",
                component.name(),
                local.name(),
                units_name(local),
                time_unit,
            )
            continue
        connect(time, local)
        links += 1

    logger.info("Linked %d components to '%s.%s'", links, component_name, time_variable)
    return environment, links
