"""
Shared CellML fixtures: a units library and small component templates.
"""

import pytest

from cellcomposer import (
    CompositionGraph,
    EdgeInstance,
    NodeInstance,
    PortLabel,
    TemplateCatalogue,
    UnitLibrary,
)

HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'
CELLML = "http://www.cellml.org/cellml/2.0#"
MATHML = "http://www.w3.org/1998/Math/MathML"

UNITS = f"""{HEADER}<model xmlns="{CELLML}" name="units_library">
  <units name="m3">
    <unit units="metre" exponent="3"/>
  </units>
  <units name="m3_per_s">
    <unit units="metre" exponent="3"/>
    <unit units="second" exponent="-1"/>
  </units>
  <units name="ms">
    <unit prefix="milli" units="second"/>
  </units>
  <units name="mV">
    <unit prefix="milli" units="volt"/>
  </units>
</model>
"""

PUMP = f"""{HEADER}<model xmlns="{CELLML}" name="pump_module">
  <component name="pump">
    <variable name="q_out" units="m3_per_s" interface="public"/>
    <variable name="Q0" units="m3_per_s" interface="public" initial_value="1"/>
    <math xmlns="{MATHML}">
      <apply><eq/><ci>q_out</ci><ci>Q0</ci></apply>
    </math>
  </component>
</model>
"""

TANK = f"""{HEADER}<model xmlns="{CELLML}" name="tank_module">
  <component name="tank">
    <variable name="t" units="second" interface="public"/>
    <variable name="q_in" units="m3_per_s" interface="public"/>
    <variable name="V" units="m3" interface="public" initial_value="0"/>
    <math xmlns="{MATHML}">
      <apply><eq/>
        <apply><diff/><bvar><ci>t</ci></bvar><ci>V</ci></apply>
        <ci>q_in</ci>
      </apply>
    </math>
  </component>
</model>
"""

NEURON = f"""{HEADER}<model xmlns="{CELLML}" name="neuron_module">
  <component name="neuron">
    <variable name="R" units="ohm" interface="public" initial_value="1"/>
    <variable name="I" units="ampere" interface="public" initial_value="0.001"/>
    <variable name="V" units="volt" interface="public"/>
    <math xmlns="{MATHML}">
      <apply><eq/>
        <ci>V</ci>
        <apply><times/><ci>R</ci><ci>I</ci></apply>
      </apply>
    </math>
  </component>
</model>
"""

LEAKY = f"""{HEADER}<model xmlns="{CELLML}" name="leaky_module">
  <component name="leaky">
    <variable name="t" units="second" interface="public"/>
    <variable name="x" units="foo_unit" interface="public" initial_value="1"/>
    <math xmlns="{MATHML}">
      <apply><eq/>
        <apply><diff/><bvar><ci>t</ci></bvar><ci>x</ci></apply>
        <apply><minus/><ci>x</ci></apply>
      </apply>
    </math>
  </component>
</model>
"""


@pytest.fixture
def units_library():
    return UnitLibrary("units.cellml", UNITS)


@pytest.fixture
def template_sources():
    return {
        "pump.cellml": PUMP,
        "tank.cellml": TANK,
        "neuron.cellml": NEURON,
        "leaky.cellml": LEAKY,
    }


@pytest.fixture
def catalogue(template_sources):
    return TemplateCatalogue.from_sources(template_sources)


def pump(node_id, name=None, aggregating=False):
    """A pump instance exposing its outflow on an exit port."""
    return NodeInstance(
        id=node_id,
        name=name or node_id,
        source_file="pump.cellml",
        component="pump",
        ports=[PortLabel("flow", "exit", ["q_out"], aggregating=aggregating)],
    )


def tank(node_id, name=None, aggregating=False):
    """A tank instance receiving its inflow on an entrance port."""
    return NodeInstance(
        id=node_id,
        name=name or node_id,
        source_file="tank.cellml",
        component="tank",
        ports=[PortLabel("flow", "entrance", ["q_in"], aggregating=aggregating)],
    )


@pytest.fixture
def pump_to_tank():
    """A single pump feeding a single tank."""
    return CompositionGraph(
        nodes=[pump("p1", "pump"), tank("t1", "tank")],
        edges=[EdgeInstance("p1", "t1")],
    )


@pytest.fixture
def three_pumps_to_tank():
    """Three pumps feeding one tank through an aggregating entrance."""
    return CompositionGraph(
        nodes=[
            pump("p1", "pump_1"),
            pump("p2", "pump_2"),
            pump("p3", "pump_3"),
            tank("t1", "tank", aggregating=True),
        ],
        edges=[EdgeInstance("p1", "t1"), EdgeInstance("p2", "t1"), EdgeInstance("p3", "t1")],
    )


@pytest.fixture
def pump_node():
    return pump


@pytest.fixture
def tank_node():
    return tank
