"""
Tests for units resolution against units libraries.
"""

from libcellml import Model

from cellcomposer import STANDARD_UNITS, Category, Diagnostics, UnitLibrary, UnitResolver, extract_units
from cellcomposer.io import parse_model

LIBRARY_A = """<?xml version="1.0" encoding="UTF-8"?>
<model xmlns="http://www.cellml.org/cellml/2.0#" name="a">
  <units name="mmHg">
    <unit units="pascal" multiplier="133.322"/>
  </units>
</model>
"""

LIBRARY_B = """<?xml version="1.0" encoding="UTF-8"?>
<model xmlns="http://www.cellml.org/cellml/2.0#" name="b">
  <units name="mmHg">
    <unit units="pascal" multiplier="133"/>
  </units>
  <units name="ms">
    <unit prefix="milli" units="second"/>
  </units>
</model>
"""


TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<model xmlns="http://www.cellml.org/cellml/2.0#" name="vessel_module">
  <units name="kPa">
    <unit prefix="kilo" units="pascal"/>
  </units>
  <units name="mmHg">
    <unit multiplier="0.133322" units="kPa"/>
  </units>
</model>
"""


def make_resolver(*libraries):
    model = Model("composed")
    diagnostics = Diagnostics()
    return UnitResolver(model, libraries, diagnostics), model, diagnostics


class TestUnitResolver:
    def test_standard_units_need_nothing(self) -> None:
        resolver, model, diagnostics = make_resolver()
        assert len(STANDARD_UNITS) == 31
        assert resolver.ensure_unit_imported("second")
        assert resolver.ensure_unit_imported("")
        assert model.unitsCount() == 0
        assert not diagnostics.issues

    def test_first_match_wins(self) -> None:
        resolver, model, _ = make_resolver(UnitLibrary("a.cellml", LIBRARY_A), UnitLibrary("b.cellml", LIBRARY_B))
        assert resolver.ensure_unit_imported("mmHg")
        units = model.units("mmHg")
        assert units.isImport()
        assert units.importSource().url() == "a.cellml"
        assert units.importReference() == "mmHg"
        assert resolver.imported == {"mmHg": "a.cellml"}

    def test_import_is_idempotent(self) -> None:
        resolver, model, _ = make_resolver(UnitLibrary("a.cellml", LIBRARY_A))
        assert resolver.ensure_unit_imported("mmHg")
        assert resolver.ensure_unit_imported("mmHg")
        assert model.unitsCount() == 1

    def test_libraries_parsed_lazily_and_once(self) -> None:
        resolver, _, _ = make_resolver(UnitLibrary("a.cellml", LIBRARY_A), UnitLibrary("b.cellml", LIBRARY_B))
        resolver.ensure_unit_imported("mmHg")
        assert resolver.parsed_libraries == ["a.cellml"]
        resolver.ensure_unit_imported("ms")
        assert resolver.parsed_libraries == ["a.cellml", "b.cellml"]

    def test_import_source_shared_per_library(self) -> None:
        resolver, model, _ = make_resolver(UnitLibrary("b.cellml", LIBRARY_B))
        resolver.ensure_unit_imported("mmHg")
        resolver.ensure_unit_imported("ms")
        assert model.unitsCount() == 2
        assert list(resolver.import_sources) == ["b.cellml"]

    def test_unparsable_library_skipped_with_warning(self) -> None:
        resolver, _, diagnostics = make_resolver(UnitLibrary("bad.cellml", "not xml"), UnitLibrary("b.cellml", LIBRARY_B))
        assert resolver.ensure_unit_imported("ms")
        assert resolver.imported == {"ms": "b.cellml"}
        assert [w.details["library"] for w in diagnostics.warnings] == ["bad.cellml"]
        assert not diagnostics.has_errors

    def test_unresolved_units_warn_once(self) -> None:
        resolver, model, diagnostics = make_resolver(UnitLibrary("a.cellml", LIBRARY_A))
        assert not resolver.ensure_unit_imported("foo_unit")
        assert not resolver.ensure_unit_imported("foo_unit")
        assert resolver.unresolved == ["foo_unit"]
        assert model.unitsCount() == 0
        assert len(diagnostics.warnings) == 1
        assert diagnostics.warnings[0].category == Category.UNIT
        assert "foo_unit" in diagnostics.warnings[0].message

    def test_template_units_copied_before_libraries(self) -> None:
        template, _ = parse_model(TEMPLATE)
        resolver, model, diagnostics = make_resolver(UnitLibrary("b.cellml", LIBRARY_B))
        assert resolver.ensure_unit_imported("mmHg", template=template)
        assert not model.units("mmHg").isImport()
        assert model.hasUnits("kPa")
        assert resolver.local == {"mmHg": "vessel_module", "kPa": "vessel_module"}
        assert resolver.imported == {}
        assert resolver.parsed_libraries == []
        assert not diagnostics.warnings

    def test_template_copy_clears_earlier_unresolved(self) -> None:
        template, _ = parse_model(TEMPLATE)
        resolver, model, _ = make_resolver()
        assert not resolver.ensure_unit_imported("kPa")
        assert resolver.ensure_unit_imported("kPa", template=template)
        assert resolver.unresolved == []
        assert model.hasUnits("kPa")

    def test_library_models_only_for_used_libraries(self) -> None:
        resolver, _, _ = make_resolver(UnitLibrary("a.cellml", LIBRARY_A), UnitLibrary("b.cellml", LIBRARY_B))
        resolver.ensure_unit_imported("mmHg")
        assert list(resolver.library_models()) == ["a.cellml"]
        resolver.close()
        assert resolver.parsed_libraries == []


class TestCompatibility:
    def test_same_name(self) -> None:
        resolver, _, _ = make_resolver()
        assert resolver.compatible("anything", "anything")

    def test_standard_against_imported(self) -> None:
        resolver, _, _ = make_resolver(UnitLibrary("b.cellml", LIBRARY_B))
        resolver.ensure_unit_imported("ms")
        assert resolver.compatible("second", "ms")
        assert not resolver.compatible("volt", "ms")

    def test_unknown_definition_is_incompatible(self) -> None:
        resolver, _, _ = make_resolver()
        assert not resolver.compatible("second", "foo_unit")


def test_extract_units():
    text, count = extract_units(LIBRARY_B)
    assert count == 2
    model, errors = parse_model(text)
    assert not errors
    assert model.componentCount() == 0
    assert model.hasUnits("ms")


def test_extract_units_from_garbage():
    assert extract_units("not xml") == (None, 0)
