"""
Tests for the template catalogue.
"""

import pytest

from cellcomposer import TemplateCatalogue, TemplateLookupError
from cellcomposer.io import is_cellml


class TestTemplateCatalogue:
    def test_templates_list_public_variables(self, catalogue) -> None:
        pump = catalogue.get("pump.cellml", "pump")
        assert pump.key == ("pump.cellml", "pump")
        assert [v.name for v in pump.port_options] == ["q_out", "Q0"]
        assert pump.port_options[0].units == "m3_per_s"

    def test_templates_over_all_files(self, catalogue) -> None:
        names = {t.name for t in catalogue.templates()}
        assert names == {"pump", "tank", "neuron", "leaky"}

    def test_unparsable_file_is_skipped(self, template_sources) -> None:
        catalogue = TemplateCatalogue.from_sources({**template_sources, "broken.cellml": "not xml"})
        assert "broken.cellml" in catalogue
        assert {t.name for t in catalogue.templates()} == {"pump", "tank", "neuron", "leaky"}
        with pytest.raises(TemplateLookupError):
            catalogue.templates("broken.cellml")

    def test_missing_lookups(self, catalogue) -> None:
        with pytest.raises(TemplateLookupError):
            catalogue.component("nowhere.cellml", "pump")
        with pytest.raises(TemplateLookupError):
            catalogue.component("pump.cellml", "valve")
        assert catalogue.get("pump.cellml", "valve") is None

    def test_documents_parsed_once(self, catalogue) -> None:
        first = catalogue.load("pump.cellml")
        assert catalogue.load("pump.cellml") is first
        catalogue.clear()
        assert catalogue.get("pump.cellml", "pump") is not None

    def test_from_files(self, tmp_path, template_sources) -> None:
        path = tmp_path / "pump.cellml"
        path.write_text(template_sources["pump.cellml"])
        catalogue = TemplateCatalogue.from_files([path])
        assert catalogue.filenames == ["pump.cellml"]


def test_is_cellml(template_sources):
    assert is_cellml(template_sources["tank.cellml"])
    assert not is_cellml("<model")
