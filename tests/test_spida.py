"""Tests for pole_recon.spida module."""

import json

import pytest

from conftest import make_design, make_location
from pole_recon.errors import MissingFieldError, SourceFormatError
from pole_recon.spida import (
    build_spec,
    design_loading,
    find_design,
    first_coords,
    load_spida_file,
    loads,
    location_coords,
    parse_spida_document,
)


def _doc(*locations):
    return {"leads": [{"locations": list(locations)}]}


class TestParseSpidaDocument:
    """Tests for parse_spida_document function."""

    def test_extracts_every_labelled_location(self, spida_doc):
        parsed = parse_spida_document(spida_doc)
        assert set(parsed.poles) == {"100", "200"}
        assert [p.raw_id for p in parsed.records] == ["1-PL100", "2-PL200"]

    def test_loadings_from_measured_and_recommended(self, spida_doc):
        pole = parse_spida_document(spida_doc).poles["100"]
        assert pole.existing_loading == pytest.approx(60.0)
        assert pole.final_loading == pytest.approx(70.0)
        assert pole.passes_final is True

    def test_spec_from_measured_design(self, spida_doc):
        pole = parse_spida_document(spida_doc).poles["200"]
        assert pole.specification == "40-3 Southern Pine"

    def test_missing_loading_is_zero(self):
        parsed = parse_spida_document(_doc(make_location("PL9")))
        pole = parsed.poles["9"]
        assert pole.existing_loading == 0.0
        assert pole.final_loading == 0.0

    def test_unlabelled_location_skipped(self):
        parsed = parse_spida_document(_doc(make_location(""), make_location("PL1", 10, 20)))
        assert len(parsed) == 1
        assert parsed.skipped == 1

    def test_multiple_leads(self):
        doc = {"leads": [
            {"locations": [make_location("PL1", 10, 20)]},
            {"locations": [make_location("PL2", 30, 40)]},
        ]}
        assert set(parse_spida_document(doc).poles) == {"1", "2"}

    def test_root_list_read_as_leads(self):
        doc = [{"locations": [make_location("PL1", 10, 20)]}]
        assert set(parse_spida_document(doc).poles) == {"1"}

    def test_duplicate_labels_flagged(self):
        parsed = parse_spida_document(_doc(make_location("PL7", 10, 20), make_location("pl-007", 30, 40)))
        assert parsed.duplicates == {"7"}
        assert len(parsed.records) == 2

    def test_missing_leads_raises(self):
        """Test a document without leads is a format error naming the field."""
        with pytest.raises(SourceFormatError) as exc:
            parse_spida_document({"label": "JOB"})
        assert isinstance(exc.value, MissingFieldError)
        assert exc.value.field == "leads"

    def test_non_object_raises(self):
        with pytest.raises(SourceFormatError):
            parse_spida_document("leads")


class TestFindDesign:
    """Tests for design layer lookup."""

    def test_by_layer_type(self):
        loc = make_location("PL1", 10, 20)
        assert find_design(loc, "measured")["layerType"] == "Measured"

    def test_by_label_fallback(self):
        design = make_design("Measured", 10)
        del design["layerType"]
        loc = {"label": "PL1", "designs": [design]}
        assert find_design(loc, "measured") is design

    def test_missing(self):
        assert find_design({"designs": []}, "recommended") is None
        assert find_design({}, "recommended") is None


class TestBuildSpec:
    """Tests for SPIDA pole spec strategies."""

    def test_client_item(self):
        assert build_spec(make_design("Measured", height_m=13.716, class_of_pole="2")) == "45-2 Southern Pine"

    def test_pole_level_fields(self):
        design = {"structure": {"pole": {
            "classOfPole": "4", "height": {"unit": "FOOT", "value": 35}, "species": "douglas fir",
        }}}
        assert build_spec(design) == "35-4 Douglas Fir"

    def test_alias(self):
        design = {"structure": {"pole": {"clientItemAlias": "40-3 SP"}}}
        assert build_spec(design) == "40-3 SP"

    def test_unknown(self):
        assert build_spec(None) == "Unknown"
        assert build_spec({"structure": {"pole": {}}}) == "Unknown"


class TestDesignLoading:
    """Tests for design_loading function."""

    def test_takes_largest_pole_stress(self):
        design = make_design("Measured", 40.0)
        design["analysis"].append({"id": "Extreme Wind", "results": [
            {"component": "Pole", "analysisType": "STRESS", "actual": 104.5, "passes": False},
        ]})
        assert design_loading(design) == (pytest.approx(104.5), False)

    def test_ignores_other_components(self):
        design = make_design("Measured")
        design["analysis"].append({"results": [
            {"component": "Anchor", "analysisType": "FORCE", "actual": 80.0},
        ]})
        assert design_loading(design) == (None, True)

    def test_analysis_object(self):
        design = {"analysis": {"results": [
            {"component": "Pole", "analysisType": "STRESS", "actual": 33.0},
        ]}}
        assert design_loading(design)[0] == pytest.approx(33.0)

    def test_flat_results_with_summary(self):
        design = {"results": [
            {"component": "Pole", "analysisType": "STRESS", "summary": {"loadingPercent": "47.5"}},
        ]}
        assert design_loading(design)[0] == pytest.approx(47.5)

    def test_stress_ratio_fallback(self):
        design = {"structure": {"pole": {"stressRatio": 0.625}}}
        assert design_loading(design) == (pytest.approx(62.5), True)

    def test_nothing_found(self):
        assert design_loading(None) == (None, True)
        assert design_loading({}) == (None, True)


class TestCoordinates:
    """Tests for coordinate strategies."""

    def test_geojson_point(self, spida_doc):
        loc = spida_doc["leads"][0]["locations"][0]
        assert location_coords(loc) == (pytest.approx(29.4241), pytest.approx(-98.4936))

    def test_flat_fields(self):
        assert location_coords({"latitude": 29.5, "longitude": -98.5}) == (29.5, -98.5)

    def test_gps_block(self):
        assert location_coords({"gps": {"lat": "29.5", "lng": "-98.5"}}) == (29.5, -98.5)

    def test_measured_structure(self):
        loc = make_location("PL1")
        loc["designs"][0]["structure"]["poleLocation"] = {"coordinates": [-98.1, 29.1]}
        assert location_coords(loc) == (29.1, -98.1)

    def test_rejects_zero_and_out_of_range(self):
        assert location_coords({"latitude": 0, "longitude": 0}) is None
        assert location_coords({"latitude": 95, "longitude": 10}) is None

    def test_first_coords_skips_locations_without(self, spida_doc):
        locations = spida_doc["leads"][0]["locations"]
        locations.reverse()
        assert first_coords(spida_doc) == (pytest.approx(29.4241), pytest.approx(-98.4936))

    def test_first_coords_none(self):
        assert first_coords(_doc(make_location("PL1"))) is None


class TestLoading:
    """Tests for JSON decoding."""

    def test_invalid_json(self):
        with pytest.raises(SourceFormatError):
            loads("{not json")

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceFormatError):
            load_spida_file(tmp_path / "missing.json")

    def test_round_trip_file(self, tmp_path, spida_doc):
        path = tmp_path / "job.json"
        path.write_text(json.dumps(spida_doc), encoding="utf-8")
        assert load_spida_file(path)["label"] == "JOB-2024-117"
