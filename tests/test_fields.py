"""Tests for pole_recon.fields module."""

import logging
import math

import pytest

from pole_recon.fields import dig, is_blank, lookup, to_feet, to_float, to_percent, to_text, unwrap


class TestLookup:
    """Tests for the alias-driven field accessor."""

    def test_exact_match(self):
        """Test exact key match."""
        assert lookup({"scid": 12}, ["scid"]) == 12

    def test_case_insensitive_match(self):
        """Test key differing only in case."""
        assert lookup({"SCID": 12}, ["scid"]) == 12

    def test_fuzzy_candidate_in_key(self):
        """Test candidate found inside a longer column name."""
        assert lookup({"existing_capacity_% (calc)": "55%"}, ["existing_capacity"]) == "55%"

    def test_fuzzy_key_in_candidate(self):
        """Test a shorter column name found inside the candidate."""
        assert lookup({"pl_num": "PL7"}, ["pl_number"]) == "PL7"

    def test_short_keys_do_not_fuzzy_match(self):
        """Test that a key like 'id' is not taken for 'scid'."""
        assert lookup({"id": "-Nx81"}, ["scid"]) is None

    def test_exact_beats_earlier_fuzzy(self):
        """Test an exact hit on a later alias wins over a fuzzy hit on an earlier one."""
        row = {"pole_number_legacy": "OLD", "PL_number": "PL55"}
        assert lookup(row, ["pole_number", "PL_number"]) == "PL55"

    def test_candidate_order_within_tier(self):
        """Test earlier aliases win inside the same tier."""
        row = {"DLOC_number": "D1", "PL_number": "PL2"}
        assert lookup(row, ["PL_number", "DLOC_number"]) == "PL2"

    def test_blank_values_are_not_hits(self):
        """Test None, NaN and empty strings fall through to the next key."""
        row = {"scid": None, "SCID": float("nan"), "scid_number": " ", "SCID Number": 7}
        assert lookup(row, ["scid"]) == 7

    def test_missing_returns_none(self):
        """Test absence is signalled by None."""
        assert lookup({"height": 40}, ["scid", "pole_tag"]) is None

    def test_non_mapping_returns_none(self):
        """Test odd inputs never raise."""
        assert lookup(None, ["scid"]) is None
        assert lookup([], ["scid"]) is None
        assert lookup({}, ["scid"]) is None

    def test_non_string_keys(self):
        """Test integer column keys are tolerated."""
        assert lookup({0: "x", "Pole Tag": "PL9"}, ["pole_tag"]) is None
        assert lookup({0: "x", "pole_tag": "PL9"}, ["pole_tag"]) == "PL9"

    def test_fuzzy_can_be_disabled(self):
        """Test a prefix column is not taken when fuzzy matching is off."""
        assert lookup({"pole_species": "SPC"}, ["pole_spec"], fuzzy=False) is None
        assert lookup({"pole_species": "SPC"}, ["pole_spec"]) == "SPC"

    def test_katapult_attribute_unwrapped(self):
        """Test {'-Imported': value} wrappers are unwrapped."""
        assert lookup({"scid": {"-Imported": "14"}}, ["scid"]) == "14"

    def test_resolution_logged(self, caplog):
        """Test every hit emits a debug record carrying the resolved value."""
        with caplog.at_level(logging.DEBUG, logger="pole_recon.fields"):
            lookup({"SCID": 3}, ["scid"], "SCID")
        record = caplog.records[-1]
        assert record.tier == "case-insensitive"
        assert record.key == "SCID"
        assert record.value == 3


class TestCoercion:
    """Tests for numeric helpers."""

    def test_to_float_strips_symbols(self):
        assert to_float("58.2%") == pytest.approx(58.2)
        assert to_float(" 12 pct") == pytest.approx(12.0)

    def test_to_float_bad_values(self):
        assert to_float("n/a") == 0.0
        assert to_float("--") == 0.0
        assert to_float(None) == 0.0
        assert to_float(True) == 0.0

    def test_to_float_dict(self):
        assert to_float({"value": "33.5"}) == pytest.approx(33.5)

    def test_to_percent_rescales_fractions(self):
        assert to_percent(0.42) == pytest.approx(42.0)
        assert to_percent("0.7") == pytest.approx(70.0)

    def test_to_percent_keeps_percents(self):
        assert to_percent(42) == pytest.approx(42.0)
        assert to_percent("42%") == pytest.approx(42.0)
        assert to_percent(1) == pytest.approx(1.0)
        assert to_percent(0) == 0.0

    def test_to_feet_metres(self):
        assert to_feet({"unit": "METRE", "value": 12.192}) == 40
        assert to_feet(13.716) == 45

    def test_to_feet_feet(self):
        assert to_feet({"unit": "FOOT", "value": 45}) == 45
        assert to_feet("45'") == 45
        assert to_feet("40′") == 40

    def test_to_feet_invalid(self):
        assert to_feet(None) is None
        assert to_feet({"unit": "METRE"}) is None
        assert to_feet("tall") is None


class TestHelpers:
    """Tests for small helpers."""

    def test_is_blank(self):
        assert is_blank(None)
        assert is_blank(math.nan)
        assert is_blank("  ")
        assert not is_blank(0)
        assert not is_blank("0")

    def test_unwrap_single_entry(self):
        assert unwrap({"-Nab12": "pole"}) == "pole"
        assert unwrap({"a": 1, "b": 2}) == {"a": 1, "b": 2}

    def test_to_text(self):
        assert to_text(12.0) == "12"
        assert to_text(" PL5 ") == "PL5"
        assert to_text(None) == ""

    def test_dig(self):
        doc = {"a": {"b": [{"c": 1}]}}
        assert dig(doc, "a", "b", 0, "c") == 1
        assert dig(doc, "a", "x", "c") is None
        assert dig(doc, "a", "b", 3) is None
        assert dig(None, "a") is None
