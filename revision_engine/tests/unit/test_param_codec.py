"""Unit tests for revision_engine.params.codec."""

from __future__ import annotations

import pytest
from revision_engine.errors import ConfigParseError
from revision_engine.params import ParameterSet, decode_params, encode_params


class TestEncodeDecode:
    def test_round_trip_preserves_values_and_order(self):
        params = ParameterSet(
            {
                "zeta": "last-alphabetically-first-inserted",
                "count": 3,
                "ratio": 0.5,
                "enabled": True,
                "missing": None,
                "nested": {"b": [1, "two", {"c": False}], "a": {}},
                "text": "with \"quotes\", = signs, newlines\nand unicode ✓",
            }
        )

        decoded = decode_params(encode_params(params))

        assert decoded == params
        assert list(decoded) == list(params)
        assert list(decoded["nested"]) == ["b", "a"]

    def test_empty_set(self):
        assert encode_params(ParameterSet()) == "{}"
        assert decode_params("{}") == ParameterSet()

    def test_empty_string_decodes_to_empty_set(self):
        assert decode_params("") == ParameterSet()

    def test_encoding_is_a_single_line(self):
        encoded = encode_params(ParameterSet({"a": "x\ny"}))
        assert "\n" not in encoded

    def test_type_distinctions_survive(self):
        decoded = decode_params(encode_params(ParameterSet({"n": 1, "s": "1", "b": True})))
        assert decoded["n"] == 1 and isinstance(decoded["n"], int)
        assert decoded["s"] == "1"
        assert decoded["b"] is True


class TestDecodeErrors:
    def test_invalid_json(self):
        with pytest.raises(ConfigParseError, match="Invalid encoded parameters"):
            decode_params("{broken")

    @pytest.mark.parametrize("encoded", ["[]", "1", '"text"', "null"])
    def test_non_object(self, encoded: str):
        with pytest.raises(ConfigParseError, match="JSON object"):
            decode_params(encoded)

    def test_non_finite_number_rejected(self):
        with pytest.raises(ConfigParseError, match="Invalid encoded parameters"):
            decode_params('{"x": NaN}')


class TestNonFiniteValues:
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_rejected_when_building_a_set(self, value: float):
        with pytest.raises(ValueError, match="Unsupported parameter value"):
            ParameterSet({"x": value})

    def test_nested_value_rejected(self):
        with pytest.raises(ValueError):
            ParameterSet({"outer": {"inner": [1.0, float("nan")]}})

    def test_every_valid_set_decodes_equal(self):
        params = ParameterSet({"b": 2, "a": 1.25, "c": [-0.0, 1e300]})
        assert decode_params(encode_params(params)) == params
