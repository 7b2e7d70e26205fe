"""Tests for the grammar and the canonicalizer."""

import pytest

from ai_calculator.canonicalizer import canonicalize
from ai_calculator.errors import DisallowedToken, ParseFailure
from ai_calculator.grammar import parse, tokenize
from ai_calculator.models import AngleMode


class TestTokenize:
    """Test the full-string grammar gate."""

    def test_tokenize_expression(self):
        """Test splitting a valid expression into tokens."""
        tokens = tokenize("2.5 * SIN(30 deg)")
        assert [t.text for t in tokens] == ["2.5", "*", "sin", "(", "30", "deg", ")"]
        assert [t.kind for t in tokens] == ["number", "op", "name", "lparen", "number", "name", "rparen"]

    def test_tokenize_exponent_number(self):
        """Test that scientific notation is a single number."""
        assert [t.text for t in tokenize("1e5 + 2e")] == ["1e5", "+", "2", "e"]

    @pytest.mark.parametrize("text", ["2 + foo", "2 $ 3", "__import__('os')", "x = 1", "2 % 3"])
    def test_disallowed_input(self, text):
        """Test that anything outside the grammar is rejected before parsing."""
        with pytest.raises(DisallowedToken):
            tokenize(text)


class TestParse:
    """Test parsing failures."""

    @pytest.mark.parametrize("text", ["", "2 +", "(2 + 3", "2 + 3)", "deg", "1.2.3", "sin(2,", "* 3"])
    def test_malformed_input(self, text):
        """Test that malformed expressions raise ParseFailure."""
        with pytest.raises(ParseFailure):
            parse(text)

    def test_unit_error_message(self):
        """Test that a dangling unit word is reported clearly."""
        with pytest.raises(ParseFailure, match="must follow a value"):
            parse("deg + 1")


class TestCanonicalize:
    """Test canonical rewriting."""

    def test_single_argument_log_is_base_ten(self):
        """Test log(x) -> log10(x)."""
        assert canonicalize("log(100)").text == "log10(100)"

    def test_two_argument_log_unchanged(self):
        """Test that an explicit base is left alone."""
        assert canonicalize("log(100, 2)").text == "log(100, 2)"

    def test_nested_logs(self):
        """Test that nested and adjacent logs are rewritten independently."""
        assert canonicalize("log(log(100))").text == "log10(log10(100))"
        assert canonicalize("ln(log(1000)) + log(8, 2)").text == "ln(log10(1000)) + log(8, 2)"

    def test_ln_kept_natural(self):
        """Test that ln is not rewritten."""
        assert canonicalize("ln(e)").text == "ln(e)"

    def test_degree_literal(self):
        """Test that a deg literal becomes a radian conversion."""
        assert canonicalize("30 deg").text == "30 * pi / 180"
        assert canonicalize("(10 + 20) deg").text == "(10 + 20) * pi / 180"

    def test_radian_literal(self):
        """Test that a rad literal is an identity conversion."""
        assert canonicalize("2 rad + 1").text == "2 + 1"

    def test_deg_mode_wraps_trig(self):
        """Test that DEG mode marks bare trig arguments as degrees."""
        assert canonicalize("sin(30)", AngleMode.DEG).text == "sin(30 * pi / 180)"
        assert canonicalize("cos(60) + tan(45)", AngleMode.DEG).text == (
            "cos(60 * pi / 180) + tan(45 * pi / 180)"
        )

    def test_deg_mode_respects_explicit_units(self):
        """Test that arguments with explicit units are not converted twice."""
        assert canonicalize("sin(30 deg)", AngleMode.DEG).text == "sin(30 * pi / 180)"
        assert canonicalize("sin(1 rad)", AngleMode.DEG).text == "sin(1)"

    def test_deg_mode_nested_trig(self):
        """Test that both nested trig arguments are converted."""
        assert canonicalize("sin(sin(30))", AngleMode.DEG).text == (
            "sin(sin(30 * pi / 180) * pi / 180)"
        )

    def test_rad_mode_leaves_trig(self):
        """Test that RAD mode does not touch trig arguments."""
        assert canonicalize("sin(30)", AngleMode.RAD).text == "sin(30)"

    def test_power_is_right_associative(self):
        """Test the rendering of chained powers."""
        assert canonicalize("2^3^2").text == "2 ^ 3 ^ 2"
        assert canonicalize("(2^3)^2").text == "(2 ^ 3) ^ 2"

    def test_implicit_multiplication(self):
        """Test that juxtaposition becomes explicit multiplication."""
        assert canonicalize("2pi").text == "2 * pi"
        assert canonicalize("3(4 + 1)").text == "3 * (4 + 1)"

    def test_case_normalized(self):
        """Test that names are lower-cased."""
        assert canonicalize("SIN(PI) + E").text == "sin(pi) + e"

    @pytest.mark.parametrize("text", ["1 + 2 * 3", "(1 + 2) * 3", "2 ^ 10 / 4 - 7", "-3 + 4", "0.5 * 8"])
    def test_arithmetic_is_noop_and_idempotent(self, text):
        """Test that pure arithmetic is unchanged and canonicalization is idempotent."""
        first = canonicalize(text).text
        assert first == text
        assert canonicalize(first).text == first

    def test_list_rendering(self):
        """Test rendering of a top-level list."""
        assert canonicalize("1 + 1, log(10)").text == "1 + 1, log10(10)"
