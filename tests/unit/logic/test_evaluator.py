"""Tests for RuleEvaluator - AND-chained field/value comparisons.

Tests cover:
- Implicit equality and negation
- Explicit operators (lexical, numeric, regex)
- Short-circuit evaluation
- Error propagation
- Non-destructive handling of rule data
- Structural validation
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from conflogic.config import get_settings
from conflogic.config.models.logic import LogicConfig
from conflogic.logic import evaluate, get_default_evaluator
from conflogic.logic.evaluator import RuleEvaluator
from conflogic.logic.exceptions import (
    ConfigError,
    EvaluationError,
    SecurityError,
    TemplateError,
    UnknownOperatorError,
)
from conflogic.logic.models import Rule


# =============================================================================
# Tests: RuleEvaluator.evaluate() - Documented Scenarios
# =============================================================================


class TestEvaluateScenarios:
    """End-to-end rule scenarios."""

    def test_variable_equals_literal(self, evaluator):
        """[$var, foo] holds when var is foo."""
        assert evaluator.evaluate(["$var", "foo"], {"var": "foo"}) is True

    def test_negated_variable_equals_literal(self, evaluator):
        """[!$var, foo] fails when var is foo."""
        assert evaluator.evaluate(["!$var", "foo"], {"var": "foo"}) is False

    def test_like_operator(self, evaluator):
        """like matches a regex prefix."""
        assert evaluator.evaluate(["$var", {"like": "^foo"}], {"var": "foobar"}) is True

    def test_numeric_equality(self, evaluator):
        """== compares numerically."""
        assert evaluator.evaluate(["$var", {"==": "5"}], {"var": "5"}) is True

    def test_second_pair_fails(self, evaluator):
        """AND chain fails when any pair fails."""
        rule = ["$v1", "foo", "$v2", "bar"]

        assert evaluator.evaluate(rule, {"v1": "foo", "v2": "baz"}) is False

    def test_inline_code_regex_rejected(self, evaluator):
        """(?{ ... }) raises SecurityError whatever the variables."""
        rule = ["$var", {"=~": "(?{ 1 })"}]

        with pytest.raises(SecurityError):
            evaluator.evaluate(rule, {"var": "anything"})
        with pytest.raises(SecurityError):
            evaluator.evaluate(rule, {})


# =============================================================================
# Tests: RuleEvaluator.evaluate() - Semantics
# =============================================================================


class TestEvaluateSemantics:
    """Tests for AND, NOT and operator semantics."""

    def test_empty_rule_is_true(self, evaluator):
        """Empty AND evaluates to True."""
        assert evaluator.evaluate([], {}) is True

    def test_all_pairs_true(self, evaluator):
        """Every pair holding makes the rule hold."""
        rule = ["$v1", "foo", "$v2", "bar"]

        assert evaluator.evaluate(rule, {"v1": "foo", "v2": "bar"}) is True

    def test_negation_of_unequal_is_true(self, evaluator):
        """!$var holds when var differs."""
        assert evaluator.evaluate(["!$var", "foo"], {"var": "bar"}) is True

    def test_not_foo_and_not_bar(self, evaluator):
        """Negated pairs chain with AND."""
        rule = ["!$var", "foo", "!$var", "bar"]

        assert evaluator.evaluate(rule, {"var": "baz"}) is True
        assert evaluator.evaluate(rule, {"var": "bar"}) is False

    def test_interpolated_bang_is_not_negation(self, evaluator):
        """A value starting with ! is compared as text."""
        assert evaluator.evaluate(["$var", "!foo"], {"var": "!foo"}) is True

    def test_literal_field_without_variables(self, evaluator):
        """Fields that are not references compare as text."""
        assert evaluator.evaluate(["foo", "foo"]) is True

    def test_comparand_is_interpolated(self, evaluator):
        """Comparands may reference variables too."""
        rule = ["$a", {"eq": "$b"}]

        assert evaluator.evaluate(rule, {"a": "x", "b": "x"}) is True
        assert evaluator.evaluate(rule, {"a": "x", "b": "y"}) is False

    def test_ne_operator(self, evaluator):
        """ne holds for different strings."""
        assert evaluator.evaluate(["$v", {"ne": "foo"}], {"v": "bar"}) is True

    def test_lexical_gt_differs_from_numeric(self, evaluator):
        """gt is lexical, > is numeric."""
        assert evaluator.evaluate(["$n", {"gt": "10"}], {"n": "9"}) is True
        assert evaluator.evaluate(["$n", {">": "10"}], {"n": "9"}) is False

    def test_numeric_less_than(self, evaluator):
        """< compares numbers."""
        assert evaluator.evaluate(["$n", {"<": "10"}], {"n": "9.5"}) is True

    def test_integer_variable_value(self, evaluator):
        """Non-string variable values are rendered as text."""
        assert evaluator.evaluate(["$n", 5], {"n": 5}) is True

    def test_regex_with_inline_flag(self, evaluator):
        """(?i) makes the match case-insensitive."""
        assert evaluator.evaluate(["$var", {"=~": "(?i)abc"}], {"var": "xABCx"}) is True

    def test_negated_regex(self, evaluator):
        """! inverts a regex match."""
        rule = ["!$var", {"like": "^foo.*"}]

        assert evaluator.evaluate(rule, {"var": "foobar"}) is False
        assert evaluator.evaluate(rule, {"var": "barfoo"}) is True

    def test_quotes_and_backslashes_compare_unescaped(self, evaluator):
        """Escaping is transparent to comparison."""
        text = 'say "hi" \\ bye'

        assert evaluator.evaluate(["$v", text], {"v": text}) is True
        assert evaluator.evaluate(["$v", text + "\\"], {"v": text}) is False

    def test_injection_attempt_is_plain_text(self, evaluator):
        """Expression text inside a value is never executed."""
        payload = '" or __import__("os").system("true") or "'

        assert evaluator.evaluate(["$v", payload], {"v": "x"}) is False
        assert evaluator.evaluate(["$v", payload], {"v": payload}) is True

    def test_parsed_rule_accepted(self, evaluator):
        """A pre-parsed Rule evaluates like its raw data."""
        rule = Rule.from_data(["$var", "foo"])

        assert evaluator.evaluate(rule, {"var": "foo"}) is True

    def test_evaluate_single(self, evaluator):
        """evaluate_single delegates to the comparator."""
        assert evaluator.evaluate_single("!foo", "bar", "EQ") is True


# =============================================================================
# Tests: RuleEvaluator.evaluate() - Short Circuit
# =============================================================================


class TestShortCircuit:
    """Tests that evaluation stops at the first false pair."""

    def test_later_pairs_not_interpolated(self, evaluator):
        """Pairs after a false one are never touched."""
        rule = ["$a", "x", "$c", "y"]

        with patch.object(
            evaluator.interpolator,
            "interpolate",
            wraps=evaluator.interpolator.interpolate,
        ) as spy:
            result = evaluator.evaluate(rule, {"a": "not-x", "c": "y"})

        assert result is False
        tokens = [call.args[0] for call in spy.call_args_list]
        assert tokens == ["$a", "x"]

    def test_later_undefined_variable_not_reached(self, evaluator):
        """A failing pair hides errors in later pairs."""
        rule = ["$a", "x", "$undefined", "y"]

        assert evaluator.evaluate(rule, {"a": "z"}) is False


# =============================================================================
# Tests: RuleEvaluator.evaluate() - Errors
# =============================================================================


class TestEvaluateErrors:
    """Tests that failures surface instead of becoming False."""

    @pytest.mark.parametrize("data", ["$var", {"$var": "foo"}, None, 42])
    def test_unknown_top_level_type(self, evaluator, data):
        """Non-sequence rules raise ConfigError."""
        with pytest.raises(ConfigError, match="Unknown type"):
            evaluator.evaluate(data, {})

    def test_odd_length_rule(self, evaluator):
        """Dangling field raises ConfigError."""
        with pytest.raises(ConfigError):
            evaluator.evaluate(["$var", "foo", "$other"], {"var": "foo"})

    def test_unknown_operator(self, evaluator):
        """Unsupported operator raises UnknownOperatorError."""
        with pytest.raises(UnknownOperatorError) as exc_info:
            evaluator.evaluate(["$var", {"in": "foo"}], {"var": "foo"})

        assert exc_info.value.operator == "in"

    def test_undefined_variable_strict(self, evaluator):
        """Strict policy raises on unresolved variables."""
        with pytest.raises(TemplateError):
            evaluator.evaluate(["$missing", "foo"], {})

    def test_undefined_variable_empty(self):
        """Empty policy renders unresolved variables as ''."""
        evaluator = RuleEvaluator(LogicConfig(undefined_variables="empty"))

        assert evaluator.evaluate(["$missing", ""], {}) is True

    def test_unsafe_regex_from_variable(self, evaluator):
        """Patterns supplied through variables are checked too."""
        with pytest.raises(SecurityError):
            evaluator.evaluate(["$v", {"like": "$p"}], {"v": "x", "p": "(??{ 1 })"})

    def test_mixed_type_ordering(self, evaluator):
        """Numeric ordering against text raises EvaluationError."""
        with pytest.raises(EvaluationError):
            evaluator.evaluate(["$v", {"<": "5"}], {"v": "abc"})

    def test_error_counted(self, evaluator):
        """Aborted evaluations are counted by error type."""
        labels = {"error_type": "ConfigError"}
        before = REGISTRY.get_sample_value("conflogic_rule_errors_total", labels) or 0.0

        with pytest.raises(ConfigError):
            evaluator.evaluate(["odd"], {})

        after = REGISTRY.get_sample_value("conflogic_rule_errors_total", labels)
        assert after == before + 1

    def test_oversized_integer_is_evaluation_error(self, evaluator):
        """Numbers too long to convert fail inside the error hierarchy."""
        labels = {"error_type": "EvaluationError"}
        before = REGISTRY.get_sample_value("conflogic_rule_errors_total", labels) or 0.0
        digits = "9" * 5000

        with pytest.raises(EvaluationError):
            evaluator.evaluate(["$v", {"==": digits}], {"v": digits})

        after = REGISTRY.get_sample_value("conflogic_rule_errors_total", labels)
        assert after == before + 1


# =============================================================================
# Tests: Rule Data Reuse
# =============================================================================


class TestRuleDataReuse:
    """Tests that rule data survives evaluation."""

    def test_rule_list_not_consumed(self, evaluator):
        """The same list can be evaluated repeatedly."""
        rule = ["$var", "foo", "$var", {"like": "^f"}]
        snapshot = [item.copy() if isinstance(item, dict) else item for item in rule]

        assert evaluator.evaluate(rule, {"var": "foo"}) is True
        assert evaluator.evaluate(rule, {"var": "foo"}) is True
        assert rule == snapshot

    def test_outcome_counted(self, evaluator):
        """Completed evaluations are counted by outcome."""
        labels = {"outcome": "true"}
        before = REGISTRY.get_sample_value("conflogic_rule_evaluations_total", labels) or 0.0

        evaluator.evaluate(["a", "a"])

        after = REGISTRY.get_sample_value("conflogic_rule_evaluations_total", labels)
        assert after == before + 1


# =============================================================================
# Tests: RuleEvaluator.validate()
# =============================================================================


class TestValidate:
    """Tests for structural validation."""

    def test_valid_rule(self):
        """Well-formed rule is valid."""
        valid, error = RuleEvaluator.validate(["$var", "foo", "!$x", {"like": "^a"}])

        assert valid is True
        assert error is None

    def test_odd_rule_invalid(self):
        """Odd-length rule is reported."""
        valid, error = RuleEvaluator.validate(["$var"])

        assert valid is False
        assert "ConfigError" in error

    def test_unknown_operator_invalid(self):
        """Unsupported operator is reported."""
        valid, error = RuleEvaluator.validate(["$var", {"between": "1"}])

        assert valid is False
        assert "UnknownOperatorError" in error

    def test_bad_reference_invalid(self):
        """Malformed variable reference is reported."""
        valid, error = RuleEvaluator.validate(["$1abc", "foo"])

        assert valid is False
        assert "TemplateError" in error

    def test_missing_variables_are_fine(self):
        """Validation does not need variable values."""
        valid, _ = RuleEvaluator.validate(["$not_provided", "foo"])

        assert valid is True


# =============================================================================
# Tests: module-level evaluate()
# =============================================================================


class TestModuleEvaluate:
    """Tests for the settings-backed convenience function."""

    def test_uses_configured_policy(self, mock_toml_files, test_config_dir, monkeypatch):
        """Default evaluator reads its policy from configuration."""
        mock_toml_files({"default.toml": '[logic]\nundefined_variables = "empty"\n'})
        monkeypatch.setenv("CONFLOGIC_CONFIG_DIR", str(test_config_dir))

        assert evaluate(["$missing", ""]) is True

    def test_default_is_strict(self, test_config_dir, monkeypatch):
        """Without configuration unresolved variables raise."""
        monkeypatch.setenv("CONFLOGIC_CONFIG_DIR", str(test_config_dir))

        with pytest.raises(TemplateError):
            evaluate(["$missing", ""])

    def test_one_evaluator_per_thread(self, test_config_dir, monkeypatch):
        """Each thread gets its own default evaluator."""
        monkeypatch.setenv("CONFLOGIC_CONFIG_DIR", str(test_config_dir))
        main = get_default_evaluator()
        seen: list[RuleEvaluator] = []

        worker = threading.Thread(target=lambda: seen.append(get_default_evaluator()))
        worker.start()
        worker.join()

        assert get_default_evaluator() is main
        assert len(seen) == 1
        assert seen[0] is not main

    def test_concurrent_evaluation(self, test_config_dir, monkeypatch):
        """Module-level evaluate can be called from several threads."""
        monkeypatch.setenv("CONFLOGIC_CONFIG_DIR", str(test_config_dir))
        get_settings()

        def check(i: int) -> bool:
            return evaluate(["$n", {"==": str(i)}, "$n", {"<": "1000"}], {"n": i})

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(check, range(200)))

        assert all(results)
