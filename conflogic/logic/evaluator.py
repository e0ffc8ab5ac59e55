"""Rule evaluation: AND-chained comparisons over interpolated variables."""

import time
from collections.abc import Mapping
from typing import Any

from conflogic.config.models.logic import LogicConfig
from conflogic.logic.comparator import SafeComparator
from conflogic.logic.exceptions import LogicError
from conflogic.logic.interpolation import Interpolator
from conflogic.logic.models import Rule
from conflogic.observability.logging import get_logger
from conflogic.observability.metrics import (
    RULE_ERRORS,
    RULE_EVALUATION_LATENCY,
    RULE_EVALUATIONS,
)

logger = get_logger(__name__)


class RuleEvaluator:
    """Evaluate configuration rules against a variable environment.

    A rule is a flat sequence of field/comparison pairs joined by logical
    AND. Fields and comparands starting with ``$`` are variable
    references; a leading ``!`` on a field negates that comparison;
    a comparand may be wrapped as ``{operator: value}``.

    Example:
        evaluator = RuleEvaluator()
        evaluator.evaluate(["$var", {"like": "^foo"}], {"var": "foobar"})
    """

    def __init__(self, config: LogicConfig | None = None) -> None:
        self.config = config or LogicConfig()
        self.interpolator = Interpolator(undefined=self.config.undefined_variables)
        self.comparator = SafeComparator(max_pattern_length=self.config.max_pattern_length)

    def evaluate(self, rule: Rule | Any, variables: Mapping[str, Any] | None = None) -> bool:
        """Evaluate a rule.

        Args:
            rule: Parsed Rule or raw loader data (sequence of pairs)
            variables: Variable environment; never modified

        Returns:
            True if every comparison holds, False on the first that does not

        Raises:
            LogicError: Any subclass, when the rule is malformed or a
                comparison cannot be performed
        """
        variables = variables or {}
        start_time = time.perf_counter()

        try:
            parsed = Rule.from_data(rule)
            result = self._evaluate_conditions(parsed, variables)
        except LogicError as e:
            RULE_ERRORS.labels(error_type=type(e).__name__).inc()
            RULE_EVALUATIONS.labels(outcome="error").inc()
            logger.error(
                "rule_evaluation_error",
                error_type=type(e).__name__,
                error=e.message,
            )
            raise
        finally:
            RULE_EVALUATION_LATENCY.observe(time.perf_counter() - start_time)

        RULE_EVALUATIONS.labels(outcome="true" if result else "false").inc()
        return result

    def _evaluate_conditions(self, rule: Rule, variables: Mapping[str, Any]) -> bool:
        for index, condition in enumerate(rule.conditions):
            field = self.interpolator.interpolate(condition.field.token, variables)
            comparison = condition.comparison
            value = self.interpolator.interpolate(comparison.value, variables)

            if not self.comparator.compare(
                field,
                value,
                comparison.operator,
                negate=condition.field.negated,
            ):
                # Boolean AND: one false comparison decides the rule
                logger.debug(
                    "rule_condition_failed",
                    index=index,
                    operator=comparison.operator.value,
                    negated=condition.field.negated,
                )
                return False

        return True

    def evaluate_single(self, field: str, value: str, op: str) -> bool:
        """Evaluate one already-interpolated comparison."""
        return self.comparator.evaluate_single(field, value, op)

    @staticmethod
    def validate(rule: Rule | Any) -> tuple[bool, str | None]:
        """Check a rule's structure without evaluating it.

        Intended for configuration validation at startup. Variable references
        are checked for syntax; their values are not required.

        Returns:
            Tuple of (valid, error_message)
            - (True, None) if the rule is well formed
            - (False, error_msg) otherwise
        """
        try:
            variables = Rule.from_data(rule).variables_used
        except LogicError as e:
            return (False, f"{type(e).__name__}: {e.message}")

        logger.debug("rule_validated", variables=variables)
        return (True, None)
