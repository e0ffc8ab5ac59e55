"""Rule evaluation engine.

    from conflogic.logic import evaluate

    if evaluate(["$var", "foo"], {"var": "foo"}):
        ...
"""

import threading
from collections.abc import Mapping
from typing import Any

from conflogic.config import get_settings
from conflogic.logic.comparator import SafeComparator, SandboxPolicy
from conflogic.logic.escaping import esc, quote
from conflogic.logic.evaluator import RuleEvaluator
from conflogic.logic.exceptions import (
    ConfigError,
    EvaluationError,
    LogicError,
    SecurityError,
    TemplateError,
    UnknownOperatorError,
)
from conflogic.logic.interpolation import Interpolator
from conflogic.logic.models import (
    Condition,
    FieldRef,
    LiteralComparison,
    Operator,
    OperatorComparison,
    Rule,
)


_local = threading.local()


def get_default_evaluator() -> RuleEvaluator:
    """Evaluator configured from settings, created on first use.

    An evaluator must not be shared between threads, so each thread gets
    its own instance.
    """
    evaluator = getattr(_local, "evaluator", None)
    if evaluator is None:
        evaluator = _local.evaluator = RuleEvaluator(get_settings().logic)
    return evaluator


def reset_default_evaluator() -> None:
    """Drop the calling thread's evaluator so the next call rebuilds it."""
    _local.evaluator = None


def evaluate(rule: Rule | Any, variables: Mapping[str, Any] | None = None) -> bool:
    """Evaluate a rule with the calling thread's default evaluator.

    Safe to call from several threads at once.
    """
    return get_default_evaluator().evaluate(rule, variables)


__all__ = [
    "Condition",
    "ConfigError",
    "EvaluationError",
    "FieldRef",
    "Interpolator",
    "LiteralComparison",
    "LogicError",
    "Operator",
    "OperatorComparison",
    "Rule",
    "RuleEvaluator",
    "SafeComparator",
    "SandboxPolicy",
    "SecurityError",
    "TemplateError",
    "UnknownOperatorError",
    "esc",
    "evaluate",
    "get_default_evaluator",
    "quote",
    "reset_default_evaluator",
]
