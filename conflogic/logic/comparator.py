"""Single comparison evaluation without arbitrary code execution.

Relational and equality operators are rendered as a literal-only expression
(``"field" == "value"``) and evaluated by simpleeval under a policy that
allows nothing but comparison operators: no names, no functions, no
attribute access. Regex matches run through ``re`` after rejecting
code-execution constructs.
"""

import ast
import math
import re
from operator import eq, gt, lt, ne, neg
from types import MappingProxyType

from simpleeval import InvalidExpression, SimpleEval

from conflogic.logic.escaping import quote
from conflogic.logic.exceptions import EvaluationError, SecurityError
from conflogic.logic.models import NEGATION_MARKER, Operator, check_pattern
from conflogic.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_PATTERN_LENGTH = 1000

_NUMBER_PATTERN = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$")
_INTEGER_PATTERN = re.compile(r"[+-]?\d+")

_EXPRESSION_SYMBOLS: dict[Operator, str] = {
    Operator.EQ: "==",
    Operator.NE: "!=",
    Operator.LT: "<",
    Operator.GT: ">",
    Operator.NUM_EQ: "==",
    Operator.NUM_LT: "<",
    Operator.NUM_GT: ">",
}


class SandboxPolicy:
    """Restricted evaluation context shared by every comparison.

    The permitted operator and syntax tables are fixed at construction.
    Unary minus is kept so negative number literals parse.
    """

    PERMITTED_NODES: frozenset[type[ast.AST]] = frozenset({
        ast.Expr,
        ast.Constant,
        ast.Compare,
        ast.UnaryOp,
    })

    PERMITTED_OPERATORS = MappingProxyType({
        ast.Eq: eq,
        ast.NotEq: ne,
        ast.Lt: lt,
        ast.Gt: gt,
        ast.USub: neg,
    })

    def __init__(self) -> None:
        self._evaluator = SimpleEval(
            operators=dict(self.PERMITTED_OPERATORS),
            functions={},
            names={},
        )
        # simpleeval substitutes its defaults for empty tables
        self._evaluator.functions = {}
        self._evaluator.names = {}
        self._evaluator.nodes = {
            node: handler
            for node, handler in self._evaluator.nodes.items()
            if node in self.PERMITTED_NODES
        }

    def evaluate(self, expression: str) -> object:
        """Evaluate a literal comparison expression.

        Raises:
            EvaluationError: If the expression is rejected or fails to run
        """
        try:
            return self._evaluator.eval(expression)
        except (InvalidExpression, SyntaxError, TypeError, ValueError, KeyError) as e:
            logger.error("sandbox_evaluation_error", expression=expression, error=str(e))
            raise EvaluationError(
                f"Comparison '{expression}' failed: {e}", expression, e
            ) from e


def render_operand(text: str, operator: Operator) -> str:
    """Render one side of a comparison as a literal.

    Numeric operators get a number literal when the text looks like a
    number. Everything else becomes a quoted string.

    Raises:
        EvaluationError: If numeric text cannot be converted to a number
    """
    if operator.is_numeric and _NUMBER_PATTERN.match(text):
        return _number_literal(text.strip())
    return quote(text)


def _number_literal(text: str) -> str:
    try:
        number = int(text) if _INTEGER_PATTERN.fullmatch(text) else float(text)
    except ValueError as e:
        # int() refuses text beyond sys.get_int_max_str_digits()
        logger.error("numeric_operand_unconvertible", operand_length=len(text), error=str(e))
        raise EvaluationError(f"Cannot convert operand to a number: {e}", text, e) from e

    if isinstance(number, float) and not math.isfinite(number):
        # repr() gives "inf", which the sandbox would read as a name
        return "-1e999" if number < 0 else "1e999"
    return repr(number)


class SafeComparator:
    """Evaluates ``field OP value`` comparisons.

    One sandbox policy is created per comparator and reused for every call.
    simpleeval keeps the current expression on the evaluator instance, so a
    comparator is not meant to be shared between threads; create one per
    worker.
    """

    def __init__(self, max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH) -> None:
        self.max_pattern_length = max_pattern_length
        self.policy = SandboxPolicy()

    def evaluate_single(self, field: str, value: str, op: str) -> bool:
        """Compare a raw field token against a value.

        A leading ``!`` on ``field`` negates the result. ``op`` is
        case-insensitive and ``like`` is accepted for ``=~``.

        Raises:
            UnknownOperatorError: If ``op`` is not supported
            SecurityError: If a regex comparand is rejected
            EvaluationError: If the comparison cannot be executed
        """
        negate = field.startswith(NEGATION_MARKER)
        if negate:
            field = field[len(NEGATION_MARKER):]

        return self.compare(field, value, Operator.parse(op), negate=negate)

    def compare(
        self,
        field: str,
        value: str,
        operator: Operator,
        negate: bool = False,
    ) -> bool:
        """Compare already-resolved operands with a parsed operator."""
        if operator.is_regex:
            result = self._match(field, value)
        else:
            result = self._relational(field, value, operator)

        return not result if negate else result

    def _match(self, field: str, pattern: str) -> bool:
        try:
            check_pattern(pattern)
        except SecurityError:
            logger.error("unsafe_regex_rejected", pattern=pattern)
            raise

        if len(pattern) > self.max_pattern_length:
            logger.error(
                "regex_too_long",
                pattern_length=len(pattern),
                max_pattern_length=self.max_pattern_length,
            )
            raise SecurityError(
                f"Regex of length {len(pattern)} exceeds limit of {self.max_pattern_length}",
                pattern,
            )

        try:
            compiled = re.compile(pattern)
        except re.error as e:
            logger.error("invalid_regex", pattern=pattern, error=str(e))
            raise EvaluationError(f"Invalid regex '{pattern}': {e}", pattern, e) from e

        logger.debug("rule_regex_match", field=field, pattern=compiled.pattern)
        return compiled.search(field) is not None

    def _relational(self, field: str, value: str, operator: Operator) -> bool:
        expression = " ".join((
            render_operand(field, operator),
            _EXPRESSION_SYMBOLS[operator],
            render_operand(value, operator),
        ))
        logger.debug("rule_comparison", expression=expression, operator=operator.value)
        return bool(self.policy.evaluate(expression))
