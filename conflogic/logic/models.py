"""Rule data model.

A rule arrives from the configuration loader as a flat sequence that
alternates field tokens and comparands:

    ["$var1", "foo", "!$var2", {"like": "^bar"}]

Rule.from_data turns that into immutable, typed conditions. The raw input
is only read, never consumed, so callers can evaluate the same data again.
"""

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Annotated, Any, Literal

from jinja2 import TemplateSyntaxError, meta
from jinja2.sandbox import ImmutableSandboxedEnvironment
from pydantic import BaseModel, ConfigDict, Field

from conflogic.logic.exceptions import (
    ConfigError,
    SecurityError,
    TemplateError,
    UnknownOperatorError,
)
from conflogic.logic.interpolation import VARIABLE_MARKER, to_template

NEGATION_MARKER = "!"

# Inline-code regex construct, also covers the ``(??{ ... })`` form
UNSAFE_REGEX_CONSTRUCT = "?{"

OPERATOR_ALIASES: dict[str, str] = {"like": "=~"}


class Operator(str, Enum):
    """Supported comparison operators.

    - EQ, NE, LT, GT: lexical string comparison
    - NUM_LT, NUM_GT, NUM_EQ: numeric comparison
    - MATCH: regular expression search
    """

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    GT = "gt"
    NUM_LT = "<"
    NUM_GT = ">"
    NUM_EQ = "=="
    MATCH = "=~"

    @classmethod
    def parse(cls, name: str) -> "Operator":
        """Normalize an operator name and look it up.

        Raises:
            UnknownOperatorError: If the name is not a supported operator
        """
        normalized = str(name).lower()
        normalized = OPERATOR_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise UnknownOperatorError(normalized) from None

    @property
    def is_regex(self) -> bool:
        return self is Operator.MATCH

    @property
    def is_numeric(self) -> bool:
        return self in (Operator.NUM_LT, Operator.NUM_GT, Operator.NUM_EQ)


class FieldRef(BaseModel):
    """Left-hand side of a condition with its negation marker split off."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., description="Field token without the negation marker")
    negated: bool = Field(default=False, description="Invert the comparison result")

    @classmethod
    def parse(cls, raw: str) -> "FieldRef":
        if raw.startswith(NEGATION_MARKER):
            return cls(token=raw[len(NEGATION_MARKER):], negated=True)
        return cls(token=raw)


class LiteralComparison(BaseModel):
    """Bare comparand, compared with the implicit ``eq`` operator."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["literal"] = "literal"
    value: str

    @property
    def operator(self) -> Operator:
        return Operator.EQ


class OperatorComparison(BaseModel):
    """Comparand wrapped in a single-entry ``{operator: value}`` mapping."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["operator"] = "operator"
    operator: Operator
    value: str


# Future OR / IN comparisons join this union as new tagged members.
Comparison = Annotated[
    LiteralComparison | OperatorComparison,
    Field(discriminator="kind"),
]


class Condition(BaseModel):
    """One field/comparison pair of a rule."""

    model_config = ConfigDict(frozen=True)

    field: FieldRef
    comparison: Comparison


class Rule(BaseModel):
    """Ordered AND-chain of conditions."""

    model_config = ConfigDict(frozen=True)

    conditions: tuple[Condition, ...] = Field(default_factory=tuple)

    @classmethod
    def from_data(cls, data: Any) -> "Rule":
        """Build a rule from loader output.

        Args:
            data: Sequence alternating field tokens and comparands

        Returns:
            Parsed rule

        Raises:
            ConfigError: If the data does not have the expected shape
            UnknownOperatorError: If a comparand names an unsupported operator
            SecurityError: If a literal regex comparand contains an unsafe construct
        """
        if isinstance(data, Rule):
            return data

        if isinstance(data, str | bytes) or not isinstance(data, Sequence):
            raise ConfigError(f"Unknown type: {data!r}")

        if len(data) % 2:
            raise ConfigError(
                f"Rule has an odd number of elements ({len(data)}); "
                "expected field/comparison pairs"
            )

        conditions = [
            Condition(
                field=FieldRef.parse(_scalar_text(data[i], "field")),
                comparison=_parse_comparison(data[i + 1]),
            )
            for i in range(0, len(data), 2)
        ]
        return cls(conditions=tuple(conditions))

    @property
    def variables_used(self) -> list[str]:
        """Sorted names of the variables referenced by this rule.

        Raises:
            TemplateError: If a variable reference has invalid syntax
        """
        env = ImmutableSandboxedEnvironment()
        names: set[str] = set()
        tokens = [
            token
            for condition in self.conditions
            for token in (condition.field.token, condition.comparison.value)
        ]
        for token in tokens:
            if not token.startswith(VARIABLE_MARKER):
                continue
            try:
                names |= meta.find_undeclared_variables(env.parse(to_template(token)))
            except TemplateSyntaxError as e:
                raise TemplateError(
                    f"Invalid variable reference '{token}': {e.message}", token, e
                ) from e
        return sorted(names)


def _scalar_text(value: Any, role: str) -> str:
    """Render a YAML-style scalar as text, rejecting anything ambiguous."""
    if isinstance(value, bool) or value is None:
        raise ConfigError(f"Unsupported {role} value: {value!r}")
    if isinstance(value, str | int | float):
        return str(value)
    raise ConfigError(f"Unsupported {role} type: {type(value).__name__}")


def _parse_comparison(value: Any) -> LiteralComparison | OperatorComparison:
    if isinstance(value, Mapping):
        if len(value) != 1:
            raise ConfigError(
                f"Operator mapping must have exactly one entry, got {len(value)}: {dict(value)!r}"
            )
        ((op, comparand),) = value.items()
        comparison = OperatorComparison(
            operator=Operator.parse(_scalar_text(op, "operator")),
            value=_scalar_text(comparand, "comparand"),
        )
        if comparison.operator.is_regex:
            check_pattern(comparison.value)
        return comparison

    if isinstance(value, str | bytes) or not isinstance(value, Sequence | set | frozenset):
        return LiteralComparison(value=_scalar_text(value, "comparand"))

    raise ConfigError(f"Unsupported comparison type: {type(value).__name__}")


def check_pattern(pattern: str) -> None:
    """Reject regex comparands that could execute code.

    Raises:
        SecurityError: If the pattern contains an inline-code construct
    """
    if UNSAFE_REGEX_CONSTRUCT in pattern:
        raise SecurityError(
            f"Trapped unsafe regex construct '{UNSAFE_REGEX_CONSTRUCT}' in: {pattern}",
            pattern,
        )
