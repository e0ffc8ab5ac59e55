"""Rule evaluation error hierarchy.

Every failure raised by the evaluator derives from LogicError. None of them
is ever converted into a False verdict: a broken rule must stay visible to
the host application.
"""


class LogicError(Exception):
    """Base exception for all rule evaluation errors.

    Library errors (jinja2, simpleeval, re) are wrapped in one of the
    subclasses below with the original kept as ``cause``.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigError(LogicError):
    """Raised when rule data has the wrong shape.

    Examples:
        - Top level is not a sequence
        - Odd number of elements in the pair sequence
        - Operator mapping with more than one entry
    """

    pass


class UnknownOperatorError(LogicError):
    """Raised when an operator is not one of the supported comparisons."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"Unknown op: {operator}")
        self.operator = operator


class SecurityError(LogicError):
    """Raised when a regex comparand contains a rejected construct."""

    def __init__(self, message: str, pattern: str) -> None:
        super().__init__(message)
        self.pattern = pattern


class TemplateError(LogicError):
    """Raised when a variable reference cannot be interpolated."""

    def __init__(self, message: str, token: str, cause: Exception | None = None) -> None:
        super().__init__(message, cause)
        self.token = token


class EvaluationError(LogicError):
    """Raised when a single comparison fails to execute."""

    def __init__(
        self, message: str, expression: str, cause: Exception | None = None
    ) -> None:
        super().__init__(message, cause)
        self.expression = expression
