"""Variable interpolation for rule tokens.

Tokens starting with ``$`` are variable references. They are rewritten to
Jinja2 placeholders (``$name`` becomes ``{{ name }}``) and rendered in a
sandboxed environment against the caller's variables. Any other token is
returned untouched and never parsed as a template.
"""

import re
from collections.abc import Mapping
from typing import Any, Literal

from jinja2 import StrictUndefined, TemplateSyntaxError, Undefined, UndefinedError
from jinja2 import TemplateError as JinjaTemplateError
from jinja2.sandbox import ImmutableSandboxedEnvironment

from conflogic.logic.exceptions import TemplateError
from conflogic.observability.logging import get_logger

logger = get_logger(__name__)

VARIABLE_MARKER = "$"

_VARIABLE_PATTERN = re.compile(r"\$(\S+)")

UndefinedPolicy = Literal["strict", "empty"]


def to_template(token: str) -> str:
    """Translate ``$name`` references into Jinja2 placeholders."""
    return _VARIABLE_PATTERN.sub(r"{{ \1 }}", token)


class Interpolator:
    """Resolves ``$name`` tokens against a variable environment.

    With the ``strict`` policy an unresolved variable raises TemplateError;
    with ``empty`` it renders as an empty string.
    """

    def __init__(self, undefined: UndefinedPolicy = "strict") -> None:
        self.undefined = undefined
        self._env = ImmutableSandboxedEnvironment(
            undefined=StrictUndefined if undefined == "strict" else Undefined,
            autoescape=False,
        )

    def interpolate(self, token: str, variables: Mapping[str, Any]) -> str:
        """Resolve a single token.

        Args:
            token: Field or comparand text
            variables: Variable environment for this evaluation

        Returns:
            The resolved text, or the token itself if it is not a reference

        Raises:
            TemplateError: If the reference is malformed or, under the strict
                policy, names an undefined variable
        """
        if not token.startswith(VARIABLE_MARKER):
            return token

        try:
            template = self._env.from_string(to_template(token))
            return template.render(**variables)
        except TemplateSyntaxError as e:
            logger.error("interpolation_syntax_error", reference=token, error=e.message)
            raise TemplateError(
                f"Invalid variable reference '{token}': {e.message}", token, e
            ) from e
        except UndefinedError as e:
            logger.error("interpolation_undefined_variable", reference=token, error=str(e))
            raise TemplateError(
                f"Missing variable in '{token}': {e}", token, e
            ) from e
        except (JinjaTemplateError, TypeError, ValueError) as e:
            # Sandbox violations and operand errors inside the reference
            logger.error("interpolation_failed", reference=token, error=str(e))
            raise TemplateError(f"Cannot interpolate '{token}': {e}", token, e) from e
