"""Conflogic: simple boolean logic embedded in structured configuration.

Configuration authors write rules as flat field/value pairs:

    rule:
      - $var1
      - foo
      - "!$var2"
      - like: "^bar"

and the host application evaluates them against a variable environment
without ever executing author-supplied code.
"""

from conflogic.logic import RuleEvaluator, evaluate

__all__ = ["RuleEvaluator", "evaluate"]
