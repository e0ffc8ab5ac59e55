"""Rule evaluation configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

UndefinedVariables = Literal["strict", "empty"]


class LogicConfig(BaseModel):
    """Rule evaluator configuration."""

    undefined_variables: UndefinedVariables = Field(
        default="strict",
        description="'strict' raises on unresolved $variables, 'empty' renders them as ''",
    )
    max_pattern_length: int = Field(
        default=1000,
        ge=1,
        description="Longest regex comparand accepted by the =~ operator",
    )
