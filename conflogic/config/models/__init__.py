"""Configuration model exports.

    from conflogic.config.models import LogicConfig, ObservabilityConfig
"""

from conflogic.config.models.logic import LogicConfig
from conflogic.config.models.observability import LoggingConfig, ObservabilityConfig

__all__ = [
    "LoggingConfig",
    "LogicConfig",
    "ObservabilityConfig",
]
