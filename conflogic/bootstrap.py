"""Bootstrap a configured rule evaluator for a host application.

Loads settings from TOML and CONFLOGIC_* environment variables, configures
logging, and returns a ready evaluator:

    from conflogic.bootstrap import bootstrap

    evaluator = bootstrap()
    evaluator.evaluate(rule, variables)
"""

from conflogic.config import Settings, get_settings
from conflogic.logic.evaluator import RuleEvaluator
from conflogic.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)


def bootstrap(settings: Settings | None = None) -> RuleEvaluator:
    """Configure logging and create a RuleEvaluator.

    Args:
        settings: Explicit settings (default: loaded via get_settings)

    Returns:
        RuleEvaluator built from ``settings.logic``
    """
    settings = settings or get_settings()
    log_config = settings.observability.logging
    # debug mode overrides the configured level
    level = "DEBUG" if settings.debug else log_config.level
    setup_logging(
        level=level,
        format=log_config.format,
        redact_sensitive=log_config.redact_sensitive,
    )

    evaluator = RuleEvaluator(settings.logic)
    logger.info(
        "rule_evaluator_ready",
        app_name=settings.app_name,
        debug=settings.debug,
        undefined_variables=settings.logic.undefined_variables,
        max_pattern_length=settings.logic.max_pattern_length,
    )
    return evaluator
