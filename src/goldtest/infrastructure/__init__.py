"""Infrastructure domain: configuration, aggregation and reporting, run orchestration.

Note: ``goldtest.infrastructure.runner`` is not re-exported here because it
depends on the analysis domain, which itself imports the configuration
module; importing it eagerly would create circular imports.  Import it
directly::

    from goldtest.infrastructure.runner import run
"""

from goldtest.infrastructure.config import (
    CONFIG_FILENAME,
    ConfigError,
    EngineConfig,
    LanguagePatterns,
    RuleSetting,
    Thresholds,
    default_config,
    load_config,
    parse_config,
)
from goldtest.infrastructure.report import (
    Report,
    aggregate,
    format_json,
    format_porcelain,
    format_text,
)

__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "EngineConfig",
    "LanguagePatterns",
    "Report",
    "RuleSetting",
    "Thresholds",
    "aggregate",
    "default_config",
    "format_json",
    "format_porcelain",
    "format_text",
    "load_config",
    "parse_config",
]
