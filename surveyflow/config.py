"""
Runtime configuration for the preview server and CLI.
"""

import os
from dataclasses import dataclass

from .branching.visibility import EvaluationStrategy


@dataclass
class SurveyFlowConfig:
    """Configuration for surveyflow entry points."""
    # Strategy used when a caller does not pick one explicitly
    default_strategy: EvaluationStrategy = EvaluationStrategy.GROUPED_OR

    # How often a runtime should auto-save (the web runtime default)
    autosave_interval_seconds: int = 60

    # Rows per dashboard page
    progress_page_size: int = 20

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "SurveyFlowConfig":
        """Read overrides from the environment, ignoring unparsable values."""
        config = cls()

        strategy = os.environ.get("SURVEYFLOW_STRATEGY", "").strip().lower()
        if strategy in {s.value for s in EvaluationStrategy}:
            config.default_strategy = EvaluationStrategy(strategy)

        interval = os.environ.get("SURVEYFLOW_AUTOSAVE_INTERVAL", "")
        if interval.isdigit() and int(interval) > 0:
            config.autosave_interval_seconds = int(interval)

        page_size = os.environ.get("SURVEYFLOW_PAGE_SIZE", "")
        if page_size.isdigit() and int(page_size) > 0:
            config.progress_page_size = int(page_size)

        level = os.environ.get("LOG_LEVEL", "").strip().upper()
        if level in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            config.log_level = level

        return config
