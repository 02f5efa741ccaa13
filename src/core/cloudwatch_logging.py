"""
Logging setup, with optional CloudWatch shipping via watchtower.

Console logging is always configured. When enabled, a CloudWatch Logs
handler receives pipeline milestones (story, cover and page illustration
progress) and every ERROR record.

Environment variables:
  LOG_LEVEL             - Console level (default: INFO)
  CLOUDWATCH_ENABLED    - Set to "true" to ship logs (default: disabled)
  CLOUDWATCH_LOG_GROUP  - Log group name (default: /app/storybook-weaver)
  CLOUDWATCH_LOG_STREAM - Stream name (default: chosen by watchtower)
"""

import logging
import os

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_GROUP = "/app/storybook-weaver"


class PipelineLogFilter(logging.Filter):
    """Pass INFO+ records from pipeline modules, and ERROR+ from any module."""

    PIPELINE_MODULES = (
        "src.core.pipeline",
        "src.core.story_generator",
        "src.core.image_generator",
        "src.api.routes.",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True
        if record.levelno < logging.INFO:
            return False
        return record.name.startswith(self.PIPELINE_MODULES)


def configure_logging(level: str | None = None) -> None:
    """Configure console logging for the app and the CLI."""
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    # httpx logs one INFO line per request
    logging.getLogger("httpx").setLevel(logging.WARNING)


def cloudwatch_enabled() -> bool:
    return os.getenv("CLOUDWATCH_ENABLED", "").lower() == "true"


def setup_cloudwatch_logging() -> bool:
    """
    Attach a CloudWatch handler to the root logger.

    Returns True if CloudWatch logging was enabled, False otherwise.
    Missing watchtower or credentials only produce a warning.
    """
    if not cloudwatch_enabled():
        return False

    try:
        import watchtower
    except ImportError:
        logger.warning("CLOUDWATCH_ENABLED=true but watchtower is not installed. pip install watchtower")
        return False

    log_group = os.getenv("CLOUDWATCH_LOG_GROUP", DEFAULT_LOG_GROUP)
    handler_kwargs = {"log_group_name": log_group, "send_interval": 10, "max_batch_count": 100}
    if os.getenv("CLOUDWATCH_LOG_STREAM"):
        handler_kwargs["log_stream_name"] = os.getenv("CLOUDWATCH_LOG_STREAM")
    try:
        handler = watchtower.CloudWatchLogHandler(**handler_kwargs)
    except Exception as e:
        logger.warning("Failed to initialize CloudWatch logging: %s", e)
        return False

    handler.setLevel(logging.INFO)
    handler.addFilter(PipelineLogFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    logger.info("CloudWatch logging enabled: group=%s", log_group)
    return True


def flush_cloudwatch_logging() -> None:
    """Flush and close any CloudWatch handlers. Call on app shutdown."""
    try:
        import watchtower
    except ImportError:
        return

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, watchtower.CloudWatchLogHandler):
            handler.flush()
            handler.close()
            root.removeHandler(handler)
