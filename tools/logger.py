"""
Structured Logger

Thin wrapper around Python logging for structured event output.
Used by the stitch pipeline, the API and the CLI.

Level threshold comes from STITCH_LOG_LEVEL (default: info). Lines go to
stderr so CLI stdout stays reserved for command output.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_logger = logging.getLogger("phasestitcher")
if not _logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    _logger.addHandler(handler)
    _logger.setLevel(_LEVEL_MAP.get(os.getenv("STITCH_LOG_LEVEL", "info").lower(), logging.INFO))


def set_level(level: str):
    """Change the logger threshold at runtime (e.g. from CLI flags)."""
    _logger.setLevel(_LEVEL_MAP.get(level.lower(), logging.INFO))


def log(event: str, level: str = "info", **kwargs):
    """
    Emit a structured log line as JSON.

    Args:
        event:  Dot-separated event name (e.g. "stitch.nodes_merged")
        level:  Log level string (debug, info, warning, error, critical)
        **kwargs: Additional key-value data to include
    """
    entry = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
        "level": level,
    }
    entry.update(kwargs)
    py_level = _LEVEL_MAP.get(level, logging.INFO)
    _logger.log(py_level, json.dumps(entry, default=str))


if __name__ == "__main__":
    print("=== Logger Self-Check ===\n")

    print("Test 1: Basic log output")
    log("test.basic", level="info", message="hello")
    print("  [OK]")

    print("Test 2: Warning level")
    log("test.warning", level="warning", unconnected=2)
    print("  [OK]")

    print("Test 3: Error with extra data")
    log("test.error", level="error", phase="ingest", error="missing node")
    print("  [OK]")

    print("\n=== All logger checks passed ===")
