"""
Stitch Configuration

Reads stitch settings from the environment:
    STITCH_PHASE_SPACING  horizontal offset per phase index (default 400)
    STITCH_PHASE_MATCH    error-policy node selection: "tag" or "substring"
    STITCH_BASE_URL       API base URL used by the CLI

Explicit overrides passed to get_stitch_config() win over the environment.
"""

import os

DEFAULT_PHASE_SPACING = 400
DEFAULT_PHASE_MATCH = "tag"
DEFAULT_BASE_URL = "http://localhost:8000"

PHASE_MATCH_MODES = {"tag", "substring"}


def _parse_spacing(raw) -> int:
    try:
        spacing = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Phase spacing must be an integer, got: {raw!r}")
    if spacing < 0:
        raise ValueError(f"Phase spacing must be >= 0, got: {spacing}")
    return spacing


def get_stitch_config(phase_spacing=None, phase_match=None) -> dict:
    """Resolve stitch settings from overrides and environment.

    Args:
        phase_spacing: Optional override for the per-phase x offset.
        phase_match: Optional override for the error-policy match mode.

    Returns:
        dict with phase_spacing (int), phase_match (str), base_url (str).

    Raises:
        ValueError: If a value is not usable.
    """
    if phase_spacing is None:
        phase_spacing = os.getenv("STITCH_PHASE_SPACING", DEFAULT_PHASE_SPACING)
    if phase_match is None:
        phase_match = os.getenv("STITCH_PHASE_MATCH", DEFAULT_PHASE_MATCH)

    phase_match = str(phase_match).strip().lower()
    if phase_match not in PHASE_MATCH_MODES:
        raise ValueError(
            f"Phase match mode must be one of {sorted(PHASE_MATCH_MODES)}, got: {phase_match!r}"
        )

    return {
        "phase_spacing": _parse_spacing(phase_spacing),
        "phase_match": phase_match,
        "base_url": os.getenv("STITCH_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
    }
