"""Settings loader — engine and pipeline parameters from YAML.

All keys are optional in the file; anything not given falls back to
DEFAULT_SETTINGS. Values match what the in-browser editor used, so
exports made here look the same.

Settings schema:
  export_width: 1280
  export_height: 720
  crf: 32
  preset: veryfast
  audio_bitrate: 128k
  compress_max_width: 1280
  thumbnail_offset: 1.0
  font_file: "${fonts}/Inter.ttc"
  paths:
    fonts: "/usr/share/fonts"
"""

from pathlib import Path

import yaml

from .common import resolve_path_vars


MIB = 1024 * 1024

DEFAULT_SETTINGS = {
    "export_width": 1280,
    "export_height": 720,
    "video_codec": "libx264",
    "crf": 32,
    "preset": "veryfast",
    "threads": 1,
    "audio_codec": "aac",
    "audio_bitrate": "128k",
    "compress_max_width": 1280,
    "thumbnail_offset": 1.0,
    "fade_in_duration": 1.0,
    "probe_size": 100000,
    "large_file_warning_bytes": 250 * MIB,
    "compress_suggestion_bytes": 100 * MIB,
    "font_file": None,
}

_POSITIVE_INTS = {
    "export_width", "export_height", "threads", "compress_max_width",
    "probe_size", "large_file_warning_bytes", "compress_suggestion_bytes",
}
_NON_NEGATIVE_NUMBERS = {"thumbnail_offset", "fade_in_duration"}
_STRINGS = {"video_codec", "preset", "audio_codec", "audio_bitrate"}


def load_settings(settings_path: str | Path | None = None) -> dict:
    """Load settings from YAML and merge over the defaults.

    Args:
        settings_path: Path to a YAML settings file, or None for defaults.

    Returns:
        A new settings dict (the defaults are never mutated).

    Raises:
        ValueError: Unknown key or invalid value.
        FileNotFoundError: Missing settings file.
    """
    settings = dict(DEFAULT_SETTINGS)
    if settings_path is None:
        return settings

    with open(settings_path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError("Settings file must contain a mapping")

    paths = raw.pop("paths", {})
    if raw.get("font_file"):
        raw["font_file"] = resolve_path_vars(str(raw["font_file"]), paths)

    settings.update(raw)
    validate_settings(settings)
    return settings


def validate_settings(settings: dict) -> None:
    """Check every key is known and every value is in range."""
    for key in settings:
        if key not in DEFAULT_SETTINGS:
            raise ValueError(
                f"Unknown setting '{key}'. Valid: {sorted(DEFAULT_SETTINGS)}"
            )

    for key in _POSITIVE_INTS:
        v = settings[key]
        if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
            raise ValueError(f"Setting '{key}' must be a positive integer, got {v!r}")

    for key in _NON_NEGATIVE_NUMBERS:
        v = settings[key]
        if isinstance(v, bool) or not isinstance(v, (int, float)) or v < 0:
            raise ValueError(f"Setting '{key}' must be a number >= 0, got {v!r}")

    for key in _STRINGS:
        v = settings[key]
        if not isinstance(v, str) or not v:
            raise ValueError(f"Setting '{key}' must be a non-empty string, got {v!r}")

    crf = settings["crf"]
    if isinstance(crf, bool) or not isinstance(crf, int) or not 0 <= crf <= 51:
        raise ValueError(f"Setting 'crf' must be an integer in 0-51, got {crf!r}")

    font = settings["font_file"]
    if font is not None and not isinstance(font, str):
        raise ValueError(f"Setting 'font_file' must be a path string, got {font!r}")
