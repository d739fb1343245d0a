"""Project manifest loader — a whole edit described in YAML.

Follows the same ${var} path resolution as the settings file.

Project manifest schema:
  paths:
    media: "/data/media"
  assets:
    - id: intro
      path: "${media}/intro.mp4"
    - id: beach
      path: "${media}/beach.mov"
  clips:                           # timeline order
    - asset: intro
      offset: 0.0                  # optional, default 0
      duration: 2.0                # optional, default: rest of the source
      volume: 1.0
      filter: none                 # none | grayscale | sepia | vintage | vibrant
      brightness: 0.0
      contrast: 1.0
      saturation: 1.0
      transition: none             # none | fade | crossfade
  overlays:
    - text: "Day one"
      start: 1.0
      duration: 2.0
      x: 50
      y: 85
      font_size: 48
      color: "#ffffff"
      shadow: true
"""

import logging
from pathlib import Path

import yaml

from .common import resolve_path_vars
from .models import (
    MIN_CLIP_DURATION, ColorFilter, TextOverlay, Transition, VisualSettings,
)

logger = logging.getLogger(__name__)

_CLIP_KEYS = {
    "asset", "offset", "duration", "volume", "filter",
    "brightness", "contrast", "saturation", "transition",
}
_OVERLAY_KEYS = {
    "text", "start", "duration", "x", "y", "font_size", "color",
    "font_family", "font_weight", "font_style", "shadow",
}


def _parse_clip(i: int, clip: dict, asset_ids: set[str]) -> dict:
    if not isinstance(clip, dict):
        raise ValueError(f"Clip {i}: expected a mapping, got {type(clip).__name__}")
    unknown = set(clip) - _CLIP_KEYS
    if unknown:
        raise ValueError(f"Clip {i}: unknown fields {sorted(unknown)}")
    if "asset" not in clip:
        raise ValueError(f"Clip {i}: missing required field 'asset'")

    asset = str(clip["asset"])
    if asset not in asset_ids:
        raise ValueError(f"Clip {i}: unknown asset '{asset}'")

    offset = float(clip.get("offset", 0.0))
    if offset < 0:
        raise ValueError(f"Clip {i} ({asset}): offset must be >= 0, got {offset}")

    duration = clip.get("duration")
    if duration is not None:
        duration = float(duration)
        if duration < MIN_CLIP_DURATION:
            raise ValueError(
                f"Clip {i} ({asset}): duration must be >= {MIN_CLIP_DURATION}, "
                f"got {duration}"
            )

    volume = float(clip.get("volume", 1.0))
    if volume < 0:
        raise ValueError(f"Clip {i} ({asset}): volume must be >= 0, got {volume}")

    try:
        color_filter = ColorFilter(clip.get("filter", "none"))
        transition = Transition(clip.get("transition", "none"))
    except ValueError as e:
        raise ValueError(f"Clip {i} ({asset}): {e}") from None

    visual = VisualSettings(
        brightness=float(clip.get("brightness", 0.0)),
        contrast=float(clip.get("contrast", 1.0)),
        saturation=float(clip.get("saturation", 1.0)),
    )
    try:
        visual.validate()
    except ValueError as e:
        raise ValueError(f"Clip {i} ({asset}): {e}") from None

    return {
        "asset": asset,
        "offset": offset,
        "duration": duration,
        "volume": volume,
        "filter": color_filter,
        "brightness": visual.brightness,
        "contrast": visual.contrast,
        "saturation": visual.saturation,
        "transition": transition,
    }


def _parse_overlay(i: int, overlay: dict) -> dict:
    if not isinstance(overlay, dict):
        raise ValueError(f"Overlay {i}: expected a mapping, got {type(overlay).__name__}")
    unknown = set(overlay) - _OVERLAY_KEYS
    if unknown:
        raise ValueError(f"Overlay {i}: unknown fields {sorted(unknown)}")
    if "text" not in overlay:
        raise ValueError(f"Overlay {i}: missing required field 'text'")

    props = {k: v for k, v in overlay.items() if k not in ("text", "start")}
    candidate = TextOverlay(
        id=f"overlay-{i}",
        text=str(overlay["text"]),
        start_time=float(overlay.get("start", 0.0)),
        duration=float(props.pop("duration", 5.0)),
        **props,
    )
    try:
        candidate.validate()
    except ValueError as e:
        raise ValueError(f"Overlay {i}: {e}") from None

    result = dict(candidate.__dict__)
    del result["id"]
    return result


def load_project_manifest(manifest_path: str | Path) -> dict:
    """Load, validate, and normalize a project manifest.

    Processing pipeline:
      1. Parse YAML.
      2. Resolve ${path} variables in asset paths.
      3. Validate assets (unique ids), clips and overlays.

    Args:
        manifest_path: Path to the YAML project manifest.

    Returns:
        {"assets": [{"id", "path"}], "clips": [...], "overlays": [...]}
        with defaults filled in. Clip "duration" stays None when the
        clip runs to the end of its source.

    Raises:
        ValueError: Missing/invalid fields.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError("Project manifest: expected a mapping at the top level")
    if "assets" not in raw:
        raise ValueError("Project manifest: missing required 'assets' field")
    if "clips" not in raw:
        raise ValueError("Project manifest: missing required 'clips' field")

    paths = raw.get("paths", {})

    assets = []
    seen_ids = set()
    for i, asset in enumerate(raw["assets"]):
        if "id" not in asset:
            raise ValueError(f"Asset {i}: missing required field 'id'")
        if "path" not in asset:
            raise ValueError(f"Asset {i}: missing required field 'path'")
        aid = str(asset["id"])
        if aid in seen_ids:
            raise ValueError(f"Duplicate asset id: '{aid}'")
        seen_ids.add(aid)
        assets.append({"id": aid, "path": resolve_path_vars(str(asset["path"]), paths)})

    if not raw["clips"]:
        raise ValueError("Project manifest: 'clips' must not be empty")
    clips = [_parse_clip(i, c, seen_ids) for i, c in enumerate(raw["clips"])]
    overlays = [_parse_overlay(i, o) for i, o in enumerate(raw.get("overlays") or [])]

    return {"assets": assets, "clips": clips, "overlays": overlays}


def validate_project_paths(config: dict) -> None:
    """Check that every asset file exists on disk.

    Raises:
        FileNotFoundError: Lists every missing file, not just the first.
    """
    missing = [a["path"] for a in config["assets"] if not Path(a["path"]).exists()]
    if missing:
        raise FileNotFoundError(
            f"{len(missing)} asset file(s) not found:\n"
            + "\n".join(f"  {m}" for m in missing)
        )


def build_project(editor, config: dict, timeout: float | None = None) -> dict:
    """Import a manifest's assets into an Editor and lay out its timeline.

    Assets are all imported first and then awaited, so their preparation
    queues back to back on the worker. Clips referencing the same asset
    share one import.

    Returns:
        Manifest asset id -> imported Asset.

    Raises:
        LuminaError: An asset failed to prepare.
        ValueError: A clip's range does not fit its source.
    """
    imported = {}
    for entry in config["assets"]:
        imported[entry["id"]] = editor.import_file(entry["path"])
    for entry in config["assets"]:
        asset = editor.wait_until_ready(imported[entry["id"]].id, timeout)
        logger.info("Asset %s: %.2fs %dx%d", entry["id"], asset.duration, asset.width, asset.height)

    timeline = editor.timeline
    for spec in config["clips"]:
        asset = imported[spec["asset"]]
        clip = editor.add_to_timeline(asset.id)
        duration = spec["duration"]
        if duration is None:
            duration = asset.duration - spec["offset"]
        timeline.set_trim(clip.instance_id, spec["offset"], duration)
        timeline.update_clip(
            clip.instance_id,
            volume=spec["volume"],
            filter=spec["filter"],
            brightness=spec["brightness"],
            contrast=spec["contrast"],
            saturation=spec["saturation"],
            transition=spec["transition"],
        )

    for spec in config["overlays"]:
        props = dict(spec)
        timeline.add_overlay(
            start_time=props.pop("start_time"), text=props.pop("text"), **props,
        )

    return imported
