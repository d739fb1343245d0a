"""Still preview of the composition at one instant.

The preview mirrors the browser editor's look rather than the export's
ffmpeg graph: colour adjustments follow the CSS filter functions
(brightness, contrast, saturate, grayscale, sepia, hue-rotate) applied
left to right, each clamped to [0, 1] before the next.

  base:      brightness(1 + b) contrast(c) saturate(s)
  grayscale: + grayscale(100%)
  sepia:     + sepia(100%)
  vintage:   + sepia(50%) hue-rotate(-30deg) contrast(110%)
  vibrant:   + saturate(150%) brightness(110%)
"""

import math
from pathlib import Path

import numpy as np
from moviepy import VideoFileClip
from PIL import Image

from .models import ColorFilter, VisualSettings
from .overlays import draw_overlays


# ── Colour matrices ──────────────────────────────────────────────

_LUMA = np.array([0.213, 0.715, 0.072])


def _saturate_matrix(s: float) -> np.ndarray:
    return np.array([
        [0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s],
    ])


def _sepia_matrix(amount: float) -> np.ndarray:
    k = 1.0 - amount
    return np.array([
        [0.393 + 0.607 * k, 0.769 - 0.769 * k, 0.189 - 0.189 * k],
        [0.349 - 0.349 * k, 0.686 + 0.314 * k, 0.168 - 0.168 * k],
        [0.272 - 0.272 * k, 0.534 - 0.534 * k, 0.131 + 0.869 * k],
    ])


def _hue_rotate_matrix(degrees: float) -> np.ndarray:
    c = math.cos(math.radians(degrees))
    s = math.sin(math.radians(degrees))
    return np.array([
        [0.213 + c * 0.787 - s * 0.213, 0.715 - c * 0.715 - s * 0.715, 0.072 - c * 0.072 + s * 0.928],
        [0.213 - c * 0.213 + s * 0.143, 0.715 + c * 0.285 + s * 0.140, 0.072 - c * 0.072 - s * 0.283],
        [0.213 - c * 0.213 - s * 0.787, 0.715 - c * 0.715 + s * 0.715, 0.072 + c * 0.928 + s * 0.072],
    ])


# ── Filter functions (float RGB in [0, 1]) ───────────────────────


def _brightness(img: np.ndarray, amount: float) -> np.ndarray:
    return np.clip(img * amount, 0.0, 1.0)


def _contrast(img: np.ndarray, amount: float) -> np.ndarray:
    return np.clip((img - 0.5) * amount + 0.5, 0.0, 1.0)


def _matrix(img: np.ndarray, m: np.ndarray) -> np.ndarray:
    return np.clip(img @ m.T, 0.0, 1.0)


def apply_look(
    frame: np.ndarray,
    color_filter: ColorFilter | str = ColorFilter.NONE,
    visual: VisualSettings | None = None,
) -> np.ndarray:
    """Apply a clip's colour filter and adjustments to an RGB uint8 frame.

    Returns a new array; the input is not modified.
    """
    color_filter = ColorFilter(color_filter)
    visual = visual or VisualSettings()
    if color_filter is ColorFilter.NONE and visual.is_identity:
        return frame.copy()

    img = frame.astype(np.float64) / 255.0
    img = _brightness(img, 1.0 + visual.brightness)
    img = _contrast(img, visual.contrast)
    img = _matrix(img, _saturate_matrix(visual.saturation))

    if color_filter is ColorFilter.GRAYSCALE:
        img = _matrix(img, np.tile(_LUMA, (3, 1)))
    elif color_filter is ColorFilter.SEPIA:
        img = _matrix(img, _sepia_matrix(1.0))
    elif color_filter is ColorFilter.VINTAGE:
        img = _matrix(img, _sepia_matrix(0.5))
        img = _matrix(img, _hue_rotate_matrix(-30))
        img = _contrast(img, 1.1)
    elif color_filter is ColorFilter.VIBRANT:
        img = _matrix(img, _saturate_matrix(1.5))
        img = _brightness(img, 1.1)

    return np.round(img * 255.0).astype(np.uint8)


# ── Rendering ────────────────────────────────────────────────────


def grab_frame(path: str | Path, t: float, size: tuple[int, int]) -> np.ndarray:
    """Decode the source frame at t seconds, scaled to size (w, h).

    Times past the end are held on the last frame.
    """
    with VideoFileClip(str(path), audio=False) as video:
        last = max(0.0, video.duration - 1.0 / (video.fps or 1))
        frame = video.get_frame(min(max(0.0, t), last))
    img = Image.fromarray(frame).convert("RGB")
    if img.size != tuple(size):
        img = img.resize(tuple(size), Image.LANCZOS)
    return np.array(img)


def render_preview(
    timeline,
    t: float,
    resolve_source,
    size: tuple[int, int] = (1280, 720),
) -> np.ndarray:
    """The composition at timeline time t as an (h, w, 3) uint8 array.

    Args:
        timeline: Timeline to sample.
        t: Timeline time in seconds.
        resolve_source: file_name -> readable path of the clip's source.
        size: (width, height) of the result.

    With no active clip the frame is black; overlays active at t are
    still drawn.
    """
    width, height = size
    active = timeline.query_active(t)

    if active.clip is None:
        frame = np.zeros((height, width, 3), dtype=np.uint8)
    else:
        clip = active.clip
        source_t = t - clip.timeline_start + clip.offset
        frame = grab_frame(resolve_source(clip.file_name), source_t, size)
        frame = apply_look(frame, clip.filter, clip.visual)

    return draw_overlays(frame, active.overlays)
