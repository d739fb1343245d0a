"""Text overlays: burn-in filter expression and preview rasterisation.

Both paths place text the same way: (x, y) are percentages locating the
centre of the text box, so the top-left corner is

  x_px = width  * x/100 - text_width/2
  y_px = height * y/100 - text_height/2

An overlay is drawn only while start_time <= t < start_time + duration.
Shadows are black at 60% opacity, offset 3px right and down.
"""

import numpy as np
from PIL import Image, ImageColor, ImageDraw

from .common import ffmpeg_color, load_font, parse_hex_color
from .filters import fmt_number


# ── Constants ────────────────────────────────────────────────────

SHADOW_OFFSET = 3                # px, both axes
SHADOW_ALPHA = 0.6
BOLD_SIZE_BUMP = 2               # preview has no separate bold face


# ── Filtergraph quoting ──────────────────────────────────────────


def quote_option(value: str) -> str:
    """Quote a value so it survives both filtergraph parsing passes.

    The graph parser strips one level of quoting, the option parser a
    second one; backslash, quote and colon are escaped for the inner
    pass and the result is single-quoted for the outer one.
    """
    inner = value.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")
    return "'" + inner.replace("'", "'\\''") + "'"


# ── Burn-in ──────────────────────────────────────────────────────


def drawtext_filter(overlay, text_file: str, font_file: str | None = None) -> str:
    """One time-gated drawtext fragment.

    The text itself is read from `text_file` (in the engine's working
    directory) so arbitrary user text needs no escaping; expansion is
    disabled so '%' is drawn literally.
    """
    start = overlay.start_time
    end = overlay.start_time + overlay.duration
    parts = [
        f"textfile={quote_option(text_file)}",
        "expansion=none",
        f"x=(w*{fmt_number(overlay.x / 100)}-tw/2)",
        f"y=(h*{fmt_number(overlay.y / 100)}-th/2)",
        f"fontsize={int(overlay.font_size)}",
        f"fontcolor={ffmpeg_color(overlay.color)}",
    ]
    if font_file:
        parts.append(f"fontfile={quote_option(str(font_file))}")
    if overlay.shadow:
        parts.append(
            f"shadowcolor=black@{fmt_number(SHADOW_ALPHA)}"
            f":shadowx={SHADOW_OFFSET}:shadowy={SHADOW_OFFSET}"
        )
    # Half-open window; between() would include the end instant.
    parts.append(
        f"enable='gte(t,{fmt_number(start)})*lt(t,{fmt_number(end)})'"
    )
    return "drawtext=" + ":".join(parts)


def overlay_filter(overlays, text_files: list[str], font_file: str | None = None) -> str:
    """All overlays chained into one -vf expression."""
    if len(overlays) != len(text_files):
        raise ValueError("One text file is required per overlay")
    return ",".join(
        drawtext_filter(o, f, font_file) for o, f in zip(overlays, text_files)
    )


# ── Preview rasterisation ────────────────────────────────────────


def overlay_origin(
    x_pct: float, y_pct: float,
    text_w: int, text_h: int,
    frame_w: int, frame_h: int,
) -> tuple[int, int]:
    """Top-left pixel of a text box centred at (x_pct, y_pct)."""
    x = frame_w * x_pct / 100 - text_w / 2
    y = frame_h * y_pct / 100 - text_h / 2
    return round(x), round(y)


def _rgb(color: str) -> tuple[int, int, int]:
    try:
        return parse_hex_color(color)
    except ValueError:
        return ImageColor.getrgb(color)[:3]


def draw_overlays(frame: np.ndarray, overlays) -> np.ndarray:
    """Composite overlay text onto a frame.

    Args:
        frame: shape (h, w, 3), dtype uint8. Not modified.
        overlays: TextOverlay-like items to draw, in order.

    Returns:
        New frame, same shape and dtype.
    """
    frame_h, frame_w = frame.shape[:2]
    base = Image.fromarray(frame).convert("RGBA")

    for item in overlays:
        size = int(item.font_size)
        if getattr(item, "font_weight", "normal") == "bold":
            size += BOLD_SIZE_BUMP
        font = load_font(size)

        layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        left, top, right, bottom = draw.textbbox((0, 0), item.text, font=font)
        x, y = overlay_origin(
            item.x, item.y, right - left, bottom - top, frame_w, frame_h,
        )
        # textbbox is relative to the anchor; shift so the ink box lands at (x, y).
        x -= left
        y -= top

        if item.shadow:
            draw.text(
                (x + SHADOW_OFFSET, y + SHADOW_OFFSET), item.text,
                fill=(0, 0, 0, round(255 * SHADOW_ALPHA)), font=font,
            )
        draw.text((x, y), item.text, fill=(*_rgb(item.color), 255), font=font)
        base = Image.alpha_composite(base, layer)

    return np.array(base.convert("RGB"))
