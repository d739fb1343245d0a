"""luminaedit.common — shared utilities.

Contains: color parsing, path variable resolution, unique naming,
font lookup, thumbnail reference encoding, and CLI progress output.
"""

import base64
import io
import re
from pathlib import Path

from PIL import Image, ImageColor, ImageFont


# ── Font paths ─────────────────────────────────────────────────────
# Used both for preview rasterisation (Pillow) and as the drawtext
# fontfile for burned-in overlays. Inter preferred, DejaVu Sans fallback.

FONT_PATHS = [
    Path.home() / ".local/share/fonts/Inter.ttc",
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/dejavu/DejaVuSans.ttf"),
    Path("/Library/Fonts/Arial.ttf"),
    Path("C:/Windows/Fonts/arial.ttf"),
]


# ── Color utilities ────────────────────────────────────────────────

def parse_hex_color(hex_str: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB' or 'RRGGBB' string to (R, G, B) tuple."""
    hex_str = hex_str.lstrip("#")
    if len(hex_str) != 6 or not all(c in "0123456789abcdefABCDEF" for c in hex_str):
        raise ValueError(f"Invalid hex color: '#{hex_str}'")
    return (int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))


def ffmpeg_color(value: str) -> str:
    """Convert an overlay color to an ffmpeg color expression.

    '#RRGGBB' becomes '0xRRGGBB'; named colors ('white', 'yellow')
    pass through unchanged since ffmpeg understands them.
    """
    if value.startswith("#"):
        parse_hex_color(value)
        return "0x" + value[1:].upper()
    return value


def validate_color(value: str) -> None:
    """Raise ValueError unless value is '#RRGGBB' or a known color name.

    Names are checked against Pillow's CSS table, which both the preview
    and ffmpeg understand.
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Invalid color: {value!r}")
    if value.startswith("#"):
        parse_hex_color(value)
        return
    try:
        ImageColor.getrgb(value)
    except ValueError:
        raise ValueError(f"Unknown color name: '{value}'") from None


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


def safe_filename(name: str) -> str:
    """Reduce a display name to a filesystem/ffmpeg-safe file name.

    Quotes would break the concat manifest and drawtext quoting, path
    separators would escape the working directory.
    """
    name = Path(name.replace("\\", "/")).name
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return cleaned or "untitled"


def unique_name(name: str, taken) -> str:
    """Return `name`, or `stem_N.ext` for the first N not already taken."""
    if name not in taken:
        return name
    p = Path(name)
    n = 2
    while f"{p.stem}_{n}{p.suffix}" in taken:
        n += 1
    return f"{p.stem}_{n}{p.suffix}"


# ── Font loading ───────────────────────────────────────────────────

def find_font_file() -> Path | None:
    """First existing font in FONT_PATHS, or None."""
    for font_path in FONT_PATHS:
        if font_path.exists():
            return font_path
    return None


def load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load Inter (or fallback) at the given size."""
    for font_path in FONT_PATHS:
        if font_path.exists():
            try:
                return ImageFont.truetype(str(font_path), size=size, index=0)
            except (OSError, IndexError):
                continue
    # Last resort: Pillow default font (scalable on Pillow >= 10.1).
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        return ImageFont.load_default()


# ── Thumbnails ─────────────────────────────────────────────────────

def thumbnail_reference(data: bytes, max_width: int = 320) -> str:
    """Turn raw thumbnail bytes into a displayable data URI.

    The image is decoded (which rejects truncated engine output),
    downscaled to at most max_width, and re-encoded as JPEG.

    Raises:
        ValueError: If the bytes are not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, SyntaxError) as e:
        raise ValueError(f"Thumbnail is not a valid image: {e}") from e

    img = img.convert("RGB")
    if img.width > max_width:
        ratio = max_width / img.width
        img = img.resize((max_width, max(1, round(img.height * ratio))))

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=85)
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


# ── CLI progress ───────────────────────────────────────────────────

def progress_printer(step: int = 25):
    """Handler for Progress responses that prints one line per stage step.

    A line is printed when a stage starts and each time its percentage
    crosses a multiple of `step`.
    """
    last = {"stage": None, "bucket": -1}

    def on_progress(progress) -> None:
        bucket = progress.progress // step
        if progress.stage == last["stage"] and bucket == last["bucket"]:
            return
        last["stage"] = progress.stage
        last["bucket"] = bucket
        print(f"  {progress.stage or 'job':<10} {progress.progress:3d}%", flush=True)

    return on_progress
