"""Filter-graph fragments for per-clip export stages.

Each clip of an export is re-encoded on its own with one -vf chain and
one -af chain. The video chain is always built in this order:

  1. scale to the fixed export size (every clip must match for the
     stream-copy concat that follows)
  2. the named color filter, if any
  3. the brightness/contrast/saturation eq adjustment
  4. a fade-in from black when the clip's transition is "fade"

"crossfade" has no per-clip rendering; clips are joined by stream-copy
concat, which cannot overlap them, so it exports as a hard cut.
"""

from .models import ColorFilter, Transition

# Named look -> ffmpeg filter fragment.
COLOR_FILTERS = {
    ColorFilter.NONE: None,
    ColorFilter.GRAYSCALE: "hue=s=0",
    ColorFilter.SEPIA: (
        "colorchannelmixer=.393:.769:.189:0:.349:.686:.168:0:.272:.534:.131"
    ),
    ColorFilter.VINTAGE: "curves=vintage",
    ColorFilter.VIBRANT: "eq=saturation=1.3",
}


def fmt_seconds(value: float) -> str:
    """Seconds as ffmpeg time argument, millisecond precision."""
    return f"{value:.3f}"


def fmt_number(value: float) -> str:
    """Compact decimal for filter options ('1', '0.5', '-0.25')."""
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def video_filter_chain(clip, settings: dict) -> list[str]:
    """Ordered list of -vf fragments for one export clip."""
    width = settings["export_width"]
    height = settings["export_height"]
    filters = [f"scale={width}:{height}"]

    color = COLOR_FILTERS[clip.filter]
    if color:
        filters.append(color)

    v = clip.visual
    filters.append(
        f"eq=brightness={fmt_number(v.brightness)}"
        f":contrast={fmt_number(v.contrast)}"
        f":saturation={fmt_number(v.saturation)}"
    )

    if clip.transition is Transition.FADE:
        fade = min(settings["fade_in_duration"], clip.duration)
        filters.append(f"fade=t=in:st=0:d={fmt_number(fade)}")

    return filters


def video_filter(clip, settings: dict) -> str:
    return ",".join(video_filter_chain(clip, settings))


def audio_filter(clip) -> str:
    return f"volume={fmt_number(clip.volume)}"


def concat_manifest(file_names: list[str]) -> str:
    """ffmpeg concat-demuxer list, one `file '<name>'` line per input."""
    for name in file_names:
        if "'" in name or "\n" in name:
            raise ValueError(f"Cannot list '{name}' in a concat manifest")
    return "\n".join(f"file '{name}'" for name in file_names) + "\n"


def compress_scale_filter(max_width: int) -> str:
    """Cap width at max_width, keep aspect, keep height even."""
    return f"scale='min({max_width},iw)':-2"
