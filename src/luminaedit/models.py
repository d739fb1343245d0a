"""Data model: assets, timeline clips, text overlays.

An Asset is imported media. A TimelineClip is one placement of an asset
on the single video track; the same asset may be placed many times, each
placement with its own instance_id, trim and look. A TextOverlay lives
on its own time axis and is not tied to any asset.

Times are float seconds throughout.
"""

from dataclasses import dataclass, field
from enum import Enum

from .common import validate_color


MIN_CLIP_DURATION = 0.1          # floor for any clip's visible length
NEGLIGIBLE_DELTA = 0.001         # trim changes below 1ms are dropped


class AssetState(str, Enum):
    IMPORTED = "imported"
    PREPARING = "preparing"
    METADATA_READY = "metadata_ready"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AssetState.READY, AssetState.FAILED)


class ColorFilter(str, Enum):
    NONE = "none"
    GRAYSCALE = "grayscale"
    SEPIA = "sepia"
    VINTAGE = "vintage"
    VIBRANT = "vibrant"


class Transition(str, Enum):
    NONE = "none"
    FADE = "fade"
    CROSSFADE = "crossfade"


class Edge(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass
class Asset:
    """Imported media.

    `file_name` is the key in the asset store and the name of the source
    inside the engine's working filesystem. It is unique per library;
    `name` is only for display.
    """

    id: str
    name: str
    file_name: str
    size: int
    duration: float = 0.0
    width: int = 0
    height: int = 0
    thumbnail: str = ""
    state: AssetState = AssetState.IMPORTED
    error: str | None = None
    suggest_compress: bool = False

    @property
    def is_ready(self) -> bool:
        return self.state is AssetState.READY and self.duration > 0


@dataclass
class VisualSettings:
    brightness: float = 0.0      # [-0.5, 0.5]
    contrast: float = 1.0        # [0, 3]
    saturation: float = 1.0      # [0, 3]

    def validate(self) -> None:
        """Raise ValueError if any adjustment is out of range."""
        _check_range("brightness", self.brightness, -0.5, 0.5)
        _check_range("contrast", self.contrast, 0.0, 3.0)
        _check_range("saturation", self.saturation, 0.0, 3.0)

    @property
    def is_identity(self) -> bool:
        return self.brightness == 0 and self.contrast == 1 and self.saturation == 1


@dataclass
class TimelineClip:
    """One placement of an asset on the video track.

    timeline_start is derived: only Timeline.reflow() writes it.
    """

    instance_id: str
    asset_id: str
    name: str
    file_name: str
    offset: float
    duration: float
    original_duration: float
    timeline_start: float = 0.0
    volume: float = 1.0
    filter: ColorFilter = ColorFilter.NONE
    visual: VisualSettings = field(default_factory=VisualSettings)
    transition: Transition = Transition.NONE

    @property
    def end(self) -> float:
        return self.timeline_start + self.duration

    def is_active(self, t: float) -> bool:
        return self.timeline_start <= t < self.timeline_start + self.duration


@dataclass
class TextOverlay:
    """Text drawn over the video between start_time and start_time + duration.

    x and y are percentages of the frame (0-100) locating the text centre.
    """

    id: str
    text: str
    start_time: float
    duration: float
    x: float = 50.0
    y: float = 50.0
    font_size: int = 48
    color: str = "#ffffff"
    font_family: str = "Inter, sans-serif"
    font_weight: str = "bold"
    font_style: str = "normal"
    shadow: bool = True

    def is_active(self, t: float) -> bool:
        return self.start_time <= t < self.start_time + self.duration

    def validate(self) -> None:
        """Raise ValueError on out-of-range geometry, timing or color."""
        _check_range("x", self.x, 0.0, 100.0)
        _check_range("y", self.y, 0.0, 100.0)
        if self.start_time < 0:
            raise ValueError(f"Overlay start_time must be >= 0, got {self.start_time}")
        if self.duration <= 0:
            raise ValueError(f"Overlay duration must be > 0, got {self.duration}")
        if self.font_size <= 0:
            raise ValueError(f"Overlay font_size must be > 0, got {self.font_size}")
        try:
            validate_color(self.color)
        except ValueError as e:
            raise ValueError(f"Overlay color: {e}") from None


def _check_range(name: str, value: float, lo: float, hi: float) -> None:
    if not lo <= value <= hi:
        raise ValueError(f"{name} must be in [{lo}, {hi}], got {value}")
