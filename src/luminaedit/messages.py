"""Control channel messages — requests to the worker and its responses.

Each message kind is its own frozen dataclass, so handlers are chosen by
type instead of by a string tag. Responses echo the identifying fields of
their request (asset id, file name) and callers match on those; there is
no request token. That is only unambiguous because the worker runs one
request at a time, in submission order.

Request -> terminal response:
  Load          -> LoadCompleted | Error
  PrepareFile   -> FileReady | Error
  GetThumbnail  -> ThumbnailReady | Error
  GetFrame      -> FrameReady | Error
  CompressFile  -> CompressionReady | Error
  ExportTimeline-> ExportReady | Error
  UnloadFile    -> (nothing)
  ClearAll      -> (nothing)
Progress may be emitted any number of times before a terminal response.
"""

from dataclasses import dataclass, field
from enum import IntEnum

from .errors import ErrorKind, error_from_kind
from .models import ColorFilter, Transition, VisualSettings


class QualityTier(IntEnum):
    """Still-capture quality. Lower value means higher quality."""

    BEST = 1
    GOOD = 5
    DRAFT = 15


# ── Job payloads ──────────────────────────────────────────────────


@dataclass(frozen=True)
class ClipSpec:
    """One clip of an export, in timeline order."""

    source_name: str
    offset: float
    duration: float
    volume: float = 1.0
    filter: ColorFilter = ColorFilter.NONE
    visual: VisualSettings = field(default_factory=VisualSettings)
    transition: Transition = Transition.NONE


@dataclass(frozen=True)
class OverlaySpec:
    text: str
    start_time: float
    duration: float
    x: float = 50.0
    y: float = 50.0
    font_size: int = 48
    color: str = "#ffffff"
    shadow: bool = False


# ── Requests ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Load:
    pass


@dataclass(frozen=True)
class PrepareFile:
    file_name: str
    asset_id: str


@dataclass(frozen=True)
class GetThumbnail:
    file_name: str
    asset_id: str
    duration: float | None = None


@dataclass(frozen=True)
class GetFrame:
    file_name: str
    time: float
    quality: QualityTier = QualityTier.BEST


@dataclass(frozen=True)
class CompressFile:
    file_name: str
    asset_id: str


@dataclass(frozen=True)
class ExportTimeline:
    clips: tuple[ClipSpec, ...]
    overlays: tuple[OverlaySpec, ...] = ()


@dataclass(frozen=True)
class UnloadFile:
    file_name: str


@dataclass(frozen=True)
class ClearAll:
    pass


# ── Responses ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class LoadCompleted:
    pass


@dataclass(frozen=True)
class FileReady:
    file_name: str
    asset_id: str
    duration: float
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class ThumbnailReady:
    file_name: str
    asset_id: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class FrameReady:
    file_name: str
    time: float
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class CompressionReady:
    original_id: str
    name: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class ExportReady:
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class Progress:
    """Percent (0-100) of the currently running engine invocation."""

    progress: int
    stage: str = ""


@dataclass(frozen=True)
class Error:
    """Terminal failure of one request."""

    kind: ErrorKind
    message: str
    request: str
    asset_id: str | None = None
    file_name: str | None = None

    def to_exception(self):
        return error_from_kind(self.kind, self.message)


REQUEST_TYPES = (
    Load, PrepareFile, GetThumbnail, GetFrame,
    CompressFile, ExportTimeline, UnloadFile, ClearAll,
)
