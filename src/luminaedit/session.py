"""Editor session — the controller that ties the components together.

Owns one asset store, one engine, the pipeline running on it, the
control channel's worker, the asset lifecycle manager and the timeline.
All model mutation happens on the caller's thread; only the worker
touches the engine.

Typical use:

    with Editor(DirectoryAssetStore("media")) as editor:
        asset = editor.import_file("clip.mp4")
        editor.wait_until_ready(asset.id)
        editor.add_to_timeline(asset.id)
        data = editor.export_and_wait()
"""

import logging

from .assets import AssetLifecycleManager
from .channel import ControlChannel
from .engine import TranscodeEngine
from .messages import (
    CompressionReady, Error, ExportReady, FrameReady, Load, LoadCompleted,
    Progress, QualityTier,
)
from .pipeline import TranscodePipeline
from .settings import DEFAULT_SETTINGS
from .store import MemoryAssetStore
from .timeline import Timeline

logger = logging.getLogger(__name__)


def _error_for(request_name: str, **fields):
    """match= predicate: an Error raised by `request_name` with these fields."""
    def match(response) -> bool:
        if not isinstance(response, Error):
            return True
        if response.request != request_name:
            return False
        return all(getattr(response, k) == v for k, v in fields.items())
    return match


class Editor:
    def __init__(self, store=None, engine=None, settings: dict | None = None):
        self.settings = settings or dict(DEFAULT_SETTINGS)
        self.store = store if store is not None else MemoryAssetStore()
        self.engine = engine if engine is not None else TranscodeEngine(self.settings)
        self.pipeline = TranscodePipeline(self.engine, self.store, self.settings)
        self.channel = ControlChannel(self.pipeline)
        self.assets = AssetLifecycleManager(self.store, self.channel, self.settings)
        self.timeline = Timeline()
        self.progress: Progress | None = None
        self.started = False

        self.channel.on(Progress, self._on_progress)

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self, timeout: float | None = None) -> None:
        """Start the worker and load the engine.

        Raises:
            EngineFailure: The engine could not be loaded.
        """
        if self.started:
            return
        self.channel.start()
        self.channel.submit(Load())
        response = self.channel.wait_for(
            LoadCompleted, Error, match=_error_for("Load"), timeout=timeout,
        )
        if isinstance(response, Error):
            self.channel.close()
            raise response.to_exception()
        self.started = True
        logger.info("Editor ready")

    def close(self) -> None:
        self.channel.close()
        self.engine.close()
        self.started = False

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def on(self, response_type: type, handler) -> None:
        self.channel.on(response_type, handler)

    def pump(self, timeout: float = 0.0) -> list:
        """Deliver pending worker responses (see ControlChannel.pump)."""
        return self.channel.pump(timeout)

    def _on_progress(self, progress: Progress) -> None:
        self.progress = progress

    # ── Assets ───────────────────────────────────────────────────

    def import_file(self, path):
        return self.assets.import_file(path)

    def import_bytes(self, name: str, data: bytes):
        return self.assets.import_bytes(name, data)

    def wait_until_ready(self, asset_id: str, timeout: float | None = None):
        return self.assets.wait_until_ready(asset_id, timeout)

    def delete_asset(self, asset_id: str):
        """Delete an asset and every clip that places it. Overlays stay."""
        removed = self.timeline.delete_clips_for_asset(asset_id)
        asset = self.assets.delete(asset_id)
        if removed:
            logger.info("Removed %d clip(s) of %s from the timeline", len(removed), asset.name)
        return asset

    # ── Timeline ─────────────────────────────────────────────────

    def add_to_timeline(self, asset_id: str):
        """Append a whole asset to the end of the video track.

        Raises:
            NotReadyError: The asset's duration is not known yet.
        """
        return self.timeline.append_clip(self.assets.get(asset_id))

    # ── Jobs ─────────────────────────────────────────────────────

    def export(self) -> None:
        """Snapshot the timeline and queue an export. Returns immediately.

        The result arrives as an ExportReady (or Error) response.

        Raises:
            NotReadyError: The timeline has no clips.
        """
        self.channel.submit(self.timeline.export_request())

    def export_and_wait(self, timeout: float | None = None) -> bytes:
        """Export and block until the output bytes are back."""
        self.export()
        response = self.channel.wait_for(
            ExportReady, Error, match=_error_for("ExportTimeline"), timeout=timeout,
        )
        if isinstance(response, Error):
            raise response.to_exception()
        return response.data

    def compress(self, asset_id: str, timeout: float | None = None) -> tuple[str, bytes]:
        """Re-encode an asset smaller.

        Returns:
            (name, data). The compressed copy is not added to the library.
        """
        self.assets.compress(asset_id)
        response = self.channel.wait_for(
            CompressionReady, Error,
            match=lambda r: (
                r.original_id == asset_id if isinstance(r, CompressionReady)
                else _error_for("CompressFile", asset_id=asset_id)(r)
            ),
            timeout=timeout,
        )
        if isinstance(response, Error):
            raise response.to_exception()
        return response.name, response.data

    def capture_frame(
        self,
        asset_id: str,
        time: float,
        quality: QualityTier = QualityTier.BEST,
        timeout: float | None = None,
    ) -> bytes:
        """One JPEG still from an asset's source."""
        file_name = self.assets.get(asset_id).file_name
        self.assets.capture_frame(asset_id, time, quality)
        response = self.channel.wait_for(
            FrameReady, Error,
            match=lambda r: r.file_name == file_name and (
                isinstance(r, FrameReady) or r.request == "GetFrame"
            ),
            timeout=timeout,
        )
        if isinstance(response, Error):
            raise response.to_exception()
        return response.data

    # ── Preview ──────────────────────────────────────────────────

    def source_path(self, file_name: str):
        """A readable file path for a stored source."""
        path = self.store.path_for(file_name)
        if path is not None:
            return path
        return self.engine.path_for(file_name)

    def preview(self, t: float, size: tuple[int, int] | None = None):
        """The composition at time t as an RGB array."""
        from .preview import render_preview

        if size is None:
            size = (self.settings["export_width"], self.settings["export_height"])
        return render_preview(self.timeline, t, self.source_path, size=size)

    # ── Reset ────────────────────────────────────────────────────

    def reset(self) -> int:
        """Drop everything: queued jobs, engine files, assets, timeline, stored bytes.

        A job already running is not interrupted.

        Returns:
            Number of queued requests dropped.
        """
        dropped = self.channel.clear_all() if self.started else 0
        self.assets.clear()
        self.timeline.clear()
        self.store.clear()
        self.progress = None
        logger.info("Editor reset")
        return dropped
