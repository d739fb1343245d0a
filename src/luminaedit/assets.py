"""Asset lifecycle — from imported bytes to a usable timeline source.

  IMPORTED -> PREPARING -> METADATA_READY -> READY
       \\__________\\______________\\________-> FAILED

IMPORTED: registered with duration 0, bytes handed to the store.
PREPARING: PrepareFile queued; the engine probes the source header.
METADATA_READY: duration and frame size known; GetThumbnail queued.
READY: thumbnail received. The asset can now go on the timeline.
FAILED: the engine reported an error for this asset. Duration stays 0
    and the asset stays in the library, unusable. Nothing is retried.

All requests go through the single-flight channel, so assets imported
together finish preparing in the order they were imported.
"""

import logging
import uuid
from pathlib import Path

from .common import safe_filename, thumbnail_reference, unique_name
from .errors import (
    AssetNotFoundError, ErrorKind, NotReadyError, ReadPermissionLost,
    error_from_kind,
)
from .messages import (
    CompressFile, Error, FileReady, GetFrame, GetThumbnail, PrepareFile,
    QualityTier, ThumbnailReady, UnloadFile,
)
from .models import Asset, AssetState
from .settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

# Requests whose failure marks the asset itself as failed. A failed
# compress or frame grab leaves the asset usable.
_LIFECYCLE_REQUESTS = {"PrepareFile", "GetThumbnail"}


class AssetLifecycleManager:
    def __init__(self, store, channel, settings: dict | None = None):
        self.store = store
        self.channel = channel
        self.settings = settings or dict(DEFAULT_SETTINGS)
        self._assets: dict[str, Asset] = {}
        self._failures: dict[str, Error] = {}

        channel.on(FileReady, self._on_file_ready)
        channel.on(ThumbnailReady, self._on_thumbnail_ready)
        channel.on(Error, self._on_error)

    # ── Lookup ───────────────────────────────────────────────────

    @property
    def assets(self) -> list[Asset]:
        return list(self._assets.values())

    def get(self, asset_id: str) -> Asset:
        try:
            return self._assets[asset_id]
        except KeyError:
            raise AssetNotFoundError(asset_id) from None

    def by_file_name(self, file_name: str) -> Asset | None:
        for asset in self._assets.values():
            if asset.file_name == file_name:
                return asset
        return None

    # ── Import ───────────────────────────────────────────────────

    def import_file(self, path: str | Path) -> Asset:
        """Read a file from disk and import it.

        Raises:
            FileNotFoundError: No such file.
            ReadPermissionLost: The file exists but cannot be read.
            StorageExhausted: The store refused the bytes.
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except PermissionError as e:
            raise ReadPermissionLost(str(path), str(e)) from e
        return self.import_bytes(path.name, data)

    def import_bytes(self, name: str, data: bytes) -> Asset:
        """Register an asset, store its bytes, and queue preparation.

        If the store rejects the bytes the registration is undone and
        the error propagates; no trace of the asset remains.
        """
        size = len(data)
        if size > self.settings["large_file_warning_bytes"]:
            logger.warning(
                "%s is %d MB; files this large may exhaust memory while editing. "
                "Compress it after import.", name, size // (1024 * 1024),
            )

        taken = {a.file_name for a in self._assets.values()}
        taken.update(e["name"] for e in self.store.list())
        asset = Asset(
            id=str(uuid.uuid4()),
            name=name,
            file_name=unique_name(safe_filename(name), taken),
            size=size,
            suggest_compress=size > self.settings["compress_suggestion_bytes"],
        )
        self._assets[asset.id] = asset

        try:
            self.store.put(asset.file_name, data)
        except Exception:
            del self._assets[asset.id]
            raise

        asset.state = AssetState.PREPARING
        self.channel.submit(PrepareFile(file_name=asset.file_name, asset_id=asset.id))
        logger.info("Imported %s as %s (%d bytes)", name, asset.file_name, size)
        return asset

    def wait_until_ready(self, asset_id: str, timeout: float | None = None) -> Asset:
        """Pump the channel until the asset is READY or FAILED.

        Raises:
            LuminaError: The asset failed; the error kind is preserved.
            TimeoutError: Still preparing after `timeout` seconds.
        """
        asset = self.get(asset_id)
        while not asset.state.is_terminal:
            try:
                self.channel.wait_for(
                    ThumbnailReady, Error, FileReady,
                    match=lambda r: getattr(r, "asset_id", None) == asset_id,
                    timeout=timeout,
                )
            except TimeoutError:
                raise TimeoutError(
                    f"Asset {asset.name} still {asset.state.value} after {timeout}s"
                ) from None

        if asset.state is AssetState.FAILED:
            failure = self._failures.get(asset_id)
            kind = failure.kind if failure else ErrorKind.ENGINE_FAILURE
            raise error_from_kind(kind, asset.error or "Asset preparation failed")
        return asset

    # ── Other jobs on an asset ───────────────────────────────────

    def _require_loaded(self, asset_id: str) -> Asset:
        asset = self.get(asset_id)
        if asset.state not in (AssetState.METADATA_READY, AssetState.READY):
            raise NotReadyError(
                f"'{asset.name}' is not loaded yet "
                f"(state: {asset.state.value}). Wait for it to finish processing."
            )
        return asset

    def compress(self, asset_id: str) -> None:
        asset = self._require_loaded(asset_id)
        self.channel.submit(CompressFile(file_name=asset.file_name, asset_id=asset.id))

    def capture_frame(
        self, asset_id: str, time: float, quality: QualityTier = QualityTier.BEST,
    ) -> None:
        asset = self._require_loaded(asset_id)
        self.channel.submit(
            GetFrame(file_name=asset.file_name, time=time, quality=QualityTier(quality))
        )

    # ── Removal ──────────────────────────────────────────────────

    def delete(self, asset_id: str) -> Asset:
        """Forget an asset, drop its bytes, and unload it from the engine.

        Timeline cleanup is the caller's job (see Editor.delete_asset).
        """
        asset = self._assets.pop(asset_id, None)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        self._failures.pop(asset_id, None)
        self.store.delete(asset.file_name)
        self.channel.submit(UnloadFile(file_name=asset.file_name))
        logger.info("Deleted asset %s", asset.file_name)
        return asset

    def clear(self) -> None:
        self._assets.clear()
        self._failures.clear()

    # ── Channel handlers ─────────────────────────────────────────

    def _on_file_ready(self, response: FileReady) -> None:
        asset = self._assets.get(response.asset_id)
        if asset is None or asset.state is not AssetState.PREPARING:
            return

        asset.duration = response.duration
        asset.width = response.width
        asset.height = response.height
        asset.state = AssetState.METADATA_READY
        self.channel.submit(GetThumbnail(
            file_name=asset.file_name, asset_id=asset.id, duration=asset.duration,
        ))

    def _on_thumbnail_ready(self, response: ThumbnailReady) -> None:
        asset = self._assets.get(response.asset_id)
        if asset is None or asset.state is not AssetState.METADATA_READY:
            return

        try:
            asset.thumbnail = thumbnail_reference(response.data)
        except ValueError as e:
            self._fail(asset, Error(
                kind=ErrorKind.ENGINE_FAILURE, message=str(e),
                request="GetThumbnail", asset_id=asset.id, file_name=asset.file_name,
            ))
            return

        try:
            self.store.set_thumbnail(asset.file_name, asset.thumbnail)
        except AssetNotFoundError:
            logger.warning("Thumbnail for %s arrived after its bytes were removed", asset.file_name)
        asset.state = AssetState.READY
        logger.info("%s ready: %.2fs", asset.file_name, asset.duration)

    def _on_error(self, response: Error) -> None:
        if response.request not in _LIFECYCLE_REQUESTS:
            return
        asset = self._assets.get(response.asset_id) if response.asset_id else None
        if asset is None or asset.state.is_terminal:
            return
        self._fail(asset, response)

    def _fail(self, asset: Asset, error: Error) -> None:
        asset.state = AssetState.FAILED
        asset.duration = 0.0
        asset.error = error.message
        self._failures[asset.id] = error
        logger.warning("%s failed: %s", asset.file_name, error.message)
