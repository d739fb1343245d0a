"""Transcode pipeline — turns requests into engine invocations.

Job kinds:
  - prepare:  copy a stored source into the engine and probe it
  - thumbnail: one JPEG frame at a fixed offset
  - capture_frame: one JPEG frame at a given time and quality tier
  - compress: one re-encode at a fixed quality, width capped
  - export:   per-clip trim+filter+encode, stream-copy concat, optional
              overlay burn-in, final output

Every job writes uniquely named files into the engine's working
directory and deletes them again in a finally block, whether the job
succeeded or not. A non-zero exit from any invocation aborts the job with
EngineFailure; nothing is retried.

Progress is reported per invocation: each stage runs its own 0..1 range,
there is no job-wide percentage.
"""

import logging
import uuid

from .common import find_font_file
from .engine import TranscodeEngine, parse_probe_output
from .errors import EngineFailure, LuminaError
from .filters import (
    audio_filter, compress_scale_filter, concat_manifest,
    fmt_seconds, video_filter,
)
from .messages import ExportTimeline, QualityTier
from .overlays import overlay_filter
from .settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


# Quality tier -> mjpeg -q:v (2 is the best mjpeg accepts, 31 the worst).
FRAME_QSCALE = {
    QualityTier.BEST: 2,
    QualityTier.GOOD: 5,
    QualityTier.DRAFT: 15,
}


def _job_token() -> str:
    return uuid.uuid4().hex[:12]


class TranscodePipeline:
    """Runs jobs against one engine. Not reentrant: one job at a time."""

    def __init__(self, engine: TranscodeEngine, store, settings: dict | None = None):
        self.engine = engine
        self.store = store
        self.settings = settings or dict(DEFAULT_SETTINGS)

    def load(self) -> None:
        self.engine.load()

    # ── Helpers ──────────────────────────────────────────────────

    def _encode_args(self) -> list[str]:
        s = self.settings
        return [
            "-c:v", s["video_codec"],
            "-crf", str(s["crf"]),
            "-preset", s["preset"],
            "-threads", str(s["threads"]),
            "-c:a", s["audio_codec"],
            "-b:a", s["audio_bitrate"],
        ]

    def _run(self, args, failure: str, stage: str, on_progress=None, duration=None) -> None:
        """Run one invocation; raise EngineFailure(failure) on non-zero exit."""
        logger.info("Stage %s", stage)

        progress = None
        if on_progress is not None:
            def progress(fraction):
                on_progress(fraction, stage)

        code = self.engine.run(args, on_progress=progress, duration=duration)
        if code != 0:
            raise EngineFailure(failure, exit_code=code)

    def _discard(self, names) -> None:
        """Best-effort delete. Failures are logged, never raised."""
        for name in names:
            try:
                self.engine.delete_file(name)
            except FileNotFoundError:
                pass
            except (OSError, LuminaError) as e:
                logger.warning("Could not delete intermediate %s: %s", name, e)

    def _font_file(self) -> str | None:
        font = self.settings.get("font_file")
        if font:
            return font
        found = find_font_file()
        return str(found) if found else None

    # ── Source files ─────────────────────────────────────────────

    def prepare(self, file_name: str) -> dict:
        """Load a stored source into the engine and read its header.

        Returns:
            {"duration": seconds, "width": px, "height": px}

        Raises:
            AssetNotFoundError / ReadPermissionLost: from the store.
            EngineFailure: no duration could be recovered.
        """
        data = self.store.get(file_name)
        if not data:
            logger.warning(
                "Source %s is empty in the store; the original save probably "
                "hit a storage limit", file_name,
            )
        self.engine.write_input(file_name, data)

        meta = parse_probe_output(self.engine.probe(file_name))
        if meta["duration"] <= 0:
            raise EngineFailure(
                f"Could not read the duration of '{file_name}'. "
                "The file may be damaged or in an unsupported format."
            )
        logger.info(
            "Prepared %s: %.2fs %dx%d",
            file_name, meta["duration"], meta["width"], meta["height"],
        )
        return meta

    def unload(self, file_name: str) -> None:
        self._discard([file_name])

    def clear(self) -> None:
        self.engine.clear()

    # ── Stills ───────────────────────────────────────────────────

    def thumbnail(self, file_name: str, duration: float | None = None) -> bytes:
        """A single JPEG frame at the thumbnail offset.

        Sources shorter than the offset are sampled at their midpoint.
        """
        offset = self.settings["thumbnail_offset"]
        if duration is not None and 0 < duration <= offset:
            offset = duration / 2

        out = f"thumb_{_job_token()}.jpg"
        try:
            self._run(
                ["-ss", fmt_seconds(offset), "-i", file_name, "-frames:v", "1", out],
                failure="Thumbnail capture failed",
                stage="thumbnail",
            )
            return self.engine.read_output(out)
        finally:
            self._discard([out])

    def capture_frame(
        self,
        file_name: str,
        time: float,
        quality: QualityTier = QualityTier.BEST,
        on_progress=None,
    ) -> bytes:
        """A single JPEG frame at `time` seconds into the source."""
        qscale = FRAME_QSCALE[QualityTier(quality)]
        out = f"snapshot_{_job_token()}.jpg"
        try:
            self._run(
                [
                    "-ss", fmt_seconds(max(0.0, time)),
                    "-i", file_name,
                    "-frames:v", "1",
                    "-q:v", str(qscale),
                    "-threads", "1",
                    out,
                ],
                failure=(
                    "Frame capture failed. The video might be too large "
                    "for available memory."
                ),
                stage="frame",
                on_progress=on_progress,
            )
            return self.engine.read_output(out)
        finally:
            self._discard([out])

    # ── Compress ─────────────────────────────────────────────────

    def compress(self, file_name: str, on_progress=None) -> tuple[str, bytes]:
        """Re-encode a source smaller.

        Returns:
            (f"compressed_{file_name}", mp4 bytes)
        """
        s = self.settings
        out = f"compressed_{_job_token()}.mp4"
        try:
            self._run(
                [
                    "-i", file_name,
                    "-vcodec", s["video_codec"],
                    "-crf", str(s["crf"]),
                    "-preset", s["preset"],
                    "-vf", compress_scale_filter(s["compress_max_width"]),
                    "-acodec", s["audio_codec"],
                    "-b:a", s["audio_bitrate"],
                    "-threads", str(s["threads"]),
                    out,
                ],
                failure="Compression failed",
                stage="compress",
                on_progress=on_progress,
            )
            return f"compressed_{file_name}", self.engine.read_output(out)
        finally:
            self._discard([out])

    # ── Export ───────────────────────────────────────────────────

    def export(self, request: ExportTimeline, on_progress=None) -> bytes:
        """Render a timeline snapshot to one mp4.

        Stages, each with its own progress range:
          1. clip i/n: trim [offset, offset+duration), filter, encode
          2. concat:   stream-copy join in timeline order
          3. overlays: drawtext burn-in, or a plain copy when there are none

        Raises:
            EngineFailure: any stage failed. All intermediates are gone
                by the time this propagates.
        """
        clips = list(request.clips)
        overlays = list(request.overlays)
        if not clips:
            raise EngineFailure("Nothing to export: the timeline has no clips")

        job = _job_token()
        n = len(clips)
        total = sum(c.duration for c in clips)
        trims = [f"trim_{job}_{i}.mp4" for i in range(n)]
        manifest = f"concat_{job}.txt"
        merged = f"merged_{job}.mp4"
        output = f"output_{job}.mp4"
        text_files = [f"overlay_{job}_{i}.txt" for i in range(len(overlays))]
        intermediates = [*trims, manifest, merged, output, *text_files]

        logger.info("Export %s: %d clips, %d overlays, %.2fs", job, n, len(overlays), total)
        try:
            for i, (clip, trim) in enumerate(zip(clips, trims)):
                self._run(
                    [
                        "-ss", fmt_seconds(clip.offset),
                        "-t", fmt_seconds(clip.duration),
                        "-i", clip.source_name,
                        "-vf", video_filter(clip, self.settings),
                        "-af", audio_filter(clip),
                        *self._encode_args(),
                        trim,
                    ],
                    failure=f"Export failed on clip {i}",
                    stage=f"clip {i + 1}/{n}",
                    on_progress=on_progress,
                    duration=clip.duration,
                )

            self.engine.write_input(manifest, concat_manifest(trims).encode("utf-8"))
            self._run(
                ["-f", "concat", "-safe", "0", "-i", manifest, "-c", "copy", merged],
                failure="Concatenate failed",
                stage="concat",
                on_progress=on_progress,
                duration=total,
            )

            if overlays:
                for overlay, text_file in zip(overlays, text_files):
                    self.engine.write_input(text_file, overlay.text.encode("utf-8"))
                s = self.settings
                self._run(
                    [
                        "-i", merged,
                        "-vf", overlay_filter(overlays, text_files, self._font_file()),
                        "-c:v", s["video_codec"],
                        "-crf", str(s["crf"]),
                        "-preset", s["preset"],
                        "-threads", str(s["threads"]),
                        "-c:a", "copy",
                        output,
                    ],
                    failure="Text overlay export failed",
                    stage="overlays",
                    on_progress=on_progress,
                    duration=total,
                )
            else:
                self._run(
                    ["-i", merged, "-c", "copy", output],
                    failure="Final copy failed",
                    stage="finalize",
                    on_progress=on_progress,
                    duration=total,
                )

            data = self.engine.read_output(output)
            logger.info("Export %s done: %d bytes", job, len(data))
            return data
        finally:
            self._discard(intermediates)
