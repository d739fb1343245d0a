"""Transcode engine — the bundled ffmpeg binary behind a small file API.

The engine owns a private working directory that plays the part of a
virtual filesystem: sources are written into it by name, every ffmpeg
invocation runs with it as cwd, and outputs are read back and deleted by
name. Nothing outside the pipeline touches this directory.

ffmpeg reports on stderr. Each line is logged at DEBUG, handed to an
optional log callback, and scanned for `time=` stamps which become a
progress fraction of the invocation's expected duration.
"""

import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path

import imageio_ffmpeg

from .errors import EngineFailure
from .settings import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


DURATION_RE = re.compile(r"Duration: (\d+):(\d+):(\d+(?:\.\d+)?)")
RESOLUTION_RE = re.compile(r" (\d+)x(\d+)[, ]")
TIME_RE = re.compile(r"time=\s*(\d+):(\d+):(\d+(?:\.\d+)?)")


# ── Log parsing ───────────────────────────────────────────────────


def _hms_to_seconds(h: str, m: str, s: str) -> float:
    return int(h) * 3600 + int(m) * 60 + float(s)


def parse_duration(text: str) -> float:
    """Seconds from the first `Duration: HH:MM:SS.ff` marker, 0.0 if absent."""
    match = DURATION_RE.search(text)
    if not match:
        return 0.0
    return _hms_to_seconds(*match.groups())


def parse_resolution(text: str) -> tuple[int, int]:
    """(width, height) from the first `WxH` token, (0, 0) if absent.

    Stream declaration and mapping lines (anything containing
    `Stream #`) are skipped, so a size that only appears on a stream
    line is not reported. Codec tags such as `0x31637661)` never match
    because the token must end in a comma or space.
    """
    for line in text.splitlines():
        if "Stream #" in line:
            continue
        match = RESOLUTION_RE.search(line)
        if match:
            return int(match.group(1)), int(match.group(2))
    return 0, 0


def parse_probe_output(text: str) -> dict:
    """Duration and frame size recovered from probe diagnostics."""
    width, height = parse_resolution(text)
    return {"duration": parse_duration(text), "width": width, "height": height}


def _iter_log_lines(stream):
    """Yield decoded lines from ffmpeg's stderr.

    ffmpeg redraws its status line with carriage returns, so both CR and
    LF end a line.
    """
    buf = b""
    while True:
        chunk = stream.read1(4096)
        if not chunk:
            break
        buf += chunk
        parts = re.split(rb"[\r\n]", buf)
        buf = parts.pop()
        for part in parts:
            if part:
                yield part.decode("utf-8", errors="replace")
    if buf:
        yield buf.decode("utf-8", errors="replace")


# ── Engine ────────────────────────────────────────────────────────


class TranscodeEngine:
    """Handle on one ffmpeg working directory.

    Lifetime: load() before first use, close() when done. The pipeline
    holds the handle; there is no module-level instance.
    """

    def __init__(self, settings: dict | None = None, work_dir: str | Path | None = None):
        self.settings = settings or dict(DEFAULT_SETTINGS)
        self._requested_dir = Path(work_dir) if work_dir else None
        self._ffmpeg: str | None = None
        self.work_dir: Path | None = None
        self._owns_dir = False

    @property
    def loaded(self) -> bool:
        return self._ffmpeg is not None

    def load(self) -> None:
        """Locate the ffmpeg binary and create the working directory.

        Raises:
            EngineFailure: ffmpeg could not be located.
        """
        if self.loaded:
            return
        try:
            self._ffmpeg = imageio_ffmpeg.get_ffmpeg_exe()
        except RuntimeError as e:
            raise EngineFailure(f"Could not load ffmpeg: {e}") from e

        if self._requested_dir is not None:
            self._requested_dir.mkdir(parents=True, exist_ok=True)
            self.work_dir = self._requested_dir
        else:
            self.work_dir = Path(tempfile.mkdtemp(prefix="luminaedit-"))
            self._owns_dir = True
        logger.info("Engine loaded: %s (working dir %s)", self._ffmpeg, self.work_dir)

    def _require_loaded(self) -> Path:
        if not self.loaded:
            raise EngineFailure("Engine is not loaded")
        return self.work_dir

    def _path(self, name: str) -> Path:
        work_dir = self._require_loaded()
        p = work_dir / name
        if p.parent != work_dir:
            raise ValueError(f"Invalid engine file name: '{name}'")
        return p

    # ── Files ────────────────────────────────────────────────────

    def write_input(self, name: str, data: bytes) -> None:
        self._path(name).write_bytes(data)
        logger.debug("Wrote %s to engine (%d bytes)", name, len(data))

    def read_output(self, name: str) -> bytes:
        try:
            return self._path(name).read_bytes()
        except FileNotFoundError:
            raise EngineFailure(f"Engine output '{name}' was not produced") from None

    def delete_file(self, name: str) -> None:
        """Remove one file. Raises FileNotFoundError if it does not exist."""
        self._path(name).unlink()

    def list_files(self) -> list[str]:
        work_dir = self._require_loaded()
        return sorted(p.name for p in work_dir.iterdir() if p.is_file())

    def path_for(self, name: str) -> Path:
        return self._path(name)

    def clear(self) -> None:
        """Delete every file in the working directory."""
        for name in self.list_files():
            try:
                self.delete_file(name)
            except OSError as e:
                logger.warning("Could not delete %s during clear: %s", name, e)

    def close(self) -> None:
        if self._owns_dir and self.work_dir is not None:
            shutil.rmtree(self.work_dir, ignore_errors=True)
        self._ffmpeg = None
        self.work_dir = None

    # ── Invocation ───────────────────────────────────────────────

    def run(
        self,
        args: list[str],
        on_progress=None,
        duration: float | None = None,
        on_log=None,
    ) -> int:
        """Run ffmpeg with `args` inside the working directory.

        Args:
            args: ffmpeg arguments; file names are relative to the
                working directory.
            on_progress: Called with a fraction in [0, 1] as output time
                advances, and with 1.0 on success.
            duration: Expected output length. If None, the first
                `Duration:` in the log is used.
            on_log: Called with every stderr line.

        Returns:
            ffmpeg's exit code.
        """
        work_dir = self._require_loaded()
        cmd = [self._ffmpeg, "-hide_banner", "-nostdin", "-y", *args]
        logger.debug("ffmpeg %s", " ".join(args))

        total = duration if duration and duration > 0 else None
        last_fraction = -1.0

        try:
            proc = subprocess.Popen(
                cmd, cwd=work_dir,
                stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise EngineFailure(f"Could not start ffmpeg: {e}") from e

        with proc:
            for line in _iter_log_lines(proc.stderr):
                logger.debug("ffmpeg: %s", line)
                if on_log is not None:
                    on_log(line)

                if total is None:
                    d = parse_duration(line)
                    if d > 0:
                        total = d

                if on_progress is not None and total:
                    match = TIME_RE.search(line)
                    if match:
                        fraction = min(1.0, max(0.0, _hms_to_seconds(*match.groups()) / total))
                        if fraction != last_fraction:
                            last_fraction = fraction
                            on_progress(fraction)
            code = proc.wait()

        if code == 0 and on_progress is not None and last_fraction < 1.0:
            on_progress(1.0)
        return code

    def probe(self, name: str) -> str:
        """Lightweight header probe; returns ffmpeg's diagnostic text.

        Only the first `probe_size` bytes are analysed, nothing is
        decoded. ffmpeg exits non-zero here because no output is named;
        that is expected and ignored.
        """
        self._path(name)
        size = str(self.settings["probe_size"])
        lines: list[str] = []
        self.run(
            ["-analyzeduration", size, "-probesize", size, "-i", name],
            on_log=lines.append,
        )
        return "\n".join(lines)
