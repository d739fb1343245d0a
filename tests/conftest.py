"""Shared test fixtures for luminaedit tests."""

import io
import subprocess
import time
from pathlib import Path

import pytest
import imageio_ffmpeg
from PIL import Image

from luminaedit.errors import EngineFailure

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


PROBE_TEXT = """\
Input #0, mov,mp4,m4a,3gp,3g2,mj2, from '{name}':
  Metadata:
    major_brand     : isom
  Duration: 00:00:05.00, start: 0.000000, bitrate: 60 kb/s
  Stream #0:0[0x1](und): Video: h264 (High) (avc1 / 0x31637661), yuv420p(progressive), 320x240, 20 kb/s, 10 fps, 10 tbr, 10240 tbn (default)
  Stream #0:1[0x2](und): Audio: aac (LC) (mp4a / 0x6134706D), 44100 Hz, mono, fltp, 32 kb/s (default)
At least one output file must be specified"""


def _tiny_jpeg() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (32, 24), (0, 0, 255)).save(buf, format="JPEG")
    return buf.getvalue()


class FakeEngine:
    """In-memory stand-in for TranscodeEngine.

    Records every invocation, "produces" the last argument as output, and
    can be told to fail or to stall on chosen invocations.

    Attributes:
        files: name -> bytes, the working filesystem.
        runs: argument lists, in invocation order.
        fail_when: predicate on args; True makes run() return exit code 1.
        delays: substring -> seconds; run() sleeps when any argument
            contains the substring.
        probe_texts: name -> diagnostic text for probe(); PROBE_TEXT otherwise.
    """

    def __init__(self, fail_when=None, delays=None, probe_texts=None):
        self.files: dict[str, bytes] = {}
        self.runs: list[list[str]] = []
        self.fail_when = fail_when
        self.delays = delays or {}
        self.probe_texts = probe_texts or {}
        self.loaded = False
        self.closed = False

    def load(self):
        self.loaded = True

    def write_input(self, name, data):
        self.files[name] = bytes(data)

    def read_output(self, name):
        if name not in self.files:
            raise EngineFailure(f"Engine output '{name}' was not produced")
        return self.files[name]

    def delete_file(self, name):
        if name not in self.files:
            raise FileNotFoundError(name)
        del self.files[name]

    def list_files(self):
        return sorted(self.files)

    def path_for(self, name):
        return Path("/nonexistent") / name

    def clear(self):
        self.files.clear()

    def close(self):
        self.closed = True
        self.loaded = False

    def _stall(self, args):
        for needle, seconds in self.delays.items():
            if any(needle in a for a in args):
                time.sleep(seconds)

    def run(self, args, on_progress=None, duration=None, on_log=None):
        args = list(args)
        self.runs.append(args)
        self._stall(args)

        inputs = [args[i + 1] for i, a in enumerate(args[:-1]) if a == "-i"]
        if any(name not in self.files for name in inputs):
            return 1
        if self.fail_when is not None and self.fail_when(args):
            return 1

        output = args[-1]
        if output.endswith(".jpg"):
            self.files[output] = _tiny_jpeg()
        else:
            self.files[output] = f"rendered:{output}".encode()
        if on_progress is not None:
            on_progress(0.5)
            on_progress(1.0)
        return 0

    def probe(self, name):
        self.runs.append(["-i", name])
        self._stall([name])
        if name not in self.files:
            return f"{name}: No such file or directory"
        return self.probe_texts.get(name, PROBE_TEXT.format(name=name))


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def editor(fake_engine):
    """A started Editor over a FakeEngine and an in-memory store."""
    from luminaedit.session import Editor
    from luminaedit.store import MemoryAssetStore

    ed = Editor(MemoryAssetStore(), engine=fake_engine)
    ed.start(timeout=5)
    yield ed
    ed.close()


@pytest.fixture
def source_video(tmp_path):
    """Create a 5-second test video (320x240, 10fps) with audio using ffmpeg."""
    out = tmp_path / "source.mp4"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "color=c=blue:s=320x240:d=5:r=10",
            "-f", "lavfi", "-i", "anullsrc=r=44100:cl=mono",
            "-shortest",
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "32k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def color_video(tmp_path):
    """5-second 320x240 red video with a 440Hz tone, for colour/volume checks."""
    out = tmp_path / "red.mp4"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "color=c=red:s=320x240:d=5:r=10",
            "-f", "lavfi", "-i", "sine=frequency=440:sample_rate=44100:duration=5",
            "-shortest",
            "-c:v", "libx264", "-crf", "18", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "64k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out
