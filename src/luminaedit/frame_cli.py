"""CLI for grabbing one still frame from a video.

Usage:
    luminaedit frame source.mp4 --time 3.0 --output frame.jpg
    luminaedit frame source.mp4 --time 3.0 --quality 15 --output draft.jpg
"""

import argparse
from pathlib import Path

from .messages import QualityTier
from .session import Editor
from .settings import load_settings


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Capture a JPEG still from a video.",
    )
    parser.add_argument("source", help="Path to source video")
    parser.add_argument(
        "--time", type=float, required=True,
        help="Timestamp in seconds",
    )
    parser.add_argument(
        "--quality", type=int, default=int(QualityTier.BEST),
        choices=[int(q) for q in QualityTier],
        help="Quality tier: 1 best, 5 good, 15 draft (default: 1)",
    )
    parser.add_argument(
        "--output", required=True,
        help="Output image path (.jpg)",
    )
    parser.add_argument(
        "--settings", default=None,
        help="Path to settings YAML",
    )
    parsed = parser.parse_args(args)

    source = Path(parsed.source)
    if not source.exists():
        raise FileNotFoundError(f"Source video not found: {source}")
    if parsed.time < 0:
        parser.error("--time must be >= 0")

    with Editor(settings=load_settings(parsed.settings)) as editor:
        asset = editor.import_file(source)
        editor.wait_until_ready(asset.id)
        print(f"Capturing {source} @ {parsed.time:.2f}s (quality {parsed.quality})")
        data = editor.capture_frame(asset.id, parsed.time, QualityTier(parsed.quality))

    output_path = Path(parsed.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    print(f"Done: {output_path}")


if __name__ == "__main__":
    main()
