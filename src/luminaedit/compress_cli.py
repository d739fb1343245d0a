"""CLI for compressing one video.

Usage:
    luminaedit compress source.mp4 --output small.mp4
"""

import argparse
from pathlib import Path

from .common import progress_printer
from .messages import Progress
from .session import Editor
from .settings import load_settings


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Re-encode a video smaller (width capped, fixed quality).",
    )
    parser.add_argument("source", help="Path to source video")
    parser.add_argument(
        "--output", default=None,
        help="Output path (default: compressed_<source name> next to the source)",
    )
    parser.add_argument(
        "--settings", default=None,
        help="Path to settings YAML",
    )
    parsed = parser.parse_args(args)

    source = Path(parsed.source)
    if not source.exists():
        raise FileNotFoundError(f"Source video not found: {source}")

    with Editor(settings=load_settings(parsed.settings)) as editor:
        editor.on(Progress, progress_printer())
        asset = editor.import_file(source)
        editor.wait_until_ready(asset.id)
        print(f"Compressing {source}  {asset.width}x{asset.height}, {asset.duration:.1f}s")
        name, data = editor.compress(asset.id)

    output_path = Path(parsed.output) if parsed.output else source.with_name(name)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    ratio = len(data) / max(1, asset.size)
    print(f"Done: {output_path} ({len(data) / 1e6:.1f} MB, {ratio:.0%} of original)")


if __name__ == "__main__":
    main()
