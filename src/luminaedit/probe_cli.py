"""CLI for reading a video's duration and frame size.

Usage:
    luminaedit probe source.mp4 [more.mp4 ...]
"""

import argparse
from pathlib import Path

from .errors import LuminaError
from .session import Editor
from .settings import load_settings


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Print duration and resolution using the lightweight header probe.",
    )
    parser.add_argument("sources", nargs="+", help="Video files to probe")
    parser.add_argument(
        "--settings", default=None,
        help="Path to settings YAML",
    )
    parsed = parser.parse_args(args)

    missing = [s for s in parsed.sources if not Path(s).exists()]
    if missing:
        raise FileNotFoundError(
            "Source video(s) not found:\n" + "\n".join(f"  {m}" for m in missing)
        )

    failed = 0
    with Editor(settings=load_settings(parsed.settings)) as editor:
        imported = [(s, editor.import_file(s)) for s in parsed.sources]
        for source, asset in imported:
            try:
                editor.wait_until_ready(asset.id)
            except LuminaError as e:
                failed += 1
                print(f"  FAILED {source}: {e}")
                continue
            print(f"  {asset.duration:8.2f}s  {asset.width}x{asset.height}  {source}")

    if failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
