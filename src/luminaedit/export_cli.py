"""CLI for exporting a project manifest to one video file.

Usage:
    luminaedit export --manifest project.yaml --output out.mp4
    luminaedit export --manifest project.yaml --validate
"""

import argparse
import time
from pathlib import Path

from .common import progress_printer
from .messages import Progress
from .project_manifest import build_project, load_project_manifest, validate_project_paths
from .session import Editor
from .settings import load_settings


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Render a project manifest to a single mp4.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to project YAML manifest",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output video path (.mp4)",
    )
    parser.add_argument(
        "--settings", default=None,
        help="Path to settings YAML (encode parameters, fonts)",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate manifest and check paths, don't render",
    )
    parsed = parser.parse_args(args)

    config = load_project_manifest(parsed.manifest)
    validate_project_paths(config)

    if parsed.validate:
        print(
            f"Project manifest valid: {len(config['assets'])} assets, "
            f"{len(config['clips'])} clips, {len(config['overlays'])} overlays"
        )
        for i, c in enumerate(config["clips"]):
            length = "to end" if c["duration"] is None else f"{c['duration']:.2f}s"
            print(f"  {i}: {c['asset']} @ {c['offset']:.2f}s, {length}, {c['filter'].value}")
        print("All paths verified.")
        return

    if parsed.output is None:
        parser.error("--output is required unless --validate is given")

    settings = load_settings(parsed.settings)
    output_path = Path(parsed.output)

    with Editor(settings=settings) as editor:
        editor.on(Progress, progress_printer())

        print(f"Importing {len(config['assets'])} assets...")
        build_project(editor, config)

        timeline = editor.timeline
        print(
            f"Timeline: {len(timeline.clips)} clips, "
            f"{timeline.total_duration():.1f}s, {len(timeline.overlays)} overlays"
        )
        print(f"Writing to: {output_path}")
        t0 = time.monotonic()
        data = editor.export_and_wait()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    print(f"\nDone: {output_path} ({len(data) / 1e6:.1f} MB, {time.monotonic() - t0:.1f}s wall)")


if __name__ == "__main__":
    main()
