"""CLI for rendering a preview still of a project at one instant.

Usage:
    luminaedit preview --manifest project.yaml --time 2.5 --output frame.png
"""

import argparse
from pathlib import Path

from PIL import Image

from .project_manifest import build_project, load_project_manifest, validate_project_paths
from .session import Editor
from .settings import load_settings


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Render the composition at one timeline time to an image.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to project YAML manifest",
    )
    parser.add_argument(
        "--time", type=float, required=True,
        help="Timeline time in seconds",
    )
    parser.add_argument(
        "--output", required=True,
        help="Output image path (.png or .jpg)",
    )
    parser.add_argument(
        "--settings", default=None,
        help="Path to settings YAML",
    )
    parsed = parser.parse_args(args)

    config = load_project_manifest(parsed.manifest)
    validate_project_paths(config)

    with Editor(settings=load_settings(parsed.settings)) as editor:
        build_project(editor, config)
        active = editor.timeline.query_active(parsed.time)
        clip_label = active.clip.name if active.clip else "no clip"
        print(f"Preview @ {parsed.time:.2f}s: {clip_label}, {len(active.overlays)} overlays")
        frame = editor.preview(parsed.time)

    output_path = Path(parsed.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(frame).save(output_path)
    print(f"Done: {output_path}")


if __name__ == "__main__":
    main()
