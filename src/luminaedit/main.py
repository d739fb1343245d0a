"""Subcommand dispatcher for luminaedit.

Usage:
    luminaedit export   --manifest ... --output ...
    luminaedit compress source.mp4 --output small.mp4
    luminaedit frame    source.mp4 --time 3.0 --output frame.jpg
    luminaedit probe    source.mp4
    luminaedit preview  --manifest ... --time 2.5 --output frame.png
"""

import argparse
import logging
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="luminaedit",
        description="Timeline video editing: export, compress, frame capture, preview.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log engine command lines and ffmpeg output",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("export", help="Render a project manifest to one video")
    subparsers.add_parser("compress", help="Re-encode a video smaller")
    subparsers.add_parser("frame", help="Capture a still frame")
    subparsers.add_parser("probe", help="Print duration and resolution")
    subparsers.add_parser("preview", help="Render a project preview still")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        # No subcommand given at all: show help and exit with error.
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if parsed.command == "export":
        from .export_cli import main as export_main
        export_main(remaining)
    elif parsed.command == "compress":
        from .compress_cli import main as compress_main
        compress_main(remaining)
    elif parsed.command == "frame":
        from .frame_cli import main as frame_main
        frame_main(remaining)
    elif parsed.command == "probe":
        from .probe_cli import main as probe_main
        probe_main(remaining)
    elif parsed.command == "preview":
        from .preview_cli import main as preview_main
        preview_main(remaining)


if __name__ == "__main__":
    main()
