"""luminaedit — timeline video editing on top of ffmpeg.

Arrange clips on a single gap-free video track, lay text overlays on
their own time axis, and render the result through a single-flight
transcode pipeline (per-clip trim and colour, stream-copy concat,
overlay burn-in). Projects can be declared in YAML manifests.
"""
