"""Timeline composition model — one video track plus a text overlay track.

Video track invariant: clips sit back to back with no gaps and no
overlaps. Clip i starts at the sum of the durations of clips 0..i-1.
Placement is never patched incrementally; every mutation that can change
a duration or the order ends with reflow(), a single left-to-right
prefix-sum pass over the whole sequence.

The overlay track has no such constraint. Overlays keep their own
start_time and may overlap each other and any clip.

All intervals are half-open: something spanning [start, start+duration)
is active at `start` and inactive at `start + duration`.
"""

import uuid
from dataclasses import dataclass, field

from .errors import NotReadyError
from .messages import ClipSpec, ExportTimeline, OverlaySpec
from .models import (
    MIN_CLIP_DURATION, NEGLIGIBLE_DELTA,
    ColorFilter, Edge, TextOverlay, TimelineClip, Transition, VisualSettings,
)


@dataclass
class ActiveItems:
    """Result of Timeline.query_active()."""

    clip: TimelineClip | None
    overlays: list[TextOverlay] = field(default_factory=list)


class Timeline:
    def __init__(self):
        self.clips: list[TimelineClip] = []
        self.overlays: list[TextOverlay] = []

    # ── Video track ──────────────────────────────────────────────

    def append_clip(self, asset) -> TimelineClip:
        """Place the whole of `asset` after the last clip.

        Raises:
            NotReadyError: The asset's duration is not known yet. The
                sequence is left untouched.
        """
        if asset.duration <= 0:
            raise NotReadyError(
                f"'{asset.name}' is still being processed. "
                "Wait for its thumbnail and metadata, then try again."
            )

        clip = TimelineClip(
            instance_id=str(uuid.uuid4()),
            asset_id=asset.id,
            name=asset.name,
            file_name=asset.file_name,
            offset=0.0,
            duration=asset.duration,
            original_duration=asset.duration,
        )
        self.clips.append(clip)
        self.reflow()
        return clip

    def reflow(self) -> None:
        """Recompute every clip's timeline_start as a running prefix sum."""
        t = 0.0
        for clip in self.clips:
            clip.timeline_start = t
            t += clip.duration

    def resize_clip(self, instance_id: str, edge: Edge | str, delta: float) -> bool:
        """Drag one edge of a clip by `delta` seconds.

        Right edge: the duration changes, never below MIN_CLIP_DURATION
        and never past the end of the source.
        Left edge: the in-point and the duration move together, so the
        clip shortens (or lengthens) from the front while its end frame
        stays put. The delta is clamped so the duration keeps the floor
        and the offset stays >= 0.

        Returns:
            True if anything changed. Left-edge moves under 1ms are
            ignored to avoid update storms from sub-pixel drags.
        """
        clip = self.get_clip(instance_id)
        edge = Edge(edge)

        if edge is Edge.RIGHT:
            # Source exhaustion is a soft bound: clamp, don't reject.
            available = max(MIN_CLIP_DURATION, clip.original_duration - clip.offset)
            new_duration = max(MIN_CLIP_DURATION, min(clip.duration + delta, available))
            if new_duration == clip.duration:
                return False
            clip.duration = new_duration
        else:
            safe_delta = min(delta, clip.duration - MIN_CLIP_DURATION)
            new_offset = max(0.0, clip.offset + safe_delta)
            offset_change = new_offset - clip.offset
            if abs(offset_change) <= NEGLIGIBLE_DELTA:
                return False
            clip.offset = new_offset
            clip.duration = max(MIN_CLIP_DURATION, clip.duration - offset_change)

        self.reflow()
        return True

    def set_trim(self, instance_id: str, offset: float, duration: float) -> TimelineClip:
        """Set a clip's in-point and length directly (manifest loading, property panel).

        Raises:
            ValueError: Negative offset, duration below the floor, or a
                range running past the end of the source.
        """
        clip = self.get_clip(instance_id)
        if offset < 0:
            raise ValueError(f"Clip offset must be >= 0, got {offset}")
        if duration < MIN_CLIP_DURATION:
            raise ValueError(
                f"Clip duration must be >= {MIN_CLIP_DURATION}, got {duration}"
            )
        if offset + duration > clip.original_duration + NEGLIGIBLE_DELTA:
            raise ValueError(
                f"Clip range {offset}+{duration}s exceeds source length "
                f"{clip.original_duration}s"
            )
        clip.offset = offset
        clip.duration = duration
        self.reflow()
        return clip

    def update_clip(self, instance_id: str, **changes) -> TimelineClip:
        """Edit a clip's look and sound.

        Accepted keys: volume, filter, brightness, contrast, saturation,
        transition. Trim goes through resize_clip/set_trim so that
        placement is always re-derived.
        """
        clip = self.get_clip(instance_id)
        visual = VisualSettings(
            brightness=changes.pop("brightness", clip.visual.brightness),
            contrast=changes.pop("contrast", clip.visual.contrast),
            saturation=changes.pop("saturation", clip.visual.saturation),
        )
        visual.validate()

        volume = changes.pop("volume", clip.volume)
        if volume < 0:
            raise ValueError(f"Clip volume must be >= 0, got {volume}")
        color_filter = ColorFilter(changes.pop("filter", clip.filter))
        transition = Transition(changes.pop("transition", clip.transition))

        if changes:
            raise ValueError(f"Unknown clip properties: {sorted(changes)}")

        clip.visual = visual
        clip.volume = float(volume)
        clip.filter = color_filter
        clip.transition = transition
        return clip

    def move_clip(self, instance_id: str, index: int) -> None:
        """Move a clip to position `index` in the sequence."""
        clip = self.get_clip(instance_id)
        self.clips.remove(clip)
        index = max(0, min(index, len(self.clips)))
        self.clips.insert(index, clip)
        self.reflow()

    def delete_clip(self, instance_id: str) -> TimelineClip:
        clip = self.get_clip(instance_id)
        self.clips.remove(clip)
        self.reflow()
        return clip

    def delete_clips_for_asset(self, asset_id: str) -> list[TimelineClip]:
        """Remove every placement of an asset. Overlays are not touched."""
        removed = [c for c in self.clips if c.asset_id == asset_id]
        self.clips = [c for c in self.clips if c.asset_id != asset_id]
        self.reflow()
        return removed

    def get_clip(self, instance_id: str) -> TimelineClip:
        for clip in self.clips:
            if clip.instance_id == instance_id:
                return clip
        raise KeyError(f"No clip with instance id {instance_id}")

    def total_duration(self) -> float:
        if not self.clips:
            return 0.0
        return self.clips[-1].end

    # ── Overlay track ────────────────────────────────────────────

    def add_overlay(self, start_time: float = 0.0, text: str = "New Text", **props) -> TextOverlay:
        overlay = TextOverlay(
            id=str(uuid.uuid4()),
            text=text,
            start_time=max(0.0, start_time),
            duration=props.pop("duration", 5.0),
            **props,
        )
        overlay.validate()
        self.overlays.append(overlay)
        return overlay

    def update_overlay(self, overlay_id: str, **changes) -> TextOverlay:
        overlay = self.get_overlay(overlay_id)
        editable = set(TextOverlay.__dataclass_fields__) - {"id"}
        unknown = set(changes) - editable
        if unknown:
            raise ValueError(f"Unknown overlay properties: {sorted(unknown)}")

        # Validate on a copy so a bad edit leaves the overlay unchanged.
        candidate = TextOverlay(**{**overlay.__dict__, **changes})
        candidate.validate()
        for key, value in changes.items():
            setattr(overlay, key, value)
        return overlay

    def move_overlay(self, overlay_id: str, delta: float) -> TextOverlay:
        """Shift an overlay in time. It stops at 0; nothing else moves."""
        overlay = self.get_overlay(overlay_id)
        overlay.start_time = max(0.0, overlay.start_time + delta)
        return overlay

    def delete_overlay(self, overlay_id: str) -> TextOverlay:
        overlay = self.get_overlay(overlay_id)
        self.overlays.remove(overlay)
        return overlay

    def get_overlay(self, overlay_id: str) -> TextOverlay:
        for overlay in self.overlays:
            if overlay.id == overlay_id:
                return overlay
        raise KeyError(f"No overlay with id {overlay_id}")

    # ── Queries ──────────────────────────────────────────────────

    def query_active(self, t: float) -> ActiveItems:
        """The clip (at most one) and the overlays active at time t."""
        clip = next((c for c in self.clips if c.is_active(t)), None)
        overlays = [o for o in self.overlays if o.is_active(t)]
        return ActiveItems(clip=clip, overlays=overlays)

    def source_time_at(self, t: float) -> tuple[TimelineClip, float] | None:
        """Map a timeline time to (clip, seconds into that clip's source)."""
        clip = self.query_active(t).clip
        if clip is None:
            return None
        return clip, t - clip.timeline_start + clip.offset

    def clear(self) -> None:
        self.clips = []
        self.overlays = []

    # ── Export snapshot ──────────────────────────────────────────

    def export_request(self) -> ExportTimeline:
        """Freeze the current composition into an export job payload.

        Raises:
            NotReadyError: The video track is empty.
        """
        if not self.clips:
            raise NotReadyError("Add at least one clip to the timeline before exporting.")

        clips = tuple(
            ClipSpec(
                source_name=c.file_name,
                offset=c.offset,
                duration=c.duration,
                volume=c.volume,
                filter=c.filter,
                visual=VisualSettings(**c.visual.__dict__),
                transition=c.transition,
            )
            for c in self.clips
        )
        overlays = tuple(
            OverlaySpec(
                text=o.text,
                start_time=o.start_time,
                duration=o.duration,
                x=o.x,
                y=o.y,
                font_size=o.font_size,
                color=o.color,
                shadow=o.shadow,
            )
            for o in self.overlays
        )
        return ExportTimeline(clips=clips, overlays=overlays)
