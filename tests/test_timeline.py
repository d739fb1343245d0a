"""Tests for the timeline composition model."""

import random

import pytest

from luminaedit.models import Asset, AssetState


def _asset(duration=5.0, asset_id="a1", name="clip.mp4"):
    return Asset(
        id=asset_id, name=name, file_name=name, size=1000,
        duration=duration, state=AssetState.READY,
    )


def _assert_packed(timeline):
    t = 0.0
    for clip in timeline.clips:
        assert clip.timeline_start == pytest.approx(t)
        t += clip.duration


class TestAppendClip:
    def test_first_clip_starts_at_zero(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(4.0))
        assert clip.timeline_start == 0.0
        assert clip.offset == 0.0
        assert clip.duration == 4.0
        assert clip.original_duration == 4.0

    def test_appends_after_last(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        tl.append_clip(_asset(4.0))
        second = tl.append_clip(_asset(2.5, "a2", "b.mp4"))
        assert second.timeline_start == 4.0
        assert tl.total_duration() == 6.5

    def test_defaults(self):
        from luminaedit.models import ColorFilter, Transition
        from luminaedit.timeline import Timeline

        clip = Timeline().append_clip(_asset())
        assert clip.volume == 1.0
        assert clip.filter is ColorFilter.NONE
        assert clip.transition is Transition.NONE
        assert clip.visual.is_identity

    def test_same_asset_twice_gets_distinct_instances(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        asset = _asset()
        a = tl.append_clip(asset)
        b = tl.append_clip(asset)
        assert a.instance_id != b.instance_id
        assert a.asset_id == b.asset_id == asset.id

    @pytest.mark.parametrize("duration", [0.0, -1.0])
    def test_unmeasured_asset_refused(self, duration):
        from luminaedit.errors import NotReadyError
        from luminaedit.timeline import Timeline

        tl = Timeline()
        tl.append_clip(_asset(3.0))
        before = [(c.instance_id, c.timeline_start) for c in tl.clips]

        with pytest.raises(NotReadyError, match="still being processed"):
            tl.append_clip(_asset(duration, "a2"))
        assert [(c.instance_id, c.timeline_start) for c in tl.clips] == before


class TestResizeRightEdge:
    def test_shrinks(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        tail = tl.append_clip(_asset(2.0, "a2"))
        assert tl.resize_clip(clip.instance_id, "right", -1.5)
        assert clip.duration == pytest.approx(3.5)
        assert tail.timeline_start == pytest.approx(3.5)

    def test_floor(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        tl.resize_clip(clip.instance_id, "right", -100.0)
        assert clip.duration == pytest.approx(0.1)

    def test_cannot_grow_past_source(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        tl.resize_clip(clip.instance_id, "right", -2.0)
        tl.resize_clip(clip.instance_id, "right", 10.0)
        assert clip.duration == pytest.approx(5.0)

    def test_no_change_returns_false(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        assert tl.resize_clip(clip.instance_id, "right", 1.0) is False


class TestResizeLeftEdge:
    def test_trims_front(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        assert tl.resize_clip(clip.instance_id, "left", 1.0)
        assert clip.offset == pytest.approx(1.0)
        assert clip.duration == pytest.approx(4.0)

    def test_delta_clamped_to_floor(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        tl.resize_clip(clip.instance_id, "left", 50.0)
        assert clip.duration == pytest.approx(0.1)
        assert clip.offset == pytest.approx(4.9)

    def test_offset_never_negative(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        tl.resize_clip(clip.instance_id, "left", 1.0)
        tl.resize_clip(clip.instance_id, "left", -10.0)
        assert clip.offset == 0.0
        assert clip.duration == pytest.approx(5.0)

    def test_sub_millisecond_ignored(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        assert tl.resize_clip(clip.instance_id, "left", 0.0005) is False
        assert clip.offset == 0.0
        assert clip.duration == 5.0

    def test_unknown_edge_raises(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        with pytest.raises(ValueError):
            tl.resize_clip(clip.instance_id, "top", 1.0)


class TestReflowProperties:
    def test_random_edits_keep_track_packed(self):
        from luminaedit.timeline import Timeline

        rng = random.Random(1234)
        tl = Timeline()
        for step in range(300):
            op = rng.choice(["append", "resize", "resize", "delete", "move"])
            if op == "append" or not tl.clips:
                tl.append_clip(_asset(rng.uniform(0.5, 8.0), f"a{step}"))
            elif op == "resize":
                clip = rng.choice(tl.clips)
                tl.resize_clip(clip.instance_id, rng.choice(["left", "right"]), rng.uniform(-20, 20))
            elif op == "delete":
                tl.delete_clip(rng.choice(tl.clips).instance_id)
            else:
                tl.move_clip(rng.choice(tl.clips).instance_id, rng.randrange(len(tl.clips)))

            _assert_packed(tl)
            for clip in tl.clips:
                assert clip.duration >= 0.1 - 1e-9
                assert clip.offset >= 0.0

    def test_move_clip_reorders(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        a = tl.append_clip(_asset(1.0, "a"))
        b = tl.append_clip(_asset(2.0, "b"))
        c = tl.append_clip(_asset(3.0, "c"))
        tl.move_clip(c.instance_id, 0)
        assert [x.instance_id for x in tl.clips] == [c.instance_id, a.instance_id, b.instance_id]
        assert a.timeline_start == pytest.approx(3.0)
        assert b.timeline_start == pytest.approx(4.0)


class TestSetTrim:
    def test_sets_and_reflows(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        tail = tl.append_clip(_asset(5.0, "a2"))
        tl.set_trim(clip.instance_id, 1.0, 3.0)
        assert (clip.offset, clip.duration) == (1.0, 3.0)
        assert tail.timeline_start == 3.0

    @pytest.mark.parametrize("offset,duration", [(-1.0, 2.0), (0.0, 0.05), (3.0, 3.0)])
    def test_rejects_bad_ranges(self, offset, duration):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        with pytest.raises(ValueError):
            tl.set_trim(clip.instance_id, offset, duration)
        assert (clip.offset, clip.duration) == (0.0, 5.0)


class TestUpdateClip:
    def test_updates_look(self):
        from luminaedit.models import ColorFilter, Transition
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset())
        tl.update_clip(
            clip.instance_id, volume=0.5, filter="sepia",
            brightness=0.2, contrast=1.5, saturation=0.0, transition="fade",
        )
        assert clip.volume == 0.5
        assert clip.filter is ColorFilter.SEPIA
        assert clip.transition is Transition.FADE
        assert (clip.visual.brightness, clip.visual.contrast, clip.visual.saturation) == (0.2, 1.5, 0.0)

    @pytest.mark.parametrize("changes", [
        {"brightness": 0.6},
        {"contrast": 3.5},
        {"saturation": -0.1},
        {"volume": -1},
        {"filter": "noir"},
        {"transition": "wipe"},
        {"speed": 2},
    ])
    def test_invalid_edit_leaves_clip_unchanged(self, changes):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset())
        with pytest.raises(ValueError):
            tl.update_clip(clip.instance_id, **changes)
        assert clip.volume == 1.0
        assert clip.visual.is_identity


class TestDelete:
    def test_delete_clip_reflows(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        a = tl.append_clip(_asset(2.0, "a"))
        b = tl.append_clip(_asset(3.0, "b"))
        tl.delete_clip(a.instance_id)
        assert b.timeline_start == 0.0

    def test_cascade_removes_every_instance_and_keeps_overlays(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        target = _asset(2.0, "target")
        keep1 = tl.append_clip(_asset(1.0, "k1"))
        tl.append_clip(target)
        keep2 = tl.append_clip(_asset(3.0, "k2"))
        tl.append_clip(target)
        overlay = tl.add_overlay(start_time=1.0)

        removed = tl.delete_clips_for_asset("target")

        assert len(removed) == 2
        assert [c.instance_id for c in tl.clips] == [keep1.instance_id, keep2.instance_id]
        assert keep2.timeline_start == 1.0
        assert tl.total_duration() == 4.0
        assert tl.overlays == [overlay]

    def test_unknown_clip_raises(self):
        from luminaedit.timeline import Timeline

        with pytest.raises(KeyError):
            Timeline().delete_clip("nope")


class TestOverlays:
    def test_defaults(self):
        from luminaedit.timeline import Timeline

        o = Timeline().add_overlay()
        assert o.text == "New Text"
        assert (o.start_time, o.duration) == (0.0, 5.0)
        assert (o.x, o.y, o.font_size) == (50.0, 50.0, 48)
        assert o.color == "#ffffff"
        assert o.font_weight == "bold"
        assert o.shadow is True

    def test_move_clamps_at_zero(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        o = tl.add_overlay(start_time=2.0)
        tl.move_overlay(o.id, 1.5)
        assert o.start_time == 3.5
        tl.move_overlay(o.id, -10.0)
        assert o.start_time == 0.0

    def test_move_does_not_touch_clips(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(4.0))
        o = tl.add_overlay(start_time=1.0)
        tl.move_overlay(o.id, 2.0)
        assert clip.timeline_start == 0.0
        assert clip.duration == 4.0

    def test_update_validates_on_copy(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        o = tl.add_overlay(text="Hi")
        with pytest.raises(ValueError):
            tl.update_overlay(o.id, text="Bye", x=150)
        assert o.text == "Hi"
        assert o.x == 50.0

    @pytest.mark.parametrize("color", ["#fff", "#12345g", "not-a-color", ""])
    def test_add_rejects_bad_color(self, color):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        with pytest.raises(ValueError, match="Overlay color"):
            tl.add_overlay(1.0, "Hi", color=color)
        assert tl.overlays == []

    def test_update_rejects_bad_color(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        o = tl.add_overlay(text="Hi", color="yellow")
        with pytest.raises(ValueError, match="Overlay color"):
            tl.update_overlay(o.id, color="#fff")
        assert o.color == "yellow"

    @pytest.mark.parametrize("color", ["#FFCC00", "#e04c77", "white", "yellow"])
    def test_accepts_hex_and_names(self, color):
        from luminaedit.timeline import Timeline

        assert Timeline().add_overlay(color=color).color == color

    def test_update_unknown_field(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        o = tl.add_overlay()
        with pytest.raises(ValueError, match="Unknown overlay properties"):
            tl.update_overlay(o.id, opacity=0.5)

    def test_delete(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        o = tl.add_overlay()
        tl.delete_overlay(o.id)
        assert tl.overlays == []


class TestQueryActive:
    def test_overlay_window_is_half_open(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        o = tl.add_overlay(start_time=1.0, duration=2.0)
        assert tl.query_active(0.5).overlays == []
        assert tl.query_active(1.0).overlays == [o]
        assert tl.query_active(2.99).overlays == [o]
        assert tl.query_active(3.0).overlays == []

    def test_one_clip_at_boundary(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        a = tl.append_clip(_asset(2.0, "a"))
        b = tl.append_clip(_asset(3.0, "b"))
        assert tl.query_active(1.999).clip is a
        assert tl.query_active(2.0).clip is b
        assert tl.query_active(5.0).clip is None

    def test_overlapping_overlays(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        o1 = tl.add_overlay(start_time=0.0, duration=3.0)
        o2 = tl.add_overlay(start_time=2.0, duration=3.0)
        assert tl.query_active(2.5).overlays == [o1, o2]

    def test_source_time(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        tl.append_clip(_asset(2.0, "a"))
        b = tl.append_clip(_asset(5.0, "b"))
        tl.set_trim(b.instance_id, 1.5, 3.0)
        clip, source_t = tl.source_time_at(3.0)
        assert clip is b
        assert source_t == pytest.approx(2.5)
        assert tl.source_time_at(10.0) is None


class TestExportRequest:
    def test_snapshot(self):
        from luminaedit.messages import ExportTimeline
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        tl.set_trim(clip.instance_id, 1.0, 3.0)
        tl.update_clip(clip.instance_id, volume=0.5, filter="grayscale")
        tl.add_overlay(start_time=1.0, text="Hello", duration=2.0)

        req = tl.export_request()
        assert isinstance(req, ExportTimeline)
        assert req.clips[0].source_name == "clip.mp4"
        assert (req.clips[0].offset, req.clips[0].duration) == (1.0, 3.0)
        assert req.clips[0].volume == 0.5
        assert req.overlays[0].text == "Hello"

    def test_snapshot_is_detached(self):
        from luminaedit.timeline import Timeline

        tl = Timeline()
        clip = tl.append_clip(_asset(5.0))
        req = tl.export_request()
        tl.update_clip(clip.instance_id, brightness=0.3)
        assert req.clips[0].visual.brightness == 0.0

    def test_empty_timeline_refused(self):
        from luminaedit.errors import NotReadyError
        from luminaedit.timeline import Timeline

        with pytest.raises(NotReadyError):
            Timeline().export_request()
