"""Tests for preview colour looks and frame rendering."""

import numpy as np
import pytest


def _solid(rgb, size=(4, 4)):
    return np.full((size[1], size[0], 3), rgb, dtype=np.uint8)


class TestApplyLook:
    def test_identity_is_copy(self):
        from luminaedit.preview import apply_look

        frame = _solid((10, 120, 200))
        out = apply_look(frame)
        assert np.array_equal(out, frame)
        assert out is not frame

    def test_brightness(self):
        from luminaedit.models import VisualSettings
        from luminaedit.preview import apply_look

        out = apply_look(_solid((200, 200, 200)), visual=VisualSettings(brightness=-0.5))
        assert tuple(out[0, 0]) == (100, 100, 100)

    def test_contrast_pivots_on_mid_grey(self):
        from luminaedit.models import VisualSettings
        from luminaedit.preview import apply_look

        out = apply_look(_solid((0, 128, 255)), visual=VisualSettings(contrast=0.0))
        assert out.min() >= 127 and out.max() <= 128

    def test_desaturate_to_luma(self):
        from luminaedit.models import VisualSettings
        from luminaedit.preview import apply_look

        out = apply_look(_solid((255, 0, 0)), visual=VisualSettings(saturation=0.0))
        assert tuple(out[0, 0]) == (54, 54, 54)

    def test_grayscale_channels_equal(self):
        from luminaedit.preview import apply_look

        out = apply_look(_solid((30, 160, 220)), "grayscale")
        r, g, b = out[0, 0]
        assert r == g == b

    def test_sepia_white(self):
        from luminaedit.models import ColorFilter
        from luminaedit.preview import apply_look

        out = apply_look(_solid((255, 255, 255)), ColorFilter.SEPIA)
        assert tuple(out[0, 0]) == (255, 255, 239)

    def test_vibrant_brightens(self):
        from luminaedit.preview import apply_look

        frame = _solid((100, 100, 100))
        assert int(apply_look(frame, "vibrant")[0, 0, 0]) == 110

    def test_vintage_warms(self):
        from luminaedit.preview import apply_look

        r, g, b = (int(v) for v in apply_look(_solid((128, 128, 128)), "vintage")[0, 0])
        assert r > b

    def test_unknown_filter(self):
        from luminaedit.preview import apply_look

        with pytest.raises(ValueError):
            apply_look(_solid((0, 0, 0)), "noir")

    def test_input_untouched(self):
        from luminaedit.preview import apply_look

        frame = _solid((50, 60, 70))
        apply_look(frame, "sepia")
        assert tuple(frame[0, 0]) == (50, 60, 70)


class TestRenderPreview:
    def _timeline_with(self, source, duration=5.0):
        from luminaedit.models import Asset
        from luminaedit.timeline import Timeline

        timeline = Timeline()
        asset = Asset(id="a1", name=source.name, file_name=source.name, size=1, duration=duration)
        clip = timeline.append_clip(asset)
        return timeline, clip

    def test_empty_timeline_is_black(self):
        from luminaedit.preview import render_preview
        from luminaedit.timeline import Timeline

        frame = render_preview(Timeline(), 0.0, lambda name: None, size=(64, 36))
        assert frame.shape == (36, 64, 3)
        assert frame.max() == 0

    def test_overlay_drawn_without_clip(self):
        from luminaedit.preview import render_preview
        from luminaedit.timeline import Timeline

        timeline = Timeline()
        timeline.add_overlay(start_time=0.0, text="Title", font_size=20, duration=2.0)
        frame = render_preview(timeline, 1.0, lambda name: None, size=(160, 90))
        assert frame.max() > 200
        assert render_preview(timeline, 2.0, lambda name: None, size=(160, 90)).max() == 0

    def test_source_frame(self, source_video):
        from luminaedit.preview import render_preview

        timeline, _ = self._timeline_with(source_video)
        frame = render_preview(timeline, 2.0, lambda name: source_video, size=(160, 120))
        assert frame.shape == (120, 160, 3)
        r, g, b = frame[60, 80].astype(int)
        assert b > 200 and r < 60 and g < 60

    def test_clip_look_applied(self, source_video):
        from luminaedit.models import ColorFilter
        from luminaedit.preview import render_preview

        timeline, clip = self._timeline_with(source_video)
        timeline.update_clip(clip.instance_id, filter=ColorFilter.GRAYSCALE)
        frame = render_preview(timeline, 1.0, lambda name: source_video, size=(160, 120))
        r, g, b = frame[60, 80].astype(int)
        assert r == g == b

    def test_past_end_is_black(self, source_video):
        from luminaedit.preview import render_preview

        timeline, _ = self._timeline_with(source_video)
        calls = []
        frame = render_preview(timeline, 6.0, calls.append, size=(32, 24))
        assert frame.max() == 0
        assert calls == []


class TestEditorPreview:
    def test_editor_preview_empty(self, editor):
        frame = editor.preview(0.0, size=(32, 18))
        assert frame.shape == (18, 32, 3)
        assert frame.max() == 0
