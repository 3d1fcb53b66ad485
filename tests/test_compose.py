import logging

import numpy as np
import pytest

from conftest import make_frame
from spritepack.atlas.compose import background_index, compose
from spritepack.graphics.frame import Animation, Frame, SpriteSet
from spritepack.graphics.image import Rect, as_palette


class TestCompose:
    def test_two_single_pixel_frames(self, two_pixel_set):
        atlas = compose(two_pixel_set, 1024, 1024)
        assert atlas is not None
        first, second = atlas.infos
        assert first.bbox == Rect(0, 0, 1, 1)
        assert second.bbox == Rect(2, 0, 3, 1)
        assert first.origin == (5, 4)
        assert second.origin == (1, -1)
        assert (first.delay, first.action) == (5, 1)
        assert atlas.indices.tolist() == [[1, 0, 1]]

    def test_empty_set_has_no_atlas(self, empty_set):
        assert compose(empty_set, 64, 64) is None

    def test_no_animations(self):
        assert compose(SpriteSet(3), 64, 64) is None

    def test_empty_frame_keeps_its_slot(self):
        frames = (make_frame(), make_frame(pixels=[(0, 0)]))
        atlas = compose(SpriteSet(0, (Animation(frames),)), 64, 64)
        assert atlas is not None
        blank, drawn = atlas.infos
        assert blank.bbox.empty
        assert blank.origin == (8, 8)
        # the cursor moved past the empty frame, the crop starts at the ink
        assert drawn.bbox == Rect(0, 0, 1, 1)

    def test_frame_order_across_animations(self):
        anims = (
            Animation((make_frame(pixels=[(0, 0)], action=1),)),
            Animation((make_frame(pixels=[(0, 0)], action=2),)),
        )
        atlas = compose(SpriteSet(0, anims), 64, 64)
        assert atlas is not None
        assert [info.action for info in atlas.infos] == [1, 2]

    def test_last_palette_wins(self, caplog):
        other = as_palette([(0, 0, 0, 0), (0, 255, 0, 255)])
        frames = (
            make_frame(pixels=[(0, 0)]),
            make_frame(pixels=[(0, 0)], palette=other),
        )
        with caplog.at_level(logging.WARNING):
            atlas = compose(SpriteSet(7, (Animation(frames),)), 64, 64)
        assert atlas is not None
        np.testing.assert_array_equal(atlas.palette, other)
        assert 'different palettes' in caplog.text

    def test_partial_alpha_is_drawn(self):
        palette = as_palette([(0, 0, 0, 0), (9, 9, 9, 40)])
        frame = make_frame((4, 4), [(1, 2)], palette=palette)
        atlas = compose(SpriteSet(0, (Animation((frame,)),)), 8, 8)
        assert atlas is not None
        assert atlas.transparency == bytes([0, 40])

    def test_to_image(self, two_pixel_set):
        atlas = compose(two_pixel_set, 1024, 1024)
        assert atlas is not None
        im = atlas.to_image()
        assert im.mode == 'P'
        assert im.size == (3, 1)


class TestBackground:
    def test_first_transparent_entry(self):
        palette = as_palette([(1, 1, 1, 255), (0, 0, 0, 0), (2, 2, 2, 0)])
        assert background_index(palette) == 1

    def test_without_transparent_entry(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert background_index(as_palette([(1, 1, 1)])) == 0
        assert 'no transparent entry' in caplog.text


class TestFrame:
    def test_alpha_comes_from_palette(self):
        frame = make_frame((2, 1), [(1, 0)])
        assert frame.alpha.tolist() == [[0, 255]]

    def test_rejects_index_outside_palette(self):
        with pytest.raises(ValueError, match='outside palette'):
            Frame(np.full((2, 2), 5, dtype=np.uint8), as_palette([(0, 0, 0)]))

    def test_rejects_flat_raster(self):
        with pytest.raises(ValueError, match='2-D raster'):
            Frame(np.zeros(4, dtype=np.uint8), as_palette([(0, 0, 0)]))

    def test_filename(self):
        assert SpriteSet(42).filename == '0042.png'
