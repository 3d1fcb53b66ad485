import io
from collections.abc import Callable, Iterable

import numpy as np
import pytest
from PIL import Image

from spritepack.graphics.frame import Animation, Frame, SpriteSet
from spritepack.graphics.image import Point, as_palette

TWO_COLORS = as_palette([(0, 0, 0, 0), (255, 0, 0, 255)])

FrameFactory = Callable[..., Frame]


def make_frame(
    size: Point = (16, 16),
    pixels: Iterable[Point] = (),
    palette=TWO_COLORS,
    delay: int = 5,
    action: int = 1,
    color: int = 1,
) -> Frame:
    width, height = size
    raster = np.zeros((height, width), dtype=np.uint8)
    for x, y in pixels:
        raster[y, x] = color
    return Frame(raster, palette, delay, action)


def make_block(width: int, height: int, **kwargs) -> Frame:
    """Fully opaque frame of the given size."""
    pixels = [(x, y) for y in range(height) for x in range(width)]
    return make_frame((width, height), pixels, **kwargs)


def encode_png(frame: Frame) -> bytes:
    im = Image.fromarray(frame.raster)
    im.putpalette(frame.palette[:, :3].tobytes(), rawmode='RGB')
    with io.BytesIO() as stream:
        im.save(stream, format='PNG', transparency=frame.palette[:, 3].tobytes())
        return stream.getvalue()


@pytest.fixture
def frame_factory() -> FrameFactory:
    return make_frame


@pytest.fixture
def two_pixel_set() -> SpriteSet:
    """One animation, two 16x16 frames with a single opaque pixel each."""
    return SpriteSet(
        0,
        (Animation((make_frame(pixels=[(3, 4)]), make_frame(pixels=[(7, 9)]))),),
    )


@pytest.fixture
def empty_set() -> SpriteSet:
    return SpriteSet(1, (Animation((make_frame(), make_frame())),))


@pytest.fixture
def sample_png() -> bytes:
    return encode_png(make_frame(pixels=[(1, 1), (2, 3)]))
