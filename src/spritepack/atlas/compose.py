import logging
from dataclasses import dataclass, field, replace

import numpy as np
from numpy.typing import NDArray

from spritepack.atlas.control import FrameInfo
from spritepack.atlas.pack import ShelfPacker, centering_origin
from spritepack.graphics.frame import Frame, SpriteSet
from spritepack.graphics.image import (
    Palette,
    Rect,
    TImage,
    as_palette,
    convert_to_pil_image,
    find_bbox,
)

logger = logging.getLogger(__name__)


@dataclass
class Canvas:
    width: int
    height: int
    palette: Palette = field(default_factory=lambda: as_palette(np.empty((0, 4))))
    indices: NDArray[np.uint8] = field(init=False, repr=False)
    alpha: NDArray[np.uint8] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.indices = np.zeros((self.height, self.width), dtype=np.uint8)
        self.alpha = np.zeros((self.height, self.width), dtype=np.uint8)

    def draw(self, frame: Frame, src: Rect, dst: Rect) -> None:
        assert (src.width, src.height) == (dst.width, dst.height)
        src_alpha = frame.alpha[src.slices()]
        mask = src_alpha != 0
        # placements never overlap, so drawing over is a copy of the opaque pixels
        self.indices[dst.slices()][mask] = frame.raster[src.slices()][mask]
        self.alpha[dst.slices()][mask] = src_alpha[mask]


@dataclass(frozen=True)
class Atlas:
    indices: NDArray[np.uint8]
    palette: Palette
    infos: tuple[FrameInfo, ...]

    @property
    def transparency(self) -> bytes:
        return self.palette[:, 3].tobytes()

    def to_image(self) -> TImage:
        return convert_to_pil_image(self.indices, self.palette)


def background_index(palette: Palette) -> int:
    transparent = np.flatnonzero(palette[:, 3] == 0)
    if not transparent.size:
        logger.warning('palette has no transparent entry, using index 0 as background')
        return 0
    return int(transparent[0])


def compose(sprite_set: SpriteSet, width: int, height: int) -> Atlas | None:
    """Trim and pack every frame of a sprite set into one atlas.

    Returns None when nothing in the set is opaque.
    """
    canvas = Canvas(width, height)
    packer = ShelfPacker(canvas)
    infos = []

    for frame in sprite_set.frames():
        if len(canvas.palette) and not np.array_equal(canvas.palette, frame.palette):
            logger.warning(
                'sprite set %d: frames use different palettes, keeping the last one',
                sprite_set.index,
            )
        canvas.palette = frame.palette

        trim = frame.trim()
        placement = packer.place(trim.width, trim.height)
        if not trim.empty:
            canvas.draw(frame, trim, placement)

        infos.append(
            FrameInfo(
                bbox=placement,
                origin=centering_origin((frame.width, frame.height), trim),
                delay=frame.delay,
                action=frame.action,
            )
        )

    box = find_bbox(canvas.alpha)
    if box.empty:
        return None

    indices = canvas.indices[box.slices()].copy()
    indices[canvas.alpha[box.slices()] == 0] = background_index(canvas.palette)
    # placements refer to the cropped image
    return Atlas(
        indices,
        canvas.palette,
        tuple(
            replace(info, bbox=info.bbox.translate(-box.x1, -box.y1)) for info in infos
        ),
    )
