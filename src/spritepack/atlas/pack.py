from typing import Protocol

import numpy as np
from numpy.typing import NDArray

from spritepack.errors import CanvasOverflowError
from spritepack.graphics.image import Point, Rect, find_bbox

GAP = 1


class Surface(Protocol):
    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    @property
    def alpha(self) -> NDArray[np.uint8]: ...


class ShelfPacker:
    """Row-wrapping placement of frames on a surface that is drawn on as we go.

    A new row starts one pixel below the ink already on the surface, so
    `place` must be called after the previous frame has been drawn.
    """

    def __init__(self, surface: Surface) -> None:
        self.surface = surface
        self.left = 0
        self.top = 0

    def place(self, width: int, height: int) -> Rect:
        if self.left + width > self.surface.width:
            self.left = 0
            self.top = find_bbox(self.surface.alpha).y2 + GAP

        rect = Rect(self.left, self.top, self.left + width, self.top + height)
        # nothing is drawn for an empty frame
        if not rect.empty and (
            rect.x2 > self.surface.width or rect.y2 > self.surface.height
        ):
            raise CanvasOverflowError(
                width, height, (self.surface.width, self.surface.height)
            )

        self.left += width + GAP
        return rect


def centering_origin(size: Point, trim: Rect) -> Point:
    width, height = size
    return width // 2 - trim.x1, height // 2 - trim.y1
