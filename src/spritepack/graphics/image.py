from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray
from PIL import Image

Point = tuple[int, int]
Palette = NDArray[np.uint8]

TImage = Image.Image


@dataclass(frozen=True, slots=True)
class Rect:
    x1: int = 0
    y1: int = 0
    x2: int = 0
    y2: int = 0

    @property
    def width(self) -> int:
        return max(self.x2 - self.x1, 0)

    @property
    def height(self) -> int:
        return max(self.y2 - self.y1, 0)

    @property
    def empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def overlaps(self, other: 'Rect') -> bool:
        if self.empty or other.empty:
            return False
        return (
            self.x1 < other.x2
            and other.x1 < self.x2
            and self.y1 < other.y2
            and other.y1 < self.y2
        )

    def translate(self, dx: int, dy: int) -> 'Rect':
        return Rect(self.x1 + dx, self.y1 + dy, self.x2 + dx, self.y2 + dy)

    def slices(self) -> tuple[slice, slice]:
        """Row and column slices selecting this rectangle from a 2-D array."""
        return slice(self.y1, self.y2), slice(self.x1, self.x2)


EMPTY = Rect()


def find_bbox(alpha: ArrayLike) -> Rect:
    """Smallest rectangle holding every pixel with non-zero alpha.

    Right and bottom edges are exclusive. A raster without any opaque
    pixel gives an empty rectangle at the origin.
    """
    opaque = np.asarray(alpha) != 0
    cols = np.flatnonzero(opaque.any(axis=0))
    if not cols.size:
        return EMPTY
    rows = np.flatnonzero(opaque.any(axis=1))
    return Rect(int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1)


def as_palette(colors: Sequence[Sequence[int]] | ArrayLike) -> Palette:
    """Normalize RGB or RGBA colors to an (N, 4) RGBA array.

    RGB entries are taken as fully opaque.
    """
    palette = np.asarray(colors, dtype=np.uint8)
    if palette.ndim != 2 or palette.shape[1] not in (3, 4):
        raise ValueError(f'expected RGB or RGBA colors, got shape {palette.shape}')
    if palette.shape[1] == 3:
        alpha = np.full((len(palette), 1), 0xFF, dtype=np.uint8)
        palette = np.hstack([palette, alpha])
    return palette


def palette_from_image(im: TImage) -> Palette:
    """Read the RGBA palette of a 'P' mode image, including tRNS alpha."""
    if im.mode != 'P':
        raise ValueError(f'expected palette image but got mode {im.mode}')
    rgb = np.frombuffer(bytes(im.getpalette('RGB') or b''), dtype=np.uint8)
    palette = as_palette(rgb.reshape(-1, 3))
    transparency = im.info.get('transparency')
    if isinstance(transparency, bytes):
        size = min(len(transparency), len(palette))
        palette[:size, 3] = np.frombuffer(transparency[:size], dtype=np.uint8)
    elif isinstance(transparency, int) and transparency < len(palette):
        palette[transparency, 3] = 0
    return palette


def convert_to_pil_image(indices: NDArray[np.uint8], palette: Palette) -> TImage:
    im = Image.fromarray(np.ascontiguousarray(indices, dtype=np.uint8))
    im.putpalette(palette[:, :3].tobytes(), rawmode='RGB')
    return im
