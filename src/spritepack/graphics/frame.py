from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from spritepack.graphics.image import Palette, Rect, as_palette, find_bbox


@dataclass(frozen=True, eq=False)
class Frame:
    raster: NDArray[np.uint8]
    palette: Palette
    delay: int = 0
    action: int = 0

    def __post_init__(self) -> None:
        raster = np.asarray(self.raster, dtype=np.uint8)
        if raster.ndim != 2:
            raise ValueError(f'expected 2-D raster but got shape {raster.shape}')
        palette = as_palette(self.palette)
        if raster.size and int(raster.max()) >= len(palette):
            raise ValueError(
                f'raster index {int(raster.max())} outside palette of {len(palette)}'
            )
        object.__setattr__(self, 'raster', raster)
        object.__setattr__(self, 'palette', palette)

    @property
    def width(self) -> int:
        return self.raster.shape[1]

    @property
    def height(self) -> int:
        return self.raster.shape[0]

    @property
    def alpha(self) -> NDArray[np.uint8]:
        return self.palette[self.raster, 3]

    def trim(self) -> Rect:
        return find_bbox(self.alpha)


@dataclass(frozen=True)
class Animation:
    frames: Sequence[Frame] = ()

    def __iter__(self) -> Iterator[Frame]:
        return iter(self.frames)

    def __len__(self) -> int:
        return len(self.frames)


@dataclass(frozen=True)
class SpriteSet:
    index: int
    animations: Sequence[Animation] = field(default_factory=tuple)

    def frames(self) -> Iterator[Frame]:
        for anim in self.animations:
            yield from anim

    @property
    def filename(self) -> str:
        return f'{self.index:04d}.png'

    def __repr__(self) -> str:
        nframes = sum(len(anim) for anim in self.animations)
        return f'SpriteSet<{self.index}>[{len(self.animations)} anims, {nframes} frames]'
