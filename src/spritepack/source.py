"""Read sprite sets from a directory of palette images.

Layout::

    SOURCE/<set>/<animation>/<order>_d<delay>_a<action>.png

Sprite set directories are named by their index, animations and frames
are taken in name and order sequence. Frames must be palette ('P' mode)
images, their tRNS alpha is kept in the palette.
"""

import logging
import os
from collections.abc import Iterator

import numpy as np
from parse import parse  # type: ignore[import-untyped]
from PIL import Image, UnidentifiedImageError

from spritepack.errors import SourceReadError
from spritepack.graphics.frame import Animation, Frame, SpriteSet
from spritepack.graphics.image import palette_from_image

logger = logging.getLogger(__name__)

SET_PATTERN = '{index:d}'
FRAME_PATTERN = '{order:d}_d{delay:d}_a{action:d}.png'


def read_frame(path: str, delay: int, action: int) -> Frame:
    with Image.open(path) as im:
        im.load()
        return Frame(
            raster=np.asarray(im, dtype=np.uint8),
            palette=palette_from_image(im),
            delay=delay,
            action=action,
        )


def read_animation(path: str) -> Animation:
    frames = []
    for name in os.listdir(path):
        res = parse(FRAME_PATTERN, name)
        if not res:
            logger.warning('ignoring unexpected file %s', os.path.join(path, name))
            continue
        frames.append((res['order'], res['delay'], res['action'], name))
    return Animation(
        tuple(
            read_frame(os.path.join(path, name), delay, action)
            for _, delay, action, name in sorted(frames)
        )
    )


def _subdirs(path: str) -> Iterator[str]:
    for entry in sorted(os.scandir(path), key=lambda entry: entry.name):
        if entry.is_dir():
            yield entry.name


def read_sprite_set(path: str, index: int) -> SpriteSet:
    return SpriteSet(
        index,
        tuple(read_animation(os.path.join(path, name)) for name in _subdirs(path)),
    )


def load_sprite_sets(path: str) -> list[SpriteSet]:
    """Read every sprite set under `path`, sorted by index.

    Any failure raises SourceReadError before a single set is returned.
    """
    try:
        indexed = []
        for name in _subdirs(path):
            res = parse(SET_PATTERN, name)
            if not res:
                logger.warning('ignoring unexpected directory %s', name)
                continue
            indexed.append((res['index'], name))
        return [
            read_sprite_set(os.path.join(path, name), index)
            for index, name in sorted(indexed)
        ]
    except (OSError, UnidentifiedImageError, ValueError) as exc:
        raise SourceReadError(path, str(exc)) from exc
