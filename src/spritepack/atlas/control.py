import io
import struct
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from spritepack.errors import ControlTableError
from spritepack.graphics.image import Palette, Point, Rect

PALETTE_KEYWORD = b'full'
PALETTE_DEPTH = 0x08
PALETTE_FREQUENCY = b'\xff\xff'

CONTROL_KEYWORD = b'fsctrl'
CONTROL_FORMAT = 0xFF

PALETTE_ENTRY = struct.Struct('<4B2s')
CONTROL_ENTRY = struct.Struct('<6h2B')


class ChunkTags(NamedTuple):
    palette: str
    control: str


# private, ancillary and not safe to copy: the payload is bound to the image layout
PRIVATE_TAGS = ChunkTags(palette='fsPL', control='fsCT')
# tags used by older tools, the payloads do not follow the standard layouts
LEGACY_TAGS = ChunkTags(palette='sPLT', control='zTXt')


@dataclass(frozen=True)
class FrameInfo:
    bbox: Rect
    origin: Point
    delay: int
    action: int


def _header(keyword: bytes, fmt: int) -> bytes:
    return keyword + b'\x00' + bytes([fmt])


def _check_header(data: bytes, keyword: bytes, fmt: int) -> int:
    header = _header(keyword, fmt)
    if data[: len(header)] != header:
        raise ControlTableError(
            f'expected {keyword.decode()} header but got {data[: len(header)]!r}'
        )
    return len(header)


def write_palette_dump(palette: Palette) -> bytes:
    with io.BytesIO() as stream:
        stream.write(_header(PALETTE_KEYWORD, PALETTE_DEPTH))
        for red, green, blue, alpha in np.asarray(palette, dtype=np.uint8).tolist():
            stream.write(PALETTE_ENTRY.pack(red, green, blue, alpha, PALETTE_FREQUENCY))
        return stream.getvalue()


def read_palette_dump(data: bytes) -> Palette:
    offset = _check_header(data, PALETTE_KEYWORD, PALETTE_DEPTH)
    body = data[offset:]
    if len(body) % PALETTE_ENTRY.size:
        raise ControlTableError(f'palette dump has {len(body)} trailing bytes')
    entries = [entry[:4] for entry in PALETTE_ENTRY.iter_unpack(body)]
    return np.array(entries, dtype=np.uint8).reshape(-1, 4)


def write_control_table(infos: Iterable[FrameInfo]) -> bytes:
    with io.BytesIO() as stream:
        stream.write(_header(CONTROL_KEYWORD, CONTROL_FORMAT))
        for info in infos:
            try:
                stream.write(
                    CONTROL_ENTRY.pack(
                        info.bbox.x1,
                        info.bbox.y1,
                        info.bbox.x2,
                        info.bbox.y2,
                        *info.origin,
                        info.delay,
                        info.action,
                    )
                )
            except struct.error as exc:
                raise ControlTableError(f'cannot store {info}: {exc}') from exc
        return stream.getvalue()


def read_control_table(data: bytes) -> Iterator[FrameInfo]:
    offset = _check_header(data, CONTROL_KEYWORD, CONTROL_FORMAT)
    body = data[offset:]
    if len(body) % CONTROL_ENTRY.size:
        raise ControlTableError(f'control table has {len(body)} trailing bytes')
    for x1, y1, x2, y2, ox, oy, delay, action in CONTROL_ENTRY.iter_unpack(body):
        yield FrameInfo(Rect(x1, y1, x2, y2), (ox, oy), delay, action)


def describe(infos: Sequence[FrameInfo]) -> Iterator[str]:
    for idx, info in enumerate(infos):
        box = info.bbox
        yield (
            f'FRAME {idx} - bbox: ({box.x1}, {box.y1}, {box.x2}, {box.y2})'
            f' origin: {info.origin} delay: {info.delay} action: {info.action}'
        )
