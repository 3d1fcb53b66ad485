import zlib
from abc import ABC
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from operator import attrgetter
from typing import (
    ClassVar,
    Generic,
    Protocol,
    Self,
    TypedDict,
    TypeVar,
    cast,
)

import numpy as np
from numpy.typing import NDArray

ArrayBuffer = NDArray[np.uint8] | memoryview | bytes

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
CRC_SIZE = 4
MAX_CHUNK_SIZE = 0x7FFFFFFF


class ChunkFormatError(ValueError):
    def __init__(self, message: str, offset: int | None = None) -> None:
        if offset is not None:
            message = f'{message} (at offset {offset})'
        super().__init__(message)
        self.offset = offset


class HeaderDType(Protocol):
    itemsize: ClassVar[int]
    names: ClassVar[tuple[str, str]]

    def tobytes(self) -> bytes: ...


T = TypeVar('T')


class ChunkHeaderDict(TypedDict):
    tag: bytes
    size: int


@dataclass(frozen=True, slots=True)
class ChunkHeaderData:
    tag: bytes
    size: int


class StructuredTuple(ABC, Generic[T]):
    __slots__ = ('_header',)
    dtype: ClassVar[type[HeaderDType]]

    def __init__(self, header: HeaderDType) -> None:
        self._header = header

    @classmethod
    def itemsize(cls) -> int:
        return cls.dtype.itemsize

    @classmethod
    def from_buffer(cls, buffer: ArrayBuffer) -> Self:
        chunk_header = np.frombuffer(buffer, dtype=cls.dtype, count=1)[0]
        return cls(chunk_header)

    def __bytes__(self) -> bytes:
        return self._header.tobytes()

    @classmethod
    def create(cls, data: T) -> Self:
        assert cls.dtype.names
        assert set(cls.dtype.names) == set(data.__class__.__annotations__)
        htuple = attrgetter(*cls.dtype.names)(data)
        header = np.array([htuple], dtype=cls.dtype)[0]
        return cls(header)


class ChunkHeader(StructuredTuple[ChunkHeaderData]):
    @property
    def tag(self) -> bytes:
        return cast(ChunkHeaderDict, self._header)['tag']

    @property
    def size(self) -> int:
        return int(cast(ChunkHeaderDict, self._header)['size'])


class PNGChunkHeader(ChunkHeader):
    dtype = cast(
        type[HeaderDType],
        np.dtype(
            [
                ('size', '>u4'),  # payload length, big endian
                ('tag', 'S4'),  # 4-byte chunk type
            ],
        ),
    )


def is_valid_tag(tag: bytes) -> bool:
    return len(tag) == 4 and tag.isalpha() and tag.isascii()


def crc(tag: bytes, data: ArrayBuffer) -> int:
    return zlib.crc32(memoryview(data), zlib.crc32(tag))


@dataclass(frozen=True, slots=True)
class Chunk:
    header: ChunkHeader
    data: ArrayBuffer

    @property
    def tag(self) -> str:
        return self.header.tag.decode('ascii')

    @property
    def crc(self) -> int:
        return crc(self.header.tag, self.data)

    @property
    def critical(self) -> bool:
        return self.tag[0].isupper()

    @property
    def private(self) -> bool:
        return self.tag[1].islower()

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:
        return (
            bytes(self.header)
            + memoryview(self.data).tobytes()
            + self.crc.to_bytes(CRC_SIZE, byteorder='big', signed=False)
        )

    def __repr__(self) -> str:
        return f'Chunk<{self.tag}>[{len(self)}]'


def mktag(tag: str, buffer: ArrayBuffer) -> Chunk:
    btag = tag.encode('ascii')
    if not is_valid_tag(btag):
        raise ChunkFormatError(f'invalid chunk tag: {tag!r}')
    header = PNGChunkHeader.create(ChunkHeaderData(tag=btag, size=len(buffer)))
    return Chunk(header, buffer)


def nslice(buffer: ArrayBuffer, start: int, end: int) -> ArrayBuffer:
    res = buffer[start:end]
    if len(res) != end - start:
        raise ChunkFormatError(
            f'chunk data size mismatch: {len(res)} != {end - start}',
            offset=start,
        )
    return res


def check_size(header: ChunkHeader, offset: int | None = None) -> int:
    if header.size > MAX_CHUNK_SIZE:
        raise ChunkFormatError('chunk length out of range', offset=offset)
    return header.size


def check_crc(chunk: Chunk, stored: bytes, offset: int | None = None) -> Chunk:
    expected = int.from_bytes(stored, byteorder='big', signed=False)
    if chunk.crc != expected:
        raise ChunkFormatError(
            f'crc mismatch in {chunk.tag} chunk: {chunk.crc:08x} != {expected:08x}',
            offset=offset,
        )
    return chunk


def read_chunk_header(
    buffer: ArrayBuffer,
    offset: int = 0,
) -> tuple[int, ChunkHeader]:
    header_data = nslice(buffer, offset, offset + PNGChunkHeader.itemsize())
    chunk_header = PNGChunkHeader.from_buffer(header_data)
    if not is_valid_tag(chunk_header.tag):
        raise ChunkFormatError(f'invalid chunk tag: {chunk_header.tag!r}', offset)
    return offset + PNGChunkHeader.itemsize(), chunk_header


def untag(buffer: ArrayBuffer, offset: int = 0) -> tuple[int, Chunk]:
    start = offset
    offset, chunk_header = read_chunk_header(buffer, offset)
    end = offset + check_size(chunk_header, start)
    chunk = Chunk(chunk_header, nslice(buffer, offset, end))
    stored = nslice(buffer, end, end + CRC_SIZE)
    check_crc(chunk, bytes(stored), start)
    return end + CRC_SIZE, chunk


def check_signature(buffer: ArrayBuffer) -> int:
    if bytes(buffer[: len(PNG_SIGNATURE)]) != PNG_SIGNATURE:
        raise ChunkFormatError('missing PNG signature', offset=0)
    return len(PNG_SIGNATURE)


def read_chunks(buffer: ArrayBuffer, offset: int = 0) -> Iterator[tuple[int, Chunk]]:
    """Iterate over the chunks of an in-memory PNG image.

    Starting at offset 0 the signature is checked first.
    """
    if offset == 0:
        offset = check_signature(buffer)
    while offset < len(buffer):
        noffset, chunk = untag(buffer, offset)
        yield offset, chunk
        offset = noffset


def write_chunks(chunks: Iterable[Chunk]) -> bytes:
    stream = bytearray(PNG_SIGNATURE)
    for chunk in chunks:
        stream += bytes(chunk)
    return bytes(stream)
