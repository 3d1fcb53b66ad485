from collections.abc import Iterator
from typing import IO

from spritepack.kernel.chunk import (
    CRC_SIZE,
    PNG_SIGNATURE,
    Chunk,
    ChunkFormatError,
    PNGChunkHeader,
    check_crc,
    check_size,
    is_valid_tag,
    mktag,
)


def read_exact(stream: IO[bytes], size: int) -> bytes:
    """Read exactly `size` bytes, fewer only when the stream ends."""
    parts = []
    remaining = size
    while remaining:
        part = stream.read(remaining)
        if not part:
            break
        parts.append(part)
        remaining -= len(part)
    return b''.join(parts)


class ChunkReader:
    """Pull chunks one at a time from a PNG byte stream.

    End of stream on a chunk boundary ends the iteration, anything else
    that does not form a complete and valid chunk raises ChunkFormatError.
    """

    def __init__(self, stream: IO[bytes]) -> None:
        self.stream = stream
        self.offset = 0
        signature = self._read(len(PNG_SIGNATURE))
        if signature != PNG_SIGNATURE:
            raise ChunkFormatError('missing PNG signature', offset=0)

    def _read(self, size: int) -> bytes:
        data = read_exact(self.stream, size)
        self.offset += len(data)
        return data

    def next_chunk(self) -> Chunk | None:
        start = self.offset
        header_data = self._read(PNGChunkHeader.itemsize())
        if not header_data:
            return None
        if len(header_data) != PNGChunkHeader.itemsize():
            raise ChunkFormatError('truncated chunk header', offset=start)
        header = PNGChunkHeader.from_buffer(header_data)
        if not is_valid_tag(header.tag):
            raise ChunkFormatError(f'invalid chunk tag: {header.tag!r}', offset=start)
        data = self._read(check_size(header, start))
        stored = self._read(CRC_SIZE)
        if len(data) != header.size or len(stored) != CRC_SIZE:
            raise ChunkFormatError(
                f'truncated {header.tag.decode("ascii")} chunk',
                offset=start,
            )
        return check_crc(Chunk(header, data), stored, start)

    def __iter__(self) -> Iterator[Chunk]:
        while (chunk := self.next_chunk()) is not None:
            yield chunk


class ChunkWriter:
    def __init__(self, stream: IO[bytes]) -> None:
        self.stream = stream
        self.stream.write(PNG_SIGNATURE)

    def write_chunk(self, chunk: Chunk) -> int:
        # header and crc are rebuilt from tag and payload
        return self.stream.write(bytes(mktag(chunk.tag, chunk.data)))
