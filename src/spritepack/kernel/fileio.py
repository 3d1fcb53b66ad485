from collections.abc import Iterator
from contextlib import contextmanager

import numpy as np

from spritepack.kernel.chunk import Chunk, ChunkFormatError, check_signature, read_chunks


class PNGFile:
    """Read-only, memory mapped PNG image.

    Chunk payloads are views into the mapping and are only valid until
    the file is closed.
    """

    __slots__ = ('path', '_buffer')

    def __init__(self, path: str) -> None:
        self.path = path
        try:
            self._buffer = np.memmap(path, dtype='u1', mode='r')
        except ValueError as exc:
            # numpy refuses to map an empty file
            raise ChunkFormatError(f'{path}: {exc}') from exc
        check_signature(self._buffer)

    def __len__(self) -> int:
        return len(self.buffer)

    @property
    def buffer(self) -> memoryview:
        if self._buffer is None:
            raise OSError(f'{self.path} is closed')  # noqa: TRY003
        return memoryview(self._buffer)

    def chunks(self) -> Iterator[tuple[int, Chunk]]:
        return read_chunks(self.buffer)

    def close(self) -> None:
        self._buffer = None


@contextmanager
def open_png(path: str) -> Iterator[PNGFile]:
    png = PNGFile(path)
    try:
        yield png
    finally:
        png.close()


def read_file(path: str) -> bytes:
    with open_png(path) as png:
        return png.buffer.tobytes()
