from collections.abc import Iterator, Sequence
from typing import IO

from spritepack.atlas.control import (
    PRIVATE_TAGS,
    ChunkTags,
    FrameInfo,
    write_control_table,
    write_palette_dump,
)
from spritepack.graphics.image import Palette
from spritepack.kernel.chunk import Chunk, mktag
from spritepack.kernel.stream import ChunkReader, ChunkWriter

TRIGGER_TAG = 'tRNS'


class ChunkStreamRewriter:
    """Copy a PNG stream chunk by chunk, adding sprite metadata after tRNS.

    The palette dump and the control table are written as a pair right
    after the transparency chunk, every other chunk passes unchanged.
    """

    def __init__(
        self,
        palette: Palette,
        infos: Sequence[FrameInfo],
        tags: ChunkTags = PRIVATE_TAGS,
    ) -> None:
        self.palette = palette
        self.infos = infos
        self.tags = tags

    def metadata(self) -> Iterator[Chunk]:
        yield mktag(self.tags.palette, write_palette_dump(self.palette))
        yield mktag(self.tags.control, write_control_table(self.infos))

    def rewrite(self, source: IO[bytes], sink: IO[bytes]) -> int:
        """Stream `source` into `sink`, returns how many times metadata was added."""
        # build payloads up front so a bad table fails before output is written
        metadata = list(self.metadata())
        writer = ChunkWriter(sink)
        injected = 0
        for chunk in ChunkReader(source):
            writer.write_chunk(chunk)
            if chunk.tag == TRIGGER_TAG:
                for extra in metadata:
                    writer.write_chunk(extra)
                injected += 1
        return injected
