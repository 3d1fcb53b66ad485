import io
import sys
from collections.abc import Iterable, Iterator
from typing import IO

from parse import parse  # type: ignore[import-untyped]

from spritepack.kernel.chunk import Chunk


def findall(tag: str, root: Iterable[Chunk] | None) -> Iterator[Chunk]:
    if not root:
        return
    for chunk in root:
        if parse(tag, chunk.tag, evaluate_result=False, case_sensitive=True):
            yield chunk


def find(tag: str, root: Iterable[Chunk] | None) -> Chunk | None:
    return next(findall(tag, root), None)


def render(
    chunks: Iterable[tuple[int, Chunk]],
    stream: IO[str] = sys.stdout,
) -> None:
    for offset, chunk in chunks:
        flags = ''.join(
            (
                'C' if chunk.critical else 'a',
                'p' if chunk.private else '-',
            )
        )
        print(
            f'<{chunk.tag} offset="{offset}" size="{len(chunk)}"'
            f' crc="{chunk.crc:08x}" flags="{flags}" />',
            file=stream,
        )


def renders(chunks: Iterable[tuple[int, Chunk]]) -> str:
    with io.StringIO() as stream:
        render(chunks, stream=stream)
        return stream.getvalue()
