import os
import queue
import threading
from collections.abc import Callable, Iterable, Iterator
from concurrent import futures
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from spritepack.atlas.compose import Atlas, compose
from spritepack.atlas.rewrite import ChunkStreamRewriter
from spritepack.config import PipelineConfig
from spritepack.errors import BatchError, EncodeError, FileWriteError, JobError
from spritepack.graphics.frame import SpriteSet
from spritepack.kernel.chunk import ChunkFormatError

ProgressCallback = Callable[[SpriteSet], None]

_DONE = None


def encode(atlas: Atlas, fd: int) -> None:
    with open(fd, 'wb') as stream:
        atlas.to_image().save(stream, format='PNG', transparency=atlas.transparency)


@contextmanager
def open_output(path: str, keep_partial: bool = False) -> Iterator[IO[bytes]]:
    try:
        stream = Path(path).open('wb')
    except OSError as exc:
        raise FileWriteError(path, str(exc)) from exc
    try:
        with stream:
            yield stream
    except BaseException:
        if not keep_partial:
            Path(path).unlink(missing_ok=True)
        raise


def write_atlas(atlas: Atlas, path: str, config: PipelineConfig) -> int:
    """Encode `atlas` and stream it through the rewriter into `path`.

    The encoder runs in its own thread and writes into a pipe that the
    rewriter reads from, a full pipe blocks the encoder until the rewriter
    catches up.
    """
    rewriter = ChunkStreamRewriter(atlas.palette, atlas.infos, config.tags)
    read_fd, write_fd = os.pipe()
    with futures.ThreadPoolExecutor(max_workers=1) as pool:
        source = open(read_fd, 'rb')
        producer = pool.submit(encode, atlas, write_fd)
        try:
            # closing the read end makes a blocked encoder fail with BrokenPipeError
            with source, open_output(path, config.keep_partial) as sink:
                try:
                    injected = rewriter.rewrite(source, sink)
                except OSError as exc:
                    raise FileWriteError(path, str(exc)) from exc
        except ChunkFormatError:
            # a failing encoder truncates the stream, report the root cause
            cause = producer.exception()
            if cause is not None and not isinstance(cause, BrokenPipeError):
                raise EncodeError(f'cannot encode {path}: {cause}') from cause
            raise

        if (cause := producer.exception()) is not None:
            if not config.keep_partial:
                Path(path).unlink(missing_ok=True)
            raise EncodeError(f'cannot encode {path}: {cause}') from cause

    if not injected:
        config.logger.warning('%s: no tRNS chunk, sprite metadata was not added', path)
    return injected


def process_one(sprite_set: SpriteSet, config: PipelineConfig) -> str | None:
    """Build the annotated sprite sheet of one sprite set.

    Returns the written path or None when the set has nothing to draw.
    """
    try:
        atlas = compose(sprite_set, config.canvas_width, config.canvas_height)
        if atlas is None:
            config.logger.info('sprite set %d is empty, skipping', sprite_set.index)
            return None

        path = config.output_path(sprite_set.filename)
        write_atlas(atlas, path, config)
    except JobError as exc:
        exc.index = sprite_set.index
        raise
    config.logger.debug('sprite set %d written to %s', sprite_set.index, path)
    return path


class FirstError:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.index: int | None = None
        self.error: Exception | None = None
        self.failed = 0

    def record(self, index: int, error: Exception) -> None:
        with self._lock:
            self.failed += 1
            if self.error is None:
                self.index = index
                self.error = error

    def __bool__(self) -> bool:
        with self._lock:
            return self.error is not None

    def check(self) -> None:
        if self.error is not None:
            assert self.index is not None
            raise BatchError(self.index, self.error, self.failed) from self.error


def run(
    sprite_sets: Iterable[SpriteSet],
    config: PipelineConfig,
    on_progress: ProgressCallback | None = None,
) -> None:
    """Process every sprite set on `config.workers` threads.

    All jobs run even after a failure unless `config.fail_fast` is set,
    the first failure is raised as BatchError once the workers are done.
    """
    jobs: queue.Queue[SpriteSet | None] = queue.Queue(maxsize=config.workers)
    first_error = FirstError()

    def worker() -> None:
        while (sprite_set := jobs.get()) is not _DONE:
            if config.fail_fast and first_error:
                continue
            try:
                process_one(sprite_set, config)
            except Exception as exc:
                config.logger.error(
                    'sprite set %d failed: %s', sprite_set.index, exc
                )
                first_error.record(sprite_set.index, exc)
            if on_progress:
                try:
                    on_progress(sprite_set)
                except Exception:
                    # keep draining the queue
                    config.logger.exception(
                        'progress callback failed for sprite set %d', sprite_set.index
                    )

    threads = [
        threading.Thread(target=worker, name=f'spritepack-{idx}', daemon=True)
        for idx in range(config.workers)
    ]
    for thread in threads:
        thread.start()
    try:
        for sprite_set in sprite_sets:
            if config.fail_fast and first_error:
                break
            jobs.put(sprite_set)
    finally:
        for _ in threads:
            jobs.put(_DONE)
        for thread in threads:
            thread.join()

    first_error.check()
