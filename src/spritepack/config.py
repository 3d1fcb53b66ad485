import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Self

from spritepack.atlas.control import PRIVATE_TAGS, ChunkTags

# placements and origins are stored as signed 16-bit values
MAX_CANVAS_SIZE = 0x7FFF


def default_workers() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class _DefaultOverride:
    def __call__(self, **kwargs: Any) -> Self:
        return replace(self, **kwargs)


@dataclass(frozen=True)
class PipelineConfig(_DefaultOverride):
    source_path: str = '.'
    output_dir: str = 'sprites'
    canvas_width: int = 1024
    canvas_height: int = 1024
    workers: int = field(default_factory=default_workers)
    tags: ChunkTags = PRIVATE_TAGS
    fail_fast: bool = False
    keep_partial: bool = False
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger('spritepack'),
        repr=False,
        compare=False,
    )

    def __post_init__(self) -> None:
        for name in ('canvas_width', 'canvas_height'):
            value = getattr(self, name)
            if not 0 < value <= MAX_CANVAS_SIZE:
                raise ValueError(f'{name} must be in 1..{MAX_CANVAS_SIZE}, got {value}')
        if self.workers < 1:
            raise ValueError(f'workers must be positive, got {self.workers}')

    def output_path(self, filename: str) -> str:
        return os.path.join(self.output_dir, filename)


DEFAULT = PipelineConfig()
