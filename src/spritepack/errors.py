class SpritePackError(Exception):
    pass


class SourceReadError(SpritePackError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f'Cannot read sprite source {path}: {reason}')
        self.path = path
        self.reason = reason


class JobError(SpritePackError):
    """Failure of a single sprite set, other jobs are not affected."""

    index: int | None = None


class CanvasOverflowError(JobError):
    def __init__(self, width: int, height: int, canvas: tuple[int, int]) -> None:
        super().__init__(
            f'Frame of {width}x{height} does not fit on {canvas[0]}x{canvas[1]} canvas'
        )
        self.size = (width, height)
        self.canvas = canvas


class ControlTableError(JobError):
    pass


class EncodeError(JobError):
    pass


class FileWriteError(JobError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f'Cannot write {path}: {reason}')
        self.path = path


class BatchError(SpritePackError):
    def __init__(self, index: int, error: Exception, failed: int) -> None:
        super().__init__(f'Sprite set {index} failed: {error} ({failed} failed in total)')
        self.index = index
        self.error = error
        self.failed = failed
