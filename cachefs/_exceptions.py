import errno


class CFSNotFoundError(FileNotFoundError):
    """Raised when a file or directory is missing from the index or its content is gone."""
    def __init__(self, message: str, path: str) -> None:
        super().__init__(errno.ENOENT, message, path)
        self.path = path


class CFSInvalidParentError(CFSNotFoundError):
    """Raised when the parent directory of a write or rename target does not exist."""


class CFSDirectoryNotEmptyError(OSError):
    """Raised by rmdir() on a directory that still has children."""
    def __init__(self, path: str) -> None:
        super().__init__(errno.ENOTEMPTY, "Directory is not empty", path)
        self.path = path


class CFSInvalidOperationError(OSError):
    """Raised for operations that do not apply to the target (unlink on a directory, bad mode)."""
    def __init__(self, message: str, path: str | None = None) -> None:
        if path is None:
            super().__init__(errno.EINVAL, message)
        else:
            super().__init__(errno.EINVAL, message, path)
        self.path = path
