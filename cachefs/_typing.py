from typing import TypedDict


class CFSStatResult(TypedDict):
    dev: int
    ino: int
    mode: int
    nlink: int
    uid: int
    gid: int
    rdev: int
    size: int
    atime: float
    mtime: float
    ctime: float
    blksize: int
    blocks: int
