"""Helpers for building archives and fake response bodies in memory."""

import gzip
import io
import tarfile
from typing import AsyncIterator, Iterable, Optional, Tuple


def build_tar(
    members: Iterable[Tuple[str, Optional[bytes]]],
    tar_format: int = tarfile.PAX_FORMAT,
) -> bytes:
    """
    Build an uncompressed tar archive.

    ``members`` are ``(name, content)`` pairs; ``None`` content creates a
    directory entry.
    """
    raw = io.BytesIO()
    with tarfile.open(fileobj=raw, mode="w", format=tar_format) as tar:
        for name, content in members:
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(content))
    return raw.getvalue()


def build_tar_gz(
    members: Iterable[Tuple[str, Optional[bytes]]],
    tar_format: int = tarfile.PAX_FORMAT,
) -> bytes:
    return gzip.compress(build_tar(members, tar_format))


async def chunked(data: bytes, size: int = 37) -> AsyncIterator[bytes]:
    """Yield ``data`` in small pieces, the way a network body arrives."""
    for start in range(0, len(data), size):
        yield data[start:start + size]
