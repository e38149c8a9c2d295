"""
Streaming extraction of ``.tar.gz`` archives.

The archive is never written to disk or held in memory as a whole: compressed
chunks are inflated as they arrive and the tar stream is cut into entries one
at a time. Only one entry's content can be read at any moment; the next entry
is not parsed until the consumer has called ``advance()`` on the current one.
"""
from __future__ import annotations

import asyncio
import logging
import tarfile
import zlib
from typing import AsyncIterable, AsyncIterator, Dict, Optional

from gitlab_search.domain.exceptions import ArchiveFormatError
from gitlab_search.domain.models import ArchiveEntry, EntryType

logger = logging.getLogger(__name__)

BLOCK_SIZE = tarfile.BLOCKSIZE
GZIP_WBITS = 16 + zlib.MAX_WBITS

# Upper bound on bytes inflated per step, keeps highly compressible input from
# expanding all at once.
MAX_INFLATE_SIZE = 256 * 1024
READ_SIZE = 64 * 1024
# Pax and GNU long name records are held in memory whole.
MAX_HEADER_PAYLOAD = 1024 * 1024

_ZERO_BLOCK = b"\0" * BLOCK_SIZE

_FILE_TYPES = (tarfile.REGTYPE, tarfile.AREGTYPE, tarfile.CONTTYPE)


def _padding(size: int) -> int:
    return -size % BLOCK_SIZE


def _entry_type(type_flag: bytes) -> EntryType:
    if type_flag in _FILE_TYPES:
        return "file"
    if type_flag == tarfile.DIRTYPE:
        return "directory"
    if type_flag == tarfile.SYMTYPE:
        return "symlink"
    return "other"


def parse_pax_records(data: bytes) -> Dict[str, str]:
    """
    Parse the ``"<length> <key>=<value>\\n"`` records of a pax header.
    """
    records: Dict[str, str] = {}
    pos = 0
    while pos < len(data):
        if data[pos:pos + 1] == b"\0":
            break
        space = data.find(b" ", pos)
        if space == -1:
            raise ArchiveFormatError("Malformed pax header: missing record length")
        try:
            length = int(data[pos:space])
        except ValueError as e:
            raise ArchiveFormatError(f"Malformed pax header: {e}") from e
        if length <= 0 or pos + length > len(data):
            raise ArchiveFormatError("Malformed pax header: bad record length")

        record = data[space + 1:pos + length]
        if not record.endswith(b"\n") or b"=" not in record:
            raise ArchiveFormatError("Malformed pax header record")
        key, value = record[:-1].split(b"=", 1)
        records[key.decode("utf-8", "surrogateescape")] = value.decode("utf-8", "surrogateescape")
        pos += length
    return records


class GzipChunkReader:
    """
    Buffered reader over an async iterable of gzip-compressed chunks.

    Errors are sticky: once the input or the decompressor has failed, every
    further read raises the same error.
    """

    def __init__(self, chunks: AsyncIterable[bytes]):
        self._chunks = chunks.__aiter__()
        self._decompressor = zlib.decompressobj(GZIP_WBITS)
        self._compressed = b""
        self._buffer = bytearray()
        self._input_done = False
        self._in_member = False
        self._seen_input = False
        self._error: Optional[BaseException] = None

    async def _fill(self) -> bool:
        """
        Inflate more data into the buffer.

        Returns False when the compressed input is exhausted and the gzip
        stream ended cleanly.
        """
        if self._error is not None:
            raise self._error
        try:
            return await self._inflate()
        except Exception as e:
            self._error = e
            raise

    async def _inflate(self) -> bool:
        while True:
            if self._decompressor.eof:
                # Concatenated gzip members are valid gzip.
                self._compressed = self._decompressor.unused_data + self._compressed
                self._decompressor = zlib.decompressobj(GZIP_WBITS)
                self._in_member = False

            if self._compressed:
                self._in_member = True
                self._seen_input = True
                try:
                    data = self._decompressor.decompress(self._compressed, MAX_INFLATE_SIZE)
                except zlib.error as e:
                    raise ArchiveFormatError(f"Corrupt gzip data: {e}") from e
                self._compressed = self._decompressor.unconsumed_tail
                if data:
                    self._buffer += data
                    return True
                continue

            if self._input_done:
                if self._in_member:
                    raise ArchiveFormatError("Unexpected end of gzip stream")
                if not self._seen_input:
                    raise ArchiveFormatError("Empty archive stream")
                return False

            try:
                self._compressed = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._input_done = True

    async def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes; ``b""`` only at the end of the stream."""
        if not self._buffer and not await self._fill():
            return b""
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    async def read_exactly(self, size: int) -> bytes:
        while len(self._buffer) < size:
            if not await self._fill():
                raise ArchiveFormatError(
                    f"Unexpected end of archive: wanted {size} bytes, got {len(self._buffer)}"
                )
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    async def skip(self, size: int) -> None:
        while size > 0:
            if not self._buffer and not await self._fill():
                raise ArchiveFormatError("Unexpected end of archive while skipping data")
            step = min(size, len(self._buffer))
            del self._buffer[:step]
            size -= step

    async def at_end(self) -> bool:
        return not self._buffer and not await self._fill()


class TarEntryStream:
    """
    Content of one regular file inside the archive.

    The stream reads straight from the shared decompressor, so the consumer
    must call ``advance()`` once it is done (fully read or abandoned).
    """

    def __init__(self, header: ArchiveEntry, reader: GzipChunkReader):
        self.header = header
        self._reader = reader
        self._remaining = header.size
        self._released = asyncio.Event()

    @property
    def name(self) -> str:
        return self.header.name

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def released(self) -> bool:
        return self._released.is_set()

    async def read(self, size: int = READ_SIZE) -> bytes:
        """Return up to ``size`` bytes of content; ``b""`` at the end of the file."""
        if self.released:
            raise ValueError(f"Entry {self.name} was already advanced past")
        if self._remaining <= 0:
            return b""
        data = await self._reader.read(min(size, self._remaining))
        if not data:
            raise ArchiveFormatError(f"Unexpected end of archive inside {self.name}")
        self._remaining -= len(data)
        return data

    async def iter_chunks(self, size: int = READ_SIZE) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(size)
            if not chunk:
                return
            yield chunk

    def advance(self) -> None:
        """Hand the cursor back to the extractor. Unread content is skipped."""
        self._released.set()

    async def wait_released(self) -> None:
        await self._released.wait()


class StreamingTarExtractor:
    """
    Single-cursor demultiplexer for a gzip-compressed tar stream.

    ``entries()`` yields a ``TarEntryStream`` for every regular file, in
    archive order. Directories, links and other entry kinds are drained
    internally and never surface. Iteration ends at the end-of-archive marker.
    """

    def __init__(self, chunks: AsyncIterable[bytes]):
        self._reader = GzipChunkReader(chunks)
        self.entry_count = 0
        self.file_count = 0

    async def entries(self) -> AsyncIterator[TarEntryStream]:
        pax_overrides: Dict[str, str] = {}
        long_name: Optional[str] = None

        while True:
            if await self._reader.at_end():
                # Some writers omit the trailing zero blocks.
                break
            block = await self._reader.read_exactly(BLOCK_SIZE)
            if block == _ZERO_BLOCK:
                break

            try:
                info = tarfile.TarInfo.frombuf(block, "utf-8", "surrogateescape")
            except tarfile.HeaderError as e:
                raise ArchiveFormatError(f"Invalid tar header: {e}") from e

            if info.type == tarfile.XHDTYPE:
                pax_overrides.update(parse_pax_records(await self._read_payload(info.size)))
                continue
            if info.type == tarfile.XGLTYPE:
                await self._reader.skip(info.size + _padding(info.size))
                continue
            if info.type == tarfile.GNUTYPE_LONGNAME:
                long_name = (await self._read_payload(info.size)).rstrip(b"\0").decode(
                    "utf-8", "surrogateescape"
                )
                continue
            if info.type == tarfile.GNUTYPE_LONGLINK:
                await self._reader.skip(info.size + _padding(info.size))
                continue

            name = pax_overrides.get("path") or long_name or info.name
            size = info.size
            if "size" in pax_overrides:
                try:
                    size = int(pax_overrides["size"])
                except ValueError as e:
                    raise ArchiveFormatError(f"Invalid pax size for {name}: {e}") from e
            pax_overrides = {}
            long_name = None

            header = ArchiveEntry(name=name, type=_entry_type(info.type), size=size)
            self.entry_count += 1

            if header.type != "file":
                await self._reader.skip(size + _padding(size))
                continue

            self.file_count += 1
            entry = TarEntryStream(header, self._reader)
            yield entry
            await entry.wait_released()
            await self._reader.skip(entry.remaining + _padding(size))

        logger.debug(f"Archive finished: {self.entry_count} entries, {self.file_count} files")

    async def _read_payload(self, size: int) -> bytes:
        if size > MAX_HEADER_PAYLOAD:
            raise ArchiveFormatError(
                f"Extended header of {size} bytes exceeds the {MAX_HEADER_PAYLOAD} byte limit"
            )
        data = await self._reader.read_exactly(size)
        await self._reader.skip(_padding(size))
        return data
