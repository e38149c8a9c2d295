"""
Line-by-line search of a single archive entry.
"""
from __future__ import annotations

import codecs
import logging
from typing import AsyncIterator, List, Sequence

from gitlab_search.domain.models import MatchRecord
from gitlab_search.domain.text_match import matched_targets
from gitlab_search.services.extractor import READ_SIZE, TarEntryStream

logger = logging.getLogger(__name__)


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


async def aiter_lines(
    entry: TarEntryStream, encoding: str = "utf-8", chunk_size: int = READ_SIZE
) -> AsyncIterator[str]:
    """
    Decode an entry incrementally and yield it line by line.

    Lines are split on ``\\n`` with a trailing ``\\r`` removed, so CRLF files
    read the same as LF files. Undecodable bytes are replaced, which keeps
    binary files searchable without raising.

    Only newly decoded text is split. An unfinished line is kept as a list of
    fragments and joined once it ends, so a very long line costs linear time.
    """
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    fragments: List[str] = []
    async for chunk in entry.iter_chunks(chunk_size):
        parts = decoder.decode(chunk).split("\n")
        fragments.append(parts[0])
        if len(parts) == 1:
            continue
        yield _strip_cr("".join(fragments))
        for line in parts[1:-1]:
            yield _strip_cr(line)
        fragments = [parts[-1]]

    fragments.append(decoder.decode(b"", final=True))
    tail = "".join(fragments)
    if tail:
        yield _strip_cr(tail)


async def search_entry(
    entry: TarEntryStream, targets: Sequence[str], encoding: str = "utf-8"
) -> List[MatchRecord]:
    """
    Return one match record per target found in ``entry``.

    Each target is recorded for the first line that contains it only. Reading
    stops as soon as every target has been seen; the rest of the file is left
    to the extractor to skip. The entry is always advanced, even on error.
    """
    pending = list(targets)
    found: List[MatchRecord] = []
    lines = aiter_lines(entry, encoding)
    try:
        async for line in lines:
            for target in matched_targets(line, pending):
                logger.debug(f"Found {target} at: {entry.name}")
                found.append(MatchRecord(file_name=entry.name, matched_text=target))
                pending.remove(target)
            if not pending:
                break
    finally:
        await lines.aclose()
        entry.advance()
    return found
