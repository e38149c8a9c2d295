"""Tests for the per-file line search."""

import os
import time

import pytest

from gitlab_search.domain.exceptions import ArchiveFormatError
from gitlab_search.domain.models import MatchRecord
from gitlab_search.domain.text_match import matched_targets
from gitlab_search.services.extractor import StreamingTarExtractor
from gitlab_search.services.line_search import aiter_lines, search_entry

from archive_helpers import build_tar_gz, chunked

FILE_NAME = "repo-main/src/app.py"


async def _search(content: bytes, targets, chunk_size: int = 37):
    """Search a single-file archive and return (matches, entry)."""
    extractor = StreamingTarExtractor(chunked(build_tar_gz([(FILE_NAME, content)]), chunk_size))
    outcome = []
    async for entry in extractor.entries():
        outcome.append((await search_entry(entry, targets), entry))
    return outcome[0]


@pytest.mark.asyncio
async def test_stops_once_every_target_matched():
    content = (
        b"import alpha\n"
        b"alpha = beta()\n"
        b"nothing here\n"
        b"still nothing\n"
        b"return beta\n"
    ) + b"filler line\n" * 20000

    matches, entry = await _search(content, ["alpha", "beta"])

    assert matches == [
        MatchRecord(file_name=FILE_NAME, matched_text="alpha"),
        MatchRecord(file_name=FILE_NAME, matched_text="beta"),
    ]
    # Reading stopped early; the rest was left for the extractor to skip.
    assert entry.remaining > 0
    assert entry.released


@pytest.mark.asyncio
async def test_no_match_returns_empty_list():
    matches, entry = await _search(b"one\ntwo\nthree\n", ["missing"])

    assert matches == []
    assert entry.remaining == 0
    assert entry.released


@pytest.mark.asyncio
async def test_partial_match_is_returned():
    matches, _ = await _search(b"token = 'abc'\n", ["token", "password"])

    assert matches == [MatchRecord(file_name=FILE_NAME, matched_text="token")]


@pytest.mark.asyncio
async def test_match_is_case_sensitive_and_literal():
    matches, _ = await _search(b"Secret\nse.ret\n", ["secret", "s.cret", "se.ret"])

    assert [m.matched_text for m in matches] == ["se.ret"]


@pytest.mark.asyncio
async def test_last_line_without_newline_and_crlf():
    matches, _ = await _search(b"first\r\nlast line needle", ["first\r", "needle"])

    assert [m.matched_text for m in matches] == ["needle"]


@pytest.mark.asyncio
async def test_binary_content_does_not_raise():
    content = bytes(range(256)) * 10 + b"\nneedle\n"

    matches, _ = await _search(content, ["needle"])

    assert [m.matched_text for m in matches] == ["needle"]


@pytest.mark.asyncio
async def test_aiter_lines_handles_split_multibyte_characters():
    content = "héllo wörld\nzweite Zeile\n".encode("utf-8")
    extractor = StreamingTarExtractor(chunked(build_tar_gz([("f.txt", content)])))

    lines = []
    async for entry in extractor.entries():
        lines = [line async for line in aiter_lines(entry, chunk_size=1)]
        entry.advance()

    assert lines == ["héllo wörld", "zweite Zeile"]


@pytest.mark.asyncio
async def test_stream_error_propagates_and_releases_entry():
    data = build_tar_gz([(FILE_NAME, os.urandom(30000).hex().encode())])
    extractor = StreamingTarExtractor(chunked(data[: len(data) // 2]))

    seen = []
    with pytest.raises(ArchiveFormatError):
        async for entry in extractor.entries():
            seen.append(entry)
            await search_entry(entry, ["needle"])

    assert seen and seen[0].released


def test_matched_targets_keeps_target_order():
    assert matched_targets("b a c", ["a", "b", "z"]) == ["a", "b"]


@pytest.mark.asyncio
async def test_long_single_line_is_searched_in_linear_time():
    content = b"a" * (32 * 1024 * 1024) + b" needle"
    data = build_tar_gz([(FILE_NAME, content)])

    started = time.perf_counter()
    matches = []
    async for entry in StreamingTarExtractor(chunked(data, 64 * 1024)).entries():
        matches = await search_entry(entry, ["needle"])
    elapsed = time.perf_counter() - started

    assert [m.matched_text for m in matches] == ["needle"]
    assert elapsed < 5.0


@pytest.mark.asyncio
async def test_line_spanning_many_chunks_is_joined():
    content = b"start-" + b"x" * 500 + b"-end\r\nnext\n"
    extractor = StreamingTarExtractor(chunked(build_tar_gz([("f.txt", content)])))

    lines = []
    async for entry in extractor.entries():
        lines = [line async for line in aiter_lines(entry, chunk_size=7)]
        entry.advance()

    assert lines == ["start-" + "x" * 500 + "-end", "next"]
