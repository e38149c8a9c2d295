"""Tests for downloading archives across several references."""

import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from gitlab_search.domain.models import Project
from gitlab_search.services.archive_fetcher import ArchiveFetcher
from gitlab_search.services.gitlab_client import GitLabClient

BASE_URL = "https://gitlab.example.com/api/v4"
PROJECT = Project(id=7, name_with_namespace="group / seven")


def _client(available_refs, requested):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v4/projects/7/repository/archive.tar.gz"
        ref = request.url.params["sha"]
        requested.append(ref)
        if ref in available_refs:
            return httpx.Response(200, content=available_refs[ref])
        return httpx.Response(404, json={"message": "404 Not Found"})

    return GitLabClient("token", base_url=BASE_URL, transport=httpx.MockTransport(handler))


def _warnings(caplog):
    return [
        r for r in caplog.records
        if r.name == "gitlab_search.services.archive_fetcher" and r.levelno == logging.WARNING
    ]


@pytest.mark.asyncio
async def test_falls_back_to_next_ref(caplog):
    requested = []
    async with _client({"master": b"master archive"}, requested) as client:
        fetcher = ArchiveFetcher(client, backoff_seconds=15)
        with patch("gitlab_search.services.archive_fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with fetcher.fetch(PROJECT, ["main", "master"]) as opened:
                assert opened is not None
                ref, response = opened
                body = await response.aread()

    assert requested == ["main", "master"]
    assert ref == "master"
    assert body == b"master archive"
    sleep.assert_awaited_once_with(15)
    assert len(_warnings(caplog)) == 1


@pytest.mark.asyncio
async def test_first_ref_wins_without_delay():
    requested = []
    async with _client({"main": b"main", "master": b"master"}, requested) as client:
        fetcher = ArchiveFetcher(client, backoff_seconds=15)
        with patch("gitlab_search.services.archive_fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with fetcher.fetch(PROJECT, ["main", "master"]) as opened:
                ref, _ = opened

    assert ref == "main"
    assert requested == ["main"]
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_all_refs_failing_yields_none(caplog):
    requested = []
    async with _client({}, requested) as client:
        fetcher = ArchiveFetcher(client, backoff_seconds=15)
        with patch("gitlab_search.services.archive_fetcher.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with fetcher.fetch(PROJECT, ["main", "master", "develop"]) as opened:
                assert opened is None

    assert requested == ["main", "master", "develop"]
    assert sleep.await_count == 2
    assert any("No archive found" in r.getMessage() for r in _warnings(caplog))


@pytest.mark.asyncio
async def test_transport_error_counts_as_failed_attempt():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["sha"] == "main":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, content=b"ok")

    async with GitLabClient("token", base_url=BASE_URL, transport=httpx.MockTransport(handler)) as client:
        fetcher = ArchiveFetcher(client, backoff_seconds=0)
        async with fetcher.fetch(PROJECT, ["main", "master"]) as opened:
            ref, _ = opened

    assert ref == "master"
