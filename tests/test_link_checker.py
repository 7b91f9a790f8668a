"""
Tests for the batch reachability scanner.

Uses a local aiohttp test server so real HEAD requests are exercised
without touching the network.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp import test_utils

from bookmark_sift.core import link_checker as link_checker_module
from bookmark_sift.core.data_models import Bookmark, LinkCheckResult, LinkStatus
from bookmark_sift.core.link_checker import LinkChecker, classify_status


async def _ok(request):
    return web.Response(text="ok")


async def _gone(request):
    return web.Response(status=404)


async def _removed(request):
    return web.Response(status=410)


async def _server_error(request):
    return web.Response(status=500)


async def _forbidden(request):
    return web.Response(status=403)


async def _redirect(request):
    raise web.HTTPMovedPermanently(location="/gone")


async def _slow(request):
    await asyncio.sleep(1)
    return web.Response(text="late")


def create_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/ok", _ok)
    app.router.add_get("/gone", _gone)
    app.router.add_get("/removed", _removed)
    app.router.add_get("/server-error", _server_error)
    app.router.add_get("/forbidden", _forbidden)
    app.router.add_get("/redirect", _redirect)
    app.router.add_get("/slow", _slow)
    return app


@asynccontextmanager
async def running_server():
    server = test_utils.TestServer(create_app())
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


class TestClassifyStatus:
    """Tests for status code classification."""

    @pytest.mark.parametrize("code", [404, 410])
    def test_dead_codes(self, code):
        assert classify_status(code) == LinkStatus.DEAD

    @pytest.mark.parametrize("code", [200, 204, 301, 401, 403, 429, 500, 503])
    def test_everything_else_alive(self, code):
        assert classify_status(code) == LinkStatus.ALIVE


class TestCheckLink:
    """Tests for single URL checks against a live test server."""

    @pytest.mark.asyncio
    async def test_statuses(self):
        async with running_server() as server:
            urls = {
                path: str(server.make_url(path))
                for path in ("/ok", "/gone", "/removed", "/server-error", "/forbidden")
            }
            checker = LinkChecker(batch_delay=0)
            results = await checker.check_links(list(urls.values()))

        by_url = {r.url: r for r in results}
        assert by_url[urls["/ok"]].status == LinkStatus.ALIVE
        assert by_url[urls["/ok"]].status_code == 200
        assert by_url[urls["/gone"]].status == LinkStatus.DEAD
        assert by_url[urls["/removed"]].status == LinkStatus.DEAD
        assert by_url[urls["/server-error"]].status == LinkStatus.ALIVE
        assert by_url[urls["/forbidden"]].status == LinkStatus.ALIVE

    @pytest.mark.asyncio
    async def test_redirects_are_followed(self):
        async with running_server() as server:
            async with LinkChecker(batch_delay=0) as checker:
                results = await checker.check_links([str(server.make_url("/redirect"))])

        assert results[0].status == LinkStatus.DEAD
        assert results[0].status_code == 404

    @pytest.mark.asyncio
    async def test_timeout(self):
        async with running_server() as server:
            checker = LinkChecker(timeout=0.2, batch_delay=0)
            results = await checker.check_links([str(server.make_url("/slow"))])

        assert results[0].status == LinkStatus.TIMEOUT
        assert results[0].status_code is None

    @pytest.mark.asyncio
    async def test_connection_failures_are_errors(self):
        checker = LinkChecker(timeout=2, batch_delay=0)
        results = await checker.check_links(
            ["http://127.0.0.1:1/", "ftp://example.com/file", "not a url"]
        )
        assert [r.status for r in results] == [LinkStatus.ERROR] * 3


class TestCheckLinks:
    """Tests for batching, ordering and progress reporting."""

    @pytest.fixture
    def stubbed_checker(self, monkeypatch):
        checker = LinkChecker(batch_size=2, batch_delay=0.5)
        in_flight = {"now": 0, "max": 0}

        async def fake_check_link(session, url):
            in_flight["now"] += 1
            in_flight["max"] = max(in_flight["max"], in_flight["now"])
            await asyncio.sleep(0)
            in_flight["now"] -= 1
            status = LinkStatus.DEAD if "dead" in url else LinkStatus.ALIVE
            return LinkCheckResult(url=url, status=status)

        sleeps = []
        real_sleep = asyncio.sleep

        async def fake_sleep(delay, *args, **kwargs):
            if delay:
                sleeps.append(delay)
            await real_sleep(0)

        monkeypatch.setattr(checker, "check_link", fake_check_link)
        monkeypatch.setattr(link_checker_module.asyncio, "sleep", fake_sleep)
        checker.sleeps = sleeps
        checker.in_flight = in_flight
        return checker

    @pytest.mark.asyncio
    async def test_empty_input(self):
        assert await LinkChecker().check_links([]) == []

    @pytest.mark.asyncio
    async def test_order_batches_and_delay(self, stubbed_checker):
        urls = [f"https://site{i}.com/" for i in range(5)]
        progress = []

        results = await stubbed_checker._check_batches(
            None, urls, lambda checked, total: progress.append((checked, total))
        )

        assert [r.url for r in results] == urls
        assert progress == [(2, 5), (4, 5), (5, 5)]
        # Pauses between the three batches, none after the last
        assert stubbed_checker.sleeps == [0.5, 0.5]
        assert stubbed_checker.in_flight["max"] <= 2

    @pytest.mark.asyncio
    async def test_progress_callback_errors_ignored(self, stubbed_checker):
        def broken(checked, total):
            raise RuntimeError("ui went away")

        results = await stubbed_checker._check_batches(
            None, ["https://a.com/", "https://b.com/", "https://c.com/"], broken
        )
        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_async_progress_callback(self, stubbed_checker):
        seen = []

        async def on_progress(checked, total):
            seen.append(checked)

        await stubbed_checker._check_batches(None, ["https://a.com/"], on_progress)
        assert seen == [1]

    @pytest.mark.asyncio
    async def test_find_dead_links(self, stubbed_checker, monkeypatch):
        async def fake_check_links(urls, on_progress=None):
            return await stubbed_checker._check_batches(None, urls, on_progress)

        monkeypatch.setattr(stubbed_checker, "check_links", fake_check_links)
        bookmarks = [
            Bookmark(id="1", url="https://dead.example/"),
            Bookmark(id="2", url="https://fine.example/"),
        ]

        dead = await stubbed_checker.find_dead_links(bookmarks)
        assert [b.id for b in dead] == ["1"]

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            LinkChecker(batch_size=0)
