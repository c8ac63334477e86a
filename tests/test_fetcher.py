import asyncio
import unittest

from aiohttp import test_utils, web

from repo_mirror.config.models import FetchSettings
from repo_mirror.mirror.errors import FetchError
from repo_mirror.mirror.fetcher import RemoteFetcher

INDEX_BODY = b'<ul><li><a href="a/">a/</a></li></ul>'


async def _index(request: web.Request) -> web.Response:
    return web.Response(body=INDEX_BODY, content_type="text/html")


async def _missing(request: web.Request) -> web.Response:
    return web.Response(status=404, text="not found")


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(1.0)
    return web.Response(text="late")


async def _sluggish(request: web.Request) -> web.Response:
    await asyncio.sleep(0.3)
    return web.Response(text="eventually")


async def _large(request: web.Request) -> web.Response:
    return web.Response(body=b"x" * 4096)


class RemoteFetcherTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        app = web.Application()
        app.router.add_get("/repo/", _index)
        app.router.add_get("/repo/missing.py", _missing)
        app.router.add_get("/repo/slow.py", _slow)
        app.router.add_get("/repo/sluggish.py", _sluggish)
        app.router.add_get("/repo/large.bin", _large)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()

    async def asyncTearDown(self) -> None:
        await self.server.close()

    def _url(self, path: str) -> str:
        return str(self.server.make_url(path))

    async def test_fetch_returns_body(self) -> None:
        async with RemoteFetcher(FetchSettings()) as fetcher:
            body = await fetcher.fetch(self._url("/repo/"))
        self.assertEqual(body, INDEX_BODY)

    async def test_fetch_without_context_manager(self) -> None:
        fetcher = RemoteFetcher(FetchSettings())
        self.assertEqual(await fetcher.fetch(self._url("/repo/")), INDEX_BODY)

    async def test_concurrent_fetches_without_context_manager(self) -> None:
        fetcher = RemoteFetcher(FetchSettings(timeout_seconds=10))
        fast, slow = await asyncio.gather(
            fetcher.fetch(self._url("/repo/")),
            fetcher.fetch(self._url("/repo/sluggish.py")),
        )
        self.assertEqual(fast, INDEX_BODY)
        self.assertEqual(slow, b"eventually")
        self.assertIsNone(fetcher._session)

    async def test_http_error_status(self) -> None:
        async with RemoteFetcher(FetchSettings()) as fetcher:
            with self.assertRaises(FetchError) as ctx:
                await fetcher.fetch(self._url("/repo/missing.py"))
        self.assertEqual(ctx.exception.kind, "http_status")
        self.assertEqual(ctx.exception.status, 404)

    async def test_timeout(self) -> None:
        async with RemoteFetcher(FetchSettings(timeout_seconds=0.1)) as fetcher:
            with self.assertRaises(FetchError) as ctx:
                await fetcher.fetch(self._url("/repo/slow.py"))
        self.assertEqual(ctx.exception.kind, "timeout")

    async def test_body_size_limit(self) -> None:
        async with RemoteFetcher(FetchSettings(max_bytes=1024)) as fetcher:
            with self.assertRaises(FetchError) as ctx:
                await fetcher.fetch(self._url("/repo/large.bin"))
        self.assertEqual(ctx.exception.kind, "too_large")

    async def test_network_error(self) -> None:
        port = self.server.port
        await self.server.close()
        async with RemoteFetcher(FetchSettings(timeout_seconds=2)) as fetcher:
            with self.assertRaises(FetchError) as ctx:
                await fetcher.fetch(f"http://127.0.0.1:{port}/repo/")
        self.assertEqual(ctx.exception.kind, "network")


if __name__ == "__main__":
    unittest.main()
