import os
import tempfile
import time
import unittest
from pathlib import Path

from mirror_fakes import BASE_URL, FakeFetcher, listing

from repo_mirror.mirror.cache_store import LISTING_NAMESPACE, FileSystemCacheStore
from repo_mirror.mirror.crawler import TreeCrawler, parse_listing
from repo_mirror.mirror.models import NodeKind, RepositorySpec, TreeNode
from repo_mirror.mirror.paths import listing_cache_key

D = NodeKind.DIRECTORY
F = NodeKind.FILE


def _repository_pages() -> dict[str, bytes]:
    return {
        BASE_URL: listing("../", "a/", "README"),
        BASE_URL + "a/": listing("../", "b/", "c/"),
        BASE_URL + "a/b/": listing("../", "file.py", "other.py"),
        BASE_URL + "a/c/": listing("../", "never.py"),
    }


class ParseListingTests(unittest.TestCase):
    def test_entries_in_document_order(self) -> None:
        html = listing("../", "zeta/", "alpha.py", "mid/")
        self.assertEqual(parse_listing(html), ["zeta/", "alpha.py", "mid/"])

    def test_only_anchors_opening_list_items(self) -> None:
        html = (
            b'<a href="outside.py">outside</a>'
            b"<ul>"
            b'<li><a href="kept.py">kept</a></li>'
            b'<li><span>icon</span><a href="skipped.py">skipped</a></li>'
            b'<li>\n  <a href="whitespace.py">ws</a></li>'
            b"</ul>"
        )
        self.assertEqual(parse_listing(html), ["kept.py", "whitespace.py"])

    def test_navigation_links_are_skipped(self) -> None:
        html = listing("../", "./", "/repo/", "?C=N;O=D", "#top", "http://elsewhere/x.py", "keep/")
        self.assertEqual(parse_listing(html), ["keep/"])


class TreeCrawlerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = FileSystemCacheStore(root_dir=self._tmp.name, namespace=LISTING_NAMESPACE)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_expands_only_ancestors_of_target_depth_first(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        nodes = await crawler.crawl(BASE_URL, "a/b/file.py")

        self.assertEqual(
            nodes,
            [
                TreeNode("a/", D, 1, True),
                TreeNode("a/b/", D, 2, True),
                TreeNode("a/b/file.py", F, 3, False),
                TreeNode("a/b/other.py", F, 3, False),
                TreeNode("a/c/", D, 2, False),
                TreeNode("README", F, 1, False),
            ],
        )
        self.assertEqual(fetcher.calls, [BASE_URL, BASE_URL + "a/", BASE_URL + "a/b/"])

    async def test_root_listing_does_not_expand_anything(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        nodes = await crawler.crawl(BASE_URL, "")

        self.assertEqual(nodes, [TreeNode("a/", D, 1, False), TreeNode("README", F, 1, False)])
        self.assertEqual(fetcher.calls, [BASE_URL])

    async def test_failed_subdirectory_keeps_siblings(self) -> None:
        pages = _repository_pages()
        del pages[BASE_URL + "a/b/"]
        crawler = TreeCrawler(fetcher=FakeFetcher(pages), store=self.store)

        nodes = await crawler.crawl(BASE_URL, "a/b/")

        self.assertEqual(
            [n.relative_path for n in nodes],
            ["a/", "a/b/", "a/c/", "README"],
        )

    async def test_failed_root_yields_empty_tree(self) -> None:
        crawler = TreeCrawler(fetcher=FakeFetcher({}), store=self.store)
        self.assertEqual(await crawler.crawl(BASE_URL, "a/"), [])

    async def test_depth_cap_stops_self_referencing_listing(self) -> None:
        fetcher = FakeFetcher({}, default=listing("x/"))
        crawler = TreeCrawler(fetcher=fetcher, store=self.store, max_depth=2)

        nodes = await crawler.crawl(BASE_URL, "x/x/x/x/x/")

        self.assertEqual(nodes, [TreeNode("x/", D, 1, True), TreeNode("x/x/", D, 2, False)])
        self.assertEqual(len(fetcher.calls), 2)


class TreeCrawlerCacheTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = FileSystemCacheStore(root_dir=self._tmp.name, namespace=LISTING_NAMESPACE)
        self.repo = RepositorySpec(base_url=BASE_URL, refresh_seconds=600, title="Repo")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _age_entry(self, path: str, seconds: int) -> None:
        cache_file: Path = self.store.path_for(listing_cache_key(BASE_URL, path))
        old = time.time() - seconds
        os.utime(cache_file, (old, old))

    async def test_second_load_is_served_from_cache(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        first = await crawler.load(self.repo, "a/")
        calls_after_first = len(fetcher.calls)
        second = await crawler.load(self.repo, "a/")

        self.assertEqual(first, second)
        self.assertEqual(len(fetcher.calls), calls_after_first)

    async def test_cache_hit_does_not_rewrite_entry(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        await crawler.load(self.repo, "")
        self._age_entry("", 100)
        cache_file = self.store.path_for(listing_cache_key(BASE_URL, ""))
        aged_mtime = cache_file.stat().st_mtime
        await crawler.load(self.repo, "")

        self.assertEqual(cache_file.stat().st_mtime, aged_mtime)
        self.assertEqual(fetcher.calls, [BASE_URL])

    async def test_paths_are_cached_separately(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        await crawler.load(self.repo, "")
        nodes = await crawler.load(self.repo, "a/")

        self.assertTrue(nodes[0].expanded)

    async def test_purge_refetches(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        await crawler.load(self.repo, "")
        await crawler.load(self.repo, "", force_purge=True)

        self.assertEqual(fetcher.calls, [BASE_URL, BASE_URL])

    async def test_stale_entry_is_refreshed(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        await crawler.load(self.repo, "")
        self._age_entry("", 601)
        fetcher.pages[BASE_URL] = listing("new.py")
        nodes = await crawler.load(self.repo, "")

        self.assertEqual(nodes, [TreeNode("new.py", F, 1, False)])

    async def test_failed_refresh_keeps_stale_listing(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        original = await crawler.load(self.repo, "")
        self._age_entry("", 601)
        del fetcher.pages[BASE_URL]
        nodes = await crawler.load(self.repo, "")

        self.assertEqual(nodes, original)
        entry = self.store.get(listing_cache_key(BASE_URL, ""))
        assert entry is not None
        self.assertIn(b"README", entry.payload)

    async def test_partial_tree_is_returned_but_not_cached(self) -> None:
        pages = _repository_pages()
        del pages[BASE_URL + "a/b/"]
        fetcher = FakeFetcher(pages)
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)

        nodes = await crawler.load(self.repo, "a/b/")

        self.assertEqual(len(nodes), 4)
        self.assertIsNone(self.store.get(listing_cache_key(BASE_URL, "a/b/")))

    async def test_corrupt_payload_is_treated_as_miss(self) -> None:
        fetcher = FakeFetcher(_repository_pages())
        crawler = TreeCrawler(fetcher=fetcher, store=self.store)
        self.store.put(listing_cache_key(BASE_URL, ""), b"<ul>pre-rendered html</ul>")

        with self.assertLogs("repo_mirror.mirror.cache_io", level="WARNING") as logs:
            nodes = await crawler.load(self.repo, "")

        self.assertEqual([n.relative_path for n in nodes], ["a/", "README"])
        self.assertEqual(fetcher.calls, [BASE_URL])
        self.assertEqual([r.levelname for r in logs.records], ["WARNING"])
        self.assertIsNone(logs.records[0].exc_info)


if __name__ == "__main__":
    unittest.main()
