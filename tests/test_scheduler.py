"""Tests for wikimirror.scheduler module."""

from __future__ import annotations

import pytest

from wikimirror.document import LinkReference
from wikimirror.processor import PageProcessor
from wikimirror.scheduler import CrawlReport, CrawlScheduler, CrawlState


def _scheduler(config, fetcher, sink, convert):
    return CrawlScheduler(PageProcessor(fetcher, config, convert=convert), sink, config)


def _fetched_paths(fetcher):
    return [url.replace("https://example.org/", "") for url in fetcher.calls]


class TestCrawlReport:
    def test_defaults(self):
        report = CrawlReport()
        assert report.written == []
        assert report.failures == []
        assert report.stats == {}
        assert report.ok is True

    def test_to_dict(self):
        report = CrawlReport(written=["a"], state=CrawlState.DONE)
        assert report.to_dict()["state"] == "done"
        assert report.to_dict()["written"] == ["a"]


class TestCrawl:
    @pytest.mark.asyncio
    async def test_mutual_links_terminate_after_two_pages(
        self, config, fetcher_factory, sink_factory, convert
    ):
        config.entry_points = ["index.php/a.html", "index.php/b.html"]
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "To [B](https://example.org/index.php/b.html)",
                "index.php/b.html": "Back to [A](https://example.org/index.php/a.html)",
            }
        )
        sink = sink_factory()

        report = await _scheduler(config, fetcher, sink, convert).run()

        assert len(fetcher.calls) == 2
        assert "[B](ex-b)" in sink.documents["ex-a"]
        assert "[A](ex-a)" in sink.documents["ex-b"]
        assert "https://" not in sink.documents["ex-a"].split("---", 2)[2]
        assert "https://" not in sink.documents["ex-b"].split("---", 2)[2]
        assert report.state is CrawlState.DONE
        assert report.stats["processed_pages"] == 2
        assert report.stats["skipped_duplicates"] == 2
        assert report.ok

    @pytest.mark.asyncio
    async def test_breadth_first_order_and_single_fetch(
        self, config, fetcher_factory, sink_factory, convert
    ):
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "[B](index.php/b.html) [C](index.php/c.html)",
                "index.php/b.html": "[D](index.php/d.html) [C](index.php/c.html) [A](index.php/a.html)",
                "index.php/c.html": "[B](index.php/b.html) [Shop](https://other.net/x.html)",
                "index.php/d.html": "leaf",
            }
        )
        sink = sink_factory()

        report = await _scheduler(config, fetcher, sink, convert).run()

        assert _fetched_paths(fetcher) == [
            "index.php/a.html",
            "index.php/b.html",
            "index.php/c.html",
            "index.php/d.html",
        ]
        assert report.written == ["ex-a", "index", "ex-b", "ex-c", "ex-d"]

    @pytest.mark.asyncio
    async def test_spellings_of_same_page_fetched_once(
        self, config, fetcher_factory, sink_factory, convert
    ):
        fetcher = fetcher_factory(
            {
                "index.php/a.html": (
                    "[1](https://example.org/index.php/s%C3%A4bel.html) "
                    "[2](//example.org/index.php/säbel.html#kampf) "
                    "[3](/index.php/säbel.html) "
                    "[4](http://EXAMPLE.org/index.php/s%C3%A4bel.html)"
                ),
                "index.php/säbel.html": "Klinge",
            }
        )
        sink = sink_factory()

        await _scheduler(config, fetcher, sink, convert).run()

        assert len(fetcher.calls) == 2
        assert sink.documents["ex-a"].count("(ex-säbel)") == 4

    @pytest.mark.asyncio
    async def test_manifest_written_after_seeding_before_draining(
        self, config, fetcher_factory, sink_factory, convert
    ):
        config.entry_points = ["index.php/a.html", "index.php/b.html"]
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "[C](index.php/c.html)",
                "index.php/b.html": "text",
                "index.php/c.html": "text",
            },
            titles={"index.php/a.html": "Alpha", "index.php/b.html": "Beta"},
        )
        sink = sink_factory()
        scheduler = _scheduler(config, fetcher, sink, convert)

        await scheduler.run()

        assert sink.order == ["ex-a", "ex-b", "index", "ex-c"]
        index = sink.documents["index"]
        assert "- [Alpha](ex-a)\n- [Beta](ex-b)" in index
        assert [entry.id for entry in scheduler.manifest] == ["ex-a", "ex-b"]
        assert "entry_point: true" in sink.documents["ex-a"]
        assert "entry_point: false" in sink.documents["ex-c"]

    @pytest.mark.asyncio
    async def test_rediscovered_entry_point_not_reprocessed(
        self, config, fetcher_factory, sink_factory, convert
    ):
        config.entry_points = ["index.php/a.html", "index.php/b.html"]
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "[B](https://example.org/index.php/b.html)",
                "index.php/b.html": "[C](index.php/c.html)",
                "index.php/c.html": "[A](index.php/a.html) [B](index.php/b.html)",
            }
        )
        await _scheduler(config, fetcher, sink_factory(), convert).run()
        assert sorted(_fetched_paths(fetcher)) == [
            "index.php/a.html",
            "index.php/b.html",
            "index.php/c.html",
        ]

    @pytest.mark.asyncio
    async def test_fetch_failure_skipped_and_reported(
        self, config, fetcher_factory, sink_factory, convert
    ):
        config.entry_points = ["index.php/a.html", "index.php/gone.html"]
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "[Missing](index.php/missing.html) [B](index.php/b.html)",
                "index.php/b.html": "[Missing](index.php/missing.html)",
            }
        )
        sink = sink_factory()
        scheduler = _scheduler(config, fetcher, sink, convert)

        report = await scheduler.run()

        assert "ex-b" in sink.documents
        assert [entry.id for entry in scheduler.manifest] == ["ex-a"]
        assert [(f["stage"], f["url"]) for f in report.failures] == [
            ("fetch", "https://example.org/index.php/gone.html"),
            ("fetch", "https://example.org/index.php/missing.html"),
        ]
        assert report.failures[0]["error"] == "HTTP 404"
        assert _fetched_paths(fetcher).count("index.php/missing.html") == 1
        assert not report.ok

    @pytest.mark.asyncio
    async def test_write_failure_does_not_stop_crawl(
        self, config, fetcher_factory, sink_factory, convert
    ):
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "[B](index.php/b.html) [C](index.php/c.html)",
                "index.php/b.html": "text",
                "index.php/c.html": "text",
            }
        )
        sink = sink_factory(failing=["ex-b"])

        report = await _scheduler(config, fetcher, sink, convert).run()

        assert "ex-c" in sink.documents
        assert report.failures == [
            {
                "url": "https://example.org/index.php/b.html",
                "error": "disk full while writing ex-b",
                "stage": "write",
            }
        ]
        assert "ex-b" not in report.written

    @pytest.mark.asyncio
    async def test_conversion_failure_does_not_stop_crawl(
        self, config, fetcher_factory, sink_factory
    ):
        def choking_convert(raw_html, base_url=""):
            if raw_html == "broken":
                raise ValueError("converter choked")
            return raw_html

        config.entry_points = ["index.php/a.html", "index.php/b.html"]
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "broken",
                "index.php/b.html": "[C](index.php/c.html)",
                "index.php/c.html": "text",
            }
        )
        sink = sink_factory()
        scheduler = _scheduler(config, fetcher, sink, choking_convert)

        report = await scheduler.run()

        assert report.state is CrawlState.DONE
        assert report.written == ["ex-b", "index", "ex-c"]
        assert [entry.id for entry in scheduler.manifest] == ["ex-b"]
        assert report.failures == [
            {
                "url": "https://example.org/index.php/a.html",
                "error": "converter choked",
                "stage": "process",
            }
        ]

    @pytest.mark.asyncio
    async def test_relative_and_absolute_hrefs_share_one_key(
        self, config, fetcher_factory, sink_factory
    ):
        config.entry_points = ["index.php/magie.html"]
        fetcher = fetcher_factory(
            {
                "index.php/magie.html": (
                    '<p><a href="index.php/zauber.html">Zauber</a> '
                    '<a href="https://example.org/index.php/zauber.html">Nochmal</a></p>'
                ),
                "index.php/zauber.html": '<p><a href="index.php/magie.html">Magie</a></p>',
            }
        )
        sink = sink_factory()
        scheduler = CrawlScheduler(PageProcessor(fetcher, config), sink, config)

        report = await scheduler.run()

        assert _fetched_paths(fetcher) == ["index.php/magie.html", "index.php/zauber.html"]
        assert scheduler.visited == {"index.php/magie.html", "index.php/zauber.html"}
        assert report.ok
        assert "[Magie](ex-magie)" in sink.documents["ex-zauber"]

    @pytest.mark.asyncio
    async def test_id_collision_not_overwritten(
        self, config, fetcher_factory, sink_factory, convert
    ):
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "[X](index.php/x/foo.html) [Y](index.php/y/foo.html)",
                "index.php/x/foo.html": "first",
                "index.php/y/foo.html": "second",
            }
        )
        sink = sink_factory()

        report = await _scheduler(config, fetcher, sink, convert).run()

        assert sink.documents["ex-foo"].endswith("first\n")
        assert report.failures[0]["stage"] == "collision"
        assert report.failures[0]["url"] == "https://example.org/index.php/y/foo.html"

    @pytest.mark.asyncio
    async def test_max_pages(self, config, fetcher_factory, sink_factory, convert):
        config.max_pages = 2
        fetcher = fetcher_factory(
            {
                "index.php/a.html": "[B](index.php/b.html) [C](index.php/c.html)",
                "index.php/b.html": "text",
                "index.php/c.html": "text",
            }
        )
        report = await _scheduler(config, fetcher, sink_factory(), convert).run()
        assert len(fetcher.calls) == 2
        assert report.stats["processed_pages"] == 2
        assert report.state is CrawlState.DONE


class TestFrontierAndVisited:
    def _link(self, target):
        return LinkReference(display_text="x", raw_target=target, normalized_target=target)

    def test_external_and_anchor_links_not_enqueued(
        self, config, fetcher_factory, sink_factory, convert
    ):
        scheduler = _scheduler(config, fetcher_factory({}), sink_factory(), convert)
        scheduler.enqueue(
            [
                self._link("https://other.net/a.html"),
                self._link("#top"),
                self._link("files/karte.pdf"),
                self._link("index.php/b.html"),
            ]
        )
        assert [link.raw_target for link in scheduler.frontier] == ["index.php/b.html"]

    @pytest.mark.asyncio
    async def test_preseeded_visited_target_skipped(
        self, config, fetcher_factory, sink_factory, convert
    ):
        fetcher = fetcher_factory(
            {"index.php/a.html": "[B](index.php/b.html)", "index.php/b.html": "text"}
        )
        scheduler = _scheduler(config, fetcher, sink_factory(), convert)
        scheduler.visited.add("index.php/b.html")

        report = await scheduler.run()

        assert _fetched_paths(fetcher) == ["index.php/a.html"]
        assert report.stats["skipped_duplicates"] == 1

    @pytest.mark.asyncio
    async def test_visited_only_grows(self, config, fetcher_factory, sink_factory, convert):
        fetcher = fetcher_factory(
            {"index.php/a.html": "[B](index.php/b.html)", "index.php/b.html": "[A](index.php/a.html)"}
        )
        scheduler = _scheduler(config, fetcher, sink_factory(), convert)
        await scheduler.run()
        assert scheduler.visited == {"index.php/a.html", "index.php/b.html"}
        assert not scheduler.frontier

    @pytest.mark.asyncio
    async def test_duplicate_entry_point_ignored(
        self, config, fetcher_factory, sink_factory, convert
    ):
        config.entry_points = ["index.php/a.html", "/index.php/a.html"]
        fetcher = fetcher_factory({"index.php/a.html": "text"})
        scheduler = _scheduler(config, fetcher, sink_factory(), convert)
        await scheduler.run()
        assert len(fetcher.calls) == 1
        assert len(scheduler.manifest) == 1
