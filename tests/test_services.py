"""Tests for services."""
import asyncio
import json
import pytest
from pathlib import Path
import tempfile
import shutil
from unittest.mock import Mock, patch

import httpx

from pulse_fetch.config import Settings
from pulse_fetch.models import (
    FailureReason,
    FetchOptions,
    RawPayload,
    StrategyIdentifier,
    StrategyMemoryEntry,
)
from pulse_fetch.services import build_scraping_clients
from pulse_fetch.services.brightdata_client import BrightDataClient
from pulse_fetch.services.content_normalizer import (
    TRUNCATION_MARKER,
    ContentKind,
    ContentNormalizer,
    bound_text,
    classify_content,
)
from pulse_fetch.services.firecrawl_client import FirecrawlClient
from pulse_fetch.services.html_cleaner import HTMLCleaner
from pulse_fetch.services.http_client import NativeFetcher
from pulse_fetch.services.scraping_backend import classify_error_message
from pulse_fetch.services.storage_service import ResourceStorage
from pulse_fetch.services.strategy_store import (
    FilesystemStrategyStore,
    MemoryStrategyStore,
    extract_url_pattern,
    parse_strategy_table,
    prefix_matches,
    select_entry,
)


@pytest.fixture
def temp_storage_dir():
    """Create a temporary storage directory for testing."""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    # Cleanup after test
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def resource_storage(temp_storage_dir):
    """Create a resource storage instance with temp directory."""
    return ResourceStorage(base_path=temp_storage_dir / "resources")


@pytest.fixture
def cleaner():
    return HTMLCleaner()


@pytest.fixture
def normalizer():
    return ContentNormalizer()


def options(timeout=5.0, main_content_only=False):
    return FetchOptions(timeout=timeout, main_content_only=main_content_only)


class TestHTMLCleaner:
    """Tests for HTML to markdown conversion."""

    def test_headings_and_emphasis(self, cleaner):
        html = "<h1>Hello World</h1><p>Some <strong>bold</strong> and <em>italic</em> text.</p>"
        markdown = cleaner.to_markdown(html)
        assert "# Hello World" in markdown
        assert "**bold**" in markdown
        assert "*italic*" in markdown

    def test_lists(self, cleaner):
        html = "<ul><li>Item 1</li><li>Item 2</li></ul><ol><li>First</li><li>Second</li></ol>"
        markdown = cleaner.to_markdown(html)
        assert "- Item 1" in markdown
        assert "- Item 2" in markdown
        assert "1. First" in markdown
        assert "2. Second" in markdown

    def test_links_resolved_against_page(self, cleaner):
        html = '<p>Read the <a href="/docs/start">docs</a> or <a href="#top">jump</a>.</p>'
        markdown = cleaner.to_markdown(html, base_url="https://example.com/page")
        assert "[docs](https://example.com/docs/start)" in markdown
        assert "#top" not in markdown
        assert "jump" in markdown

    def test_blockquote_and_code(self, cleaner):
        html = (
            "<blockquote><p>This is a quote.</p></blockquote>"
            "<pre><code>print('hi')</code></pre>"
            "<p>Use <code>pip</code> here</p>"
        )
        markdown = cleaner.to_markdown(html)
        assert "> This is a quote." in markdown
        assert "```\nprint('hi')\n```" in markdown
        assert "`pip`" in markdown

    def test_emphasis_keeps_word_spacing(self, cleaner):
        markdown = cleaner.to_markdown("<p>x<b> bold </b>y</p>")
        assert "**bold**" in markdown
        assert "x**bold**y" not in markdown
        assert "x **bold** y" in markdown

    def test_code_in_list_keeps_indentation(self, cleaner):
        markdown = cleaner.to_markdown("<ol><li><pre>line1\n  line2</pre></li></ol>")
        lines = markdown.split("\n")
        first = next(line for line in lines if "line1" in line)
        second = next(line for line in lines if "line2" in line)
        assert "1. ```" in markdown
        indent = len(first) - len(first.lstrip())
        assert indent > 0
        assert len(second) - len(second.lstrip()) == indent + 2

    def test_inline_code_with_backtick(self, cleaner):
        markdown = cleaner.to_markdown("<p>Use <code>a`b</code> now</p>")
        assert "`` a`b ``" in markdown
        assert "`a`b`" not in markdown

    def test_scripts_and_styles_removed(self, cleaner):
        html = "<style>p{color:red}</style><p>Visible</p><script>alert('x')</script>"
        markdown = cleaner.to_markdown(html)
        assert "Visible" in markdown
        assert "alert" not in markdown
        assert "color" not in markdown

    def test_data_uri_images_skipped(self, cleaner):
        html = '<img src="data:image/png;base64,AAAA" alt="inline"><img src="/logo.png" alt="Logo">'
        markdown = cleaner.to_markdown(html, base_url="https://example.com/")
        assert "base64" not in markdown
        assert "![Logo](https://example.com/logo.png)" in markdown

    def test_table_rows(self, cleaner):
        html = "<table><tr><th>Name</th><th>Price</th></tr><tr><td>Basic</td><td>$5</td></tr></table>"
        markdown = cleaner.to_markdown(html)
        assert "Name | Price" in markdown
        assert "---|---" in markdown
        assert "Basic | $5" in markdown

    def test_main_content_only_drops_navigation(self, cleaner):
        html = """
        <html><body>
            <nav><a href="/">Home</a><a href="/about">About us</a></nav>
            <div class="cookie-banner">We use cookies</div>
            <main><h1>Article</h1><p>The real content.</p></main>
            <footer>Copyright 2024</footer>
        </body></html>
        """
        markdown = cleaner.to_markdown(html, main_content_only=True)
        assert "# Article" in markdown
        assert "The real content." in markdown
        assert "About us" not in markdown
        assert "cookies" not in markdown
        assert "Copyright" not in markdown

    def test_full_page_keeps_navigation(self, cleaner):
        html = "<nav><p>Menu entry</p></nav><main><p>Body</p></main>"
        markdown = cleaner.to_markdown(html, main_content_only=False)
        assert "Menu entry" in markdown
        assert "Body" in markdown

    def test_malformed_html_returns_content(self, cleaner):
        markdown = cleaner.to_markdown("<div><p>Unclosed paragraph <b>bold")
        assert "Unclosed paragraph" in markdown

    def test_conversion_error_returns_raw_html(self, cleaner):
        html = "<p>Raw <b>body</b></p>"
        with patch("pulse_fetch.services.html_cleaner.html2text.HTML2Text.handle", side_effect=RuntimeError("boom")):
            assert cleaner.to_markdown(html) == html

    def test_empty_input(self, cleaner):
        assert cleaner.to_markdown("") == ""
        assert cleaner.to_markdown(None) == ""


class TestContentNormalizer:
    """Tests for payload classification, conversion and bounding."""

    def test_classify_declared_types(self):
        assert classify_content("text/html; charset=utf-8", "")[0] == ContentKind.MARKUP
        assert classify_content("application/json", "{}")[0] == ContentKind.STRUCTURED
        assert classify_content("text/plain", "hi")[0] == ContentKind.STRUCTURED
        assert classify_content("application/pdf", "")[0] == ContentKind.BINARY
        assert classify_content("image/png", "")[0] == ContentKind.BINARY

    def test_classify_sniffs_missing_type(self):
        assert classify_content("", "<!DOCTYPE html><html><body>x</body></html>") == (
            ContentKind.MARKUP, "text/html"
        )
        assert classify_content("", '{"a": 1}') == (ContentKind.STRUCTURED, "application/json")
        assert classify_content("application/octet-stream", "", b"%PDF-1.7 ...") == (
            ContentKind.BINARY, "application/pdf"
        )

    def test_markup_converted_to_markdown(self, normalizer):
        payload = RawPayload(body="<h1>Title</h1><p>Body text</p>", declared_content_type="text/html")
        result = normalizer.normalize(payload, strategy=StrategyIdentifier.DIRECT)
        assert "# Title" in result.text
        assert "<h1>" not in result.text
        assert result.strategy_used == StrategyIdentifier.DIRECT
        assert result.truncated is False

    def test_structured_passes_through(self, normalizer):
        body = json.dumps({"name": "widget", "tags": ["<b>not html</b>"]})
        payload = RawPayload(body=body, declared_content_type="application/json")
        result = normalizer.normalize(payload)
        assert result.text == body

    def test_unreadable_pdf_falls_back_to_body(self, normalizer):
        payload = RawPayload(
            body="%PDF-1.4 not really a pdf",
            declared_content_type="application/pdf",
            content=b"%PDF-1.4 not really a pdf",
        )
        result = normalizer.normalize(payload)
        assert result.text == "%PDF-1.4 not really a pdf"

    def test_empty_payload(self, normalizer):
        result = normalizer.normalize(RawPayload(body="", declared_content_type="text/html"))
        assert result.text == ""
        assert result.truncated is False

    def test_bounded_output(self, normalizer):
        payload = RawPayload(body="x" * 500, declared_content_type="text/plain")
        result = normalizer.normalize(payload, max_output_chars=100)
        assert result.truncated is True
        assert result.text == "x" * 100 + TRUNCATION_MARKER

    def test_text_within_bound_is_untouched(self, normalizer):
        payload = RawPayload(body="short", declared_content_type="text/plain")
        result = normalizer.normalize(payload, max_output_chars=100)
        assert result.text == "short"
        assert result.truncated is False

    def test_bounding_is_idempotent(self):
        once, truncated = bound_text("a" * 50, 10)
        twice, still_truncated = bound_text(once, 10)
        assert truncated and still_truncated
        assert once == twice

    def test_unbounded(self):
        assert bound_text("abc", None) == ("abc", False)

    def test_marker_within_bound_is_not_truncated(self):
        text = "notes" + TRUNCATION_MARKER
        assert bound_text(text, 100) == (text, False)

    def test_conversion_error_passes_raw_body_through(self):
        cleaner = Mock()
        cleaner.to_markdown.side_effect = RuntimeError("converter crashed")
        normalizer = ContentNormalizer(cleaner=cleaner)
        body = "<h1>Title</h1><p>Body</p>"

        result = normalizer.normalize(RawPayload(body=body, declared_content_type="text/html"))

        assert result.text == body
        assert result.truncated is False
        cleaner.to_markdown.assert_called_once()

    def test_unknown_content_type_passes_through(self, normalizer):
        body = "<h1>not converted</h1> **raw**"
        result = normalizer.normalize(RawPayload(body=body, declared_content_type="application/x-unknown"))
        assert result.text == body


class TestStrategyMatching:
    """Tests for URL patterns and prefix matching."""

    def test_extract_url_pattern(self):
        assert extract_url_pattern("https://yelp.com/biz/dolly-san-francisco") == "yelp.com/biz/"
        assert extract_url_pattern("https://example.com/blog/2024/article") == "example.com/blog/2024/"
        assert extract_url_pattern("https://example.com/about") == "example.com"
        assert extract_url_pattern("https://example.com/") == "example.com"
        assert extract_url_pattern("http://localhost:8080/a/b") == "localhost:8080/a/"

    def test_host_prefix_respects_boundaries(self):
        assert prefix_matches("example.com", "https://example.com/page")
        assert prefix_matches("example.com", "https://www.example.com/page")
        assert prefix_matches("example.com", "https://api.example.com/v1")
        assert not prefix_matches("example.com", "https://example.community/page")
        assert not prefix_matches("example.com", "https://notexample.com/")

    def test_path_prefix(self):
        assert prefix_matches("example.com/blog/", "https://example.com/blog/post")
        assert prefix_matches("example.com/blog/", "https://www.example.com/blog/post")
        assert not prefix_matches("example.com/blog/", "https://example.com/shop/item")

    def test_full_url_prefix(self):
        assert prefix_matches("https://example.com/docs", "https://example.com/docs/intro")

    def test_longest_prefix_wins(self):
        entries = [
            StrategyMemoryEntry(prefix="example.com/blog/", default_strategy=StrategyIdentifier.MANAGED_API),
            StrategyMemoryEntry(prefix="example.com", default_strategy=StrategyIdentifier.DIRECT),
        ]
        entry = select_entry(entries, "https://example.com/blog/post")
        assert entry.default_strategy == StrategyIdentifier.MANAGED_API

        entry = select_entry(entries, "https://example.com/about")
        assert entry.default_strategy == StrategyIdentifier.DIRECT

    def test_equal_length_tie_goes_to_most_recent(self):
        entries = [
            StrategyMemoryEntry(prefix="https://a.com", default_strategy=StrategyIdentifier.DIRECT),
            StrategyMemoryEntry(prefix="a.com/xyzwv/q", default_strategy=StrategyIdentifier.PROXY_API),
        ]
        assert len(entries[0].prefix) == len(entries[1].prefix)
        entry = select_entry(entries, "https://a.com/xyzwv/q")
        assert entry.default_strategy == StrategyIdentifier.PROXY_API

    def test_no_match(self):
        entries = [StrategyMemoryEntry(prefix="other.org", default_strategy=StrategyIdentifier.DIRECT)]
        assert select_entry(entries, "https://example.com/") is None


class TestMemoryStrategyStore:
    """Tests for the in-memory strategy store."""

    @pytest.mark.asyncio
    async def test_upsert_and_lookup(self):
        store = MemoryStrategyStore()
        assert await store.lookup("https://example.com/page") is None

        await store.upsert("example.com", StrategyIdentifier.MANAGED_API, "learned")
        assert await store.lookup("https://example.com/page") == StrategyIdentifier.MANAGED_API

    @pytest.mark.asyncio
    async def test_upsert_replaces_and_moves_to_end(self):
        store = MemoryStrategyStore()
        await store.upsert("a.com", StrategyIdentifier.DIRECT)
        await store.upsert("b.com", StrategyIdentifier.DIRECT)
        await store.upsert("a.com", StrategyIdentifier.PROXY_API)

        entries = await store.load_all()
        assert [e.prefix for e in entries] == ["b.com", "a.com"]
        assert entries[-1].default_strategy == StrategyIdentifier.PROXY_API

    @pytest.mark.asyncio
    async def test_delete(self):
        store = MemoryStrategyStore()
        await store.upsert("a.com", StrategyIdentifier.DIRECT)
        assert await store.delete("a.com") is True
        assert await store.delete("a.com") is False
        assert await store.load_all() == []


class TestFilesystemStrategyStore:
    """Tests for the markdown-table strategy store."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, temp_storage_dir):
        store = FilesystemStrategyStore(config_path=temp_storage_dir / "strategies.md")
        assert await store.load_all() == []
        assert await store.lookup("https://example.com") is None

    @pytest.mark.asyncio
    async def test_upsert_persists_table(self, temp_storage_dir):
        path = temp_storage_dir / "nested" / "strategies.md"
        store = FilesystemStrategyStore(config_path=path)
        await store.upsert("yelp.com/biz/", StrategyIdentifier.PROXY_API, "Auto-discovered via universal fallback")

        content = path.read_text(encoding="utf-8")
        assert "| prefix | default_strategy | notes |" in content
        assert "| yelp.com/biz/ | proxy-api | Auto-discovered via universal fallback |" in content

        reloaded = FilesystemStrategyStore(config_path=path)
        assert await reloaded.lookup("https://www.yelp.com/biz/some-place") == StrategyIdentifier.PROXY_API

    @pytest.mark.asyncio
    async def test_identical_upsert_does_not_write(self, temp_storage_dir):
        store = FilesystemStrategyStore(config_path=temp_storage_dir / "strategies.md")
        await store.upsert("example.com", StrategyIdentifier.DIRECT, "note")

        with patch.object(store, "_write_table") as mock_write:
            await store.upsert("example.com", StrategyIdentifier.DIRECT, "note")
            mock_write.assert_not_called()

            await store.upsert("example.com", StrategyIdentifier.MANAGED_API, "note")
            mock_write.assert_called_once()

    @pytest.mark.asyncio
    async def test_reads_hand_edited_file(self, temp_storage_dir):
        path = temp_storage_dir / "strategies.md"
        path.write_text(
            "# My strategies\n\n"
            "| prefix | default_strategy | notes |\n"
            "|---|---|---|\n"
            "| example.com | native | legacy name |\n"
            "| shop.example.org/ | firecrawl | |\n"
            "| broken.com | teleport | unknown strategy |\n"
            "| protected.net | brightdata | |\n",
            encoding="utf-8",
        )
        store = FilesystemStrategyStore(config_path=path)
        entries = await store.load_all()

        assert [e.prefix for e in entries] == ["example.com", "shop.example.org/", "protected.net"]
        assert [e.default_strategy for e in entries] == [
            StrategyIdentifier.DIRECT,
            StrategyIdentifier.MANAGED_API,
            StrategyIdentifier.PROXY_API,
        ]

    @pytest.mark.asyncio
    async def test_delete_rewrites_table(self, temp_storage_dir):
        path = temp_storage_dir / "strategies.md"
        store = FilesystemStrategyStore(config_path=path)
        await store.upsert("a.com", StrategyIdentifier.DIRECT)
        await store.upsert("b.com", StrategyIdentifier.PROXY_API)

        assert await store.delete("a.com") is True
        assert await store.delete("missing.com") is False
        assert "a.com" not in path.read_text(encoding="utf-8")
        assert [e.prefix for e in parse_strategy_table(path.read_text(encoding="utf-8"))] == ["b.com"]

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, temp_storage_dir):
        store = FilesystemStrategyStore(config_path=temp_storage_dir / "strategies.md")
        await store.upsert("a.com", StrategyIdentifier.DIRECT)
        await store.upsert("b.com", StrategyIdentifier.DIRECT)
        assert [p.name for p in temp_storage_dir.iterdir()] == ["strategies.md"]

    @pytest.mark.asyncio
    async def test_concurrent_upserts_keep_every_row(self, temp_storage_dir):
        path = temp_storage_dir / "strategies.md"
        store = FilesystemStrategyStore(config_path=path)
        prefixes = [f"site{i}.com" for i in range(50)]

        await asyncio.gather(*(store.upsert(prefix, StrategyIdentifier.MANAGED_API) for prefix in prefixes))

        reloaded = parse_strategy_table(path.read_text(encoding="utf-8"))
        assert sorted(e.prefix for e in reloaded) == sorted(prefixes)
        assert all(e.default_strategy == StrategyIdentifier.MANAGED_API for e in reloaded)
        assert [p.name for p in temp_storage_dir.iterdir()] == ["strategies.md"]


class TestResourceStorage:
    """Tests for saved scrape results."""

    def test_generate_resource_id(self, resource_storage):
        resource_id = resource_storage.generate_resource_id()
        assert isinstance(resource_id, str)
        # Should have timestamp format
        assert resource_id.count("_") == 2

    def test_write_and_read(self, resource_storage):
        saved = resource_storage.write(
            "https://example.com/docs/page",
            "# Page\n\nFull text",
            strategy=StrategyIdentifier.DIRECT,
        )
        assert saved.uri.startswith("scraped://example.com/docs/page_")
        assert saved.uri.endswith(saved.resource_id)

        loaded = resource_storage.read(saved.uri)
        assert loaded is not None
        assert loaded.text == "# Page\n\nFull text"
        assert loaded.strategy == StrategyIdentifier.DIRECT
        assert resource_storage.get(saved.resource_id).url == "https://example.com/docs/page"

    def test_read_rejects_other_schemes(self, resource_storage):
        with pytest.raises(ValueError):
            resource_storage.read("file:///etc/passwd")

    def test_get_rejects_path_traversal(self, resource_storage):
        with pytest.raises(ValueError):
            resource_storage.get("../secrets")

    def test_get_missing(self, resource_storage):
        assert resource_storage.get("20240101_000000_deadbeef") is None

    def test_list_newest_first_without_text(self, resource_storage):
        first = resource_storage.write("https://a.com/", "first")
        second = resource_storage.write("https://b.com/", "second")

        resources = resource_storage.list()
        assert [r.resource_id for r in resources] == [second.resource_id, first.resource_id]
        assert all(r.text is None for r in resources)

    def test_find_by_url_and_extract(self, resource_storage):
        resource_storage.write("https://a.com/", "page")
        answer = resource_storage.write("https://a.com/", "answer", extract="What is it?")
        resource_storage.write("https://b.com/", "other")

        found = resource_storage.find_by_url_and_extract("https://a.com/", "What is it?")
        assert [r.resource_id for r in found] == [answer.resource_id]
        assert found[0].text == "answer"

        plain = resource_storage.find_by_url_and_extract("https://a.com/")
        assert [r.text for r in plain] == ["page"]

    def test_delete(self, resource_storage):
        saved = resource_storage.write("https://a.com/", "page")
        assert resource_storage.delete(saved.resource_id) is True
        assert resource_storage.delete(saved.resource_id) is False
        assert resource_storage.get(saved.resource_id) is None

    def test_write_leaves_no_temp_files(self, resource_storage):
        saved = resource_storage.write("https://a.com/", "page")
        assert [p.name for p in resource_storage.base_path.iterdir()] == [f"{saved.resource_id}.json"]

    def test_failed_write_leaves_nothing_behind(self, resource_storage):
        with patch("pulse_fetch.services.storage_service.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                resource_storage.write("https://a.com/", "page")
        assert list(resource_storage.base_path.iterdir()) == []

    def test_list_skips_foreign_and_corrupt_files(self, resource_storage):
        saved = resource_storage.write("https://a.com/", "page")
        (resource_storage.base_path / "notes-1.json").write_text("{}", encoding="utf-8")
        (resource_storage.base_path / "20240101_000000_deadbeef.json").write_text('{"resource_id": "2024', encoding="utf-8")
        (resource_storage.base_path / "20240101_000000_cafebabe.json").write_text('{"url": 1}', encoding="utf-8")

        assert [r.resource_id for r in resource_storage.list()] == [saved.resource_id]
        assert [r.resource_id for r in resource_storage.find_by_url_and_extract("https://a.com/")] == [saved.resource_id]


class TestNativeFetcher:
    """Tests for the direct fetcher."""

    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request):
            seen["user_agent"] = request.headers.get("user-agent")
            return httpx.Response(200, text="<h1>Hi</h1>", headers={"content-type": "text/html"})

        fetcher = NativeFetcher(user_agent="TestAgent/1.0", transport=httpx.MockTransport(handler))
        payload, failure = await fetcher.fetch("https://example.com/", options())

        assert failure is None
        assert payload.body == "<h1>Hi</h1>"
        assert payload.declared_content_type == "text/html"
        assert payload.content is None
        assert seen["user_agent"] == "TestAgent/1.0"

    @pytest.mark.asyncio
    async def test_pdf_keeps_bytes(self):
        pdf = b"%PDF-1.4\n%fake"

        def handler(request):
            return httpx.Response(200, content=pdf, headers={"content-type": "application/pdf"})

        fetcher = NativeFetcher(transport=httpx.MockTransport(handler))
        payload, failure = await fetcher.fetch("https://example.com/file.pdf", options())

        assert failure is None
        assert payload.content == pdf

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,reason",
        [
            (404, FailureReason.NON_SUCCESS_STATUS),
            (500, FailureReason.NON_SUCCESS_STATUS),
            (403, FailureReason.NON_SUCCESS_STATUS),
            (429, FailureReason.RATE_LIMITED),
        ],
    )
    async def test_status_mapping(self, status, reason):
        fetcher = NativeFetcher(transport=httpx.MockTransport(lambda request: httpx.Response(status)))
        payload, failure = await fetcher.fetch("https://example.com/", options())

        assert payload is None
        assert failure.strategy == StrategyIdentifier.DIRECT
        assert failure.reason == reason
        assert failure.status_code == status

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = NativeFetcher(transport=httpx.MockTransport(handler))
        payload, failure = await fetcher.fetch("https://example.com/", options())

        assert payload is None
        assert failure.reason == FailureReason.NETWORK

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        fetcher = NativeFetcher(transport=httpx.MockTransport(handler))
        payload, failure = await fetcher.fetch("https://example.com/", options())

        assert payload is None
        assert failure.reason == FailureReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_empty_body(self):
        fetcher = NativeFetcher(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="  ")))
        payload, failure = await fetcher.fetch("https://example.com/", options())

        assert payload is None
        assert failure.reason == FailureReason.PARSE_ERROR


class TestFirecrawlClient:
    """Tests for the managed scraping API client."""

    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "success": True,
                "data": {"html": "<h1>Hi</h1>", "metadata": {"statusCode": 200}},
            })

        client = FirecrawlClient(api_key="fc-key", base_url="https://fc.test", transport=httpx.MockTransport(handler))
        payload, failure = await client.fetch("https://example.com/", options(timeout=10, main_content_only=True))

        assert failure is None
        assert payload.body == "<h1>Hi</h1>"
        assert payload.declared_content_type == "text/html"
        assert seen["url"] == "https://fc.test/v1/scrape"
        assert seen["auth"] == "Bearer fc-key"
        assert seen["body"]["url"] == "https://example.com/"
        assert seen["body"]["onlyMainContent"] is True
        assert seen["body"]["timeout"] == 10000

    @pytest.mark.asyncio
    async def test_unauthorized_status(self):
        client = FirecrawlClient(
            api_key="bad", transport=httpx.MockTransport(lambda request: httpx.Response(401))
        )
        payload, failure = await client.fetch("https://example.com/", options())

        assert payload is None
        assert failure.strategy == StrategyIdentifier.MANAGED_API
        assert failure.reason == FailureReason.AUTHENTICATION

    @pytest.mark.asyncio
    async def test_error_body_classified(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "Unauthorized: Invalid token"})

        client = FirecrawlClient(api_key="k", transport=httpx.MockTransport(handler))
        payload, failure = await client.fetch("https://example.com/", options())

        assert payload is None
        assert failure.reason == FailureReason.AUTHENTICATION

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = FirecrawlClient(
            api_key="k", transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        )
        payload, failure = await client.fetch("https://example.com/", options())

        assert payload is None
        assert failure.reason == FailureReason.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_target_page_status(self):
        def handler(request):
            return httpx.Response(200, json={
                "success": True,
                "data": {"html": "<p>Not found</p>", "metadata": {"statusCode": 404}},
            })

        client = FirecrawlClient(api_key="k", transport=httpx.MockTransport(handler))
        payload, failure = await client.fetch("https://example.com/missing", options())

        assert payload is None
        assert failure.reason == FailureReason.NON_SUCCESS_STATUS
        assert failure.status_code == 404

    def test_requires_key(self):
        with pytest.raises(ValueError):
            FirecrawlClient(api_key="")


class TestBrightDataClient:
    """Tests for the proxy scraping API client."""

    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text="<p>Unlocked</p>", headers={"content-type": "text/html"})

        client = BrightDataClient(
            bearer_token="bd-token", zone="zone1", base_url="https://bd.test",
            transport=httpx.MockTransport(handler),
        )
        payload, failure = await client.fetch("https://example.com/", options())

        assert failure is None
        assert payload.body == "<p>Unlocked</p>"
        assert seen["url"] == "https://bd.test/request"
        assert seen["body"] == {"zone": "zone1", "url": "https://example.com/", "format": "raw"}

    @pytest.mark.asyncio
    async def test_forbidden_is_authentication(self):
        client = BrightDataClient(
            bearer_token="t", transport=httpx.MockTransport(lambda request: httpx.Response(403))
        )
        payload, failure = await client.fetch("https://example.com/", options())

        assert payload is None
        assert failure.strategy == StrategyIdentifier.PROXY_API
        assert failure.reason == FailureReason.AUTHENTICATION


class TestBackendRegistry:
    """Tests for backend configuration."""

    def test_classify_error_message(self):
        assert classify_error_message("Token expired") == FailureReason.AUTHENTICATION
        assert classify_error_message("Rate limit exceeded") == FailureReason.RATE_LIMITED
        assert classify_error_message("socket closed") == FailureReason.NETWORK
        assert classify_error_message(None, FailureReason.PARSE_ERROR) == FailureReason.PARSE_ERROR

    def test_only_configured_backends(self):
        config = Settings(
            native_enabled=True, firecrawl_api_key="fc-key", brightdata_api_key="", _env_file=None
        )
        clients = build_scraping_clients(config)
        assert set(clients) == {StrategyIdentifier.DIRECT, StrategyIdentifier.MANAGED_API}

    def test_nothing_configured(self):
        config = Settings(
            native_enabled=False, firecrawl_api_key="", brightdata_api_key="", _env_file=None
        )
        assert build_scraping_clients(config) == {}
