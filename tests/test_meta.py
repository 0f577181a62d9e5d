"""Tests for postforge.meta page metadata derivation."""

import datetime as dt
import json

import pytest

from postforge.config import site_config
from postforge.content import Post
from postforge.meta import canonical_url, page_metadata, reading_time, render_body, summarize

BASE = "https://techinsights.manisuec.com/"
UTC = dt.timezone.utc


@pytest.fixture
def config():
    return site_config(
        {
            "baseURL": BASE,
            "title": "Tech Insights",
            "summaryLength": 5,
            "params": {"author": "Manish Prasad", "images": ["https://cdn.example.com/default.jpg"]},
        }
    )


def make_post(**kwargs):
    kwargs.setdefault("slug", "general/storing-files-in-database")
    kwargs.setdefault("title", "Storing files in a database")
    kwargs.setdefault("date", dt.datetime(2021, 11, 2, tzinfo=UTC))
    return Post(**kwargs)


class TestCanonicalUrl:
    def test_base_url_plus_slug(self, config):
        assert canonical_url(make_post(), config) == BASE + "general/storing-files-in-database"

    def test_override_wins_verbatim(self, config):
        override = "https://medium.com/@someone/storing-files?utm=x"
        assert canonical_url(make_post(canonical_url=override), config) == override

    def test_base_url_gains_trailing_slash(self):
        config = site_config({"baseURL": "https://example.com"})
        assert canonical_url(make_post(slug="a/b"), config) == "https://example.com/a/b"


class TestReadingTime:
    def test_never_below_one_minute(self):
        assert reading_time(0) == 1
        assert reading_time(1) == 1

    def test_rounds_up(self):
        assert reading_time(213) == 1
        assert reading_time(214) == 2
        assert reading_time(1000) == 5

    def test_non_decreasing(self):
        values = [reading_time(words) for words in range(0, 3000, 7)]
        assert values == sorted(values)


class TestPageMetadata:
    def test_word_count_ignores_markup(self, config):
        post = make_post(body="**bold** text and a [link](https://example.com)\n")
        meta = page_metadata(post, config)
        assert meta.word_count == 5

    def test_reading_time_from_word_count(self, config):
        post = make_post(body="word " * 500)
        meta = page_metadata(post, config)
        assert meta.word_count == 500
        assert meta.reading_time == 3

    def test_non_empty_body_reads_in_at_least_a_minute(self, config):
        meta = page_metadata(make_post(body="![diagram](/img/diagram.png)\n"), config)
        assert meta.word_count == 0
        assert meta.reading_time == 1

    def test_empty_body(self, config):
        assert page_metadata(make_post(body=""), config).reading_time == 0

    def test_is_deterministic(self, config):
        post = make_post(body="# Heading\n\nSome text.\n", tags=["nodejs"])
        assert page_metadata(post, config) == page_metadata(post, config)

    def test_output_path_follows_slug(self, config):
        assert page_metadata(make_post(), config).path == "general/storing-files-in-database/index.html"

    def test_summary_truncates_to_summary_length(self, config):
        meta = page_metadata(make_post(body="one two three four five six seven\n"), config)
        assert meta.summary == "one two three four five..."

    def test_description_replaces_summary(self, config):
        meta = page_metadata(make_post(body="one two three", description="Short blurb."), config)
        assert meta.summary == "Short blurb."

    def test_open_graph_mirrors_post(self, config):
        post = make_post(body="text", tags=["nodejs", "mongodb"], categories=["general"])
        meta = page_metadata(post, config)
        og = dict(meta.open_graph)
        assert og["og:title"] == post.title
        assert og["og:url"] == BASE + post.slug
        assert og["og:type"] == "article"
        assert og["og:image"] == "https://cdn.example.com/default.jpg"
        assert og["article:published_time"] == "2021-11-02T00:00:00+00:00"
        assert og["article:section"] == "general"
        assert [value for key, value in meta.open_graph if key == "article:tag"] == ["nodejs", "mongodb"]

    def test_twitter_card(self, config):
        meta = page_metadata(make_post(body="text", image="https://cdn.example.com/cover.jpg"), config)
        twitter = dict(meta.twitter)
        assert twitter["twitter:card"] == "summary_large_image"
        assert twitter["twitter:image"] == "https://cdn.example.com/cover.jpg"

    def test_json_ld(self, config):
        post = make_post(body="alpha beta", keywords=["gridfs"], lastmod=dt.datetime(2022, 1, 5, tzinfo=UTC))
        meta = page_metadata(post, config)
        data = json.loads(meta.json_ld)
        assert data["@type"] == "BlogPosting"
        assert data["headline"] == post.title
        assert data["url"] == BASE + post.slug
        assert data["wordCount"] == 2
        assert data["keywords"] == "gridfs"
        assert data["dateModified"] == "2022-01-05T00:00:00+00:00"
        assert data["author"] == {"@type": "Person", "name": "Manish Prasad"}

    def test_json_ld_cannot_close_script(self, config):
        meta = page_metadata(make_post(title="</script><b>x</b>", body="text"), config)
        assert "</script>" not in meta.json_ld

    def test_head_html(self, config):
        meta = page_metadata(make_post(body="text"), config)
        head = meta.head_html
        assert f'<link rel="canonical" href="{BASE}general/storing-files-in-database">' in head
        assert '<meta property="og:title" content="Storing files in a database">' in head
        assert '<script type="application/ld+json">' in head


class TestRenderBody:
    def test_toc_and_lazy_images(self):
        config = site_config({"baseURL": BASE, "params": {"lazyLoading": True}})
        html, toc = render_body(make_post(body="## Setup\n\n![alt](/img/a.png)\n"), config)
        assert 'loading="lazy"' in html
        assert 'href="#setup"' in toc

    def test_no_lazy_loading_by_default(self, config):
        html, _ = render_body(make_post(body="![alt](/img/a.png)\n"), config)
        assert "loading=" not in html

    def test_fenced_code_is_highlighted(self, config):
        html, _ = render_body(make_post(body="```python\nprint('hi')\n```\n"), config)
        assert 'class="highlight"' in html

    def test_summarize(self):
        assert summarize("a b c", 5) == "a b c"
        assert summarize("a b c", 2) == "a b..."
