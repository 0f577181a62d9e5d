"""Tests for postforge.config loading and normalisation."""

import datetime as dt

import pytest

from postforge.config import MenuEntry, active_comments, load_config, site_config
from postforge.errors import ConfigError

BLOG_CONFIG = """\
baseURL = "https://techinsights.manisuec.com/"
languageCode = "en"
title = "Tech Insights on NodeJS, Javascript, Mongodb"
enableRobotsTXT = true
theme = "even"
summaryLength = 30
pygmentsOptions = "linenos=table"
pygmentsCodefencesGuessSyntax = true
hasCJKLanguage = false
copyright = ""

[pagination]
  pagerSize = 5

[sitemap]
  changefreq = "weekly"
  priority = 0.5
  filename = "sitemap.xml"

[[menu.main]]
  name = "Blogs"
  weight = 25
  identifier = "archives"
  url = "/post/"

[[menu.main]]
  name = "Home"
  weight = 20
  identifier = "home"
  url = "/"

[params]
  author = "Manish Prasad"
  googleAnalytics = "G-YZX0J3052R"
  disqusShortname = ""
  since = "2019"
  keywords = ["tech","blog","manisuec"]
  archivePaginate = 10
  toc = true
  changyanAppid = ""
  changyanAppkey = ""
  livereUID = ""
  customCSS = ["lazyload.css"]
  customJS = []
  lazyLoading = true
  images = ["https://cdn.example.com/bg-about.jpg"]

  [params.publicCDN]
    enable = true
    jquery = '<script src="https://cdn.jsdelivr.net/npm/jquery@3.2.1/dist/jquery.min.js" defer></script>'

  [params.utterances]
    owner = ""
    repo = "techinsights"

  [params.valine]
    enable = false
    appId = "id"
    appKey = "key"

  [params.social]
    g-github = "https://github.com/manisuec"
    a-email = "mailto:someone@example.com"
    c-twitter = ""

[outputs]
  home = ["HTML", "RSS"]
  page = ["HTML"]
  section = ["HTML", "RSS"]
  taxonomy = ["HTML", "RSS"]
"""


@pytest.fixture
def blog_config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(BLOG_CONFIG, encoding="utf-8")
    return site_config(load_config(path))


class TestSiteConfig:
    def test_core_values(self, blog_config):
        assert blog_config.base_url == "https://techinsights.manisuec.com/"
        assert blog_config.title == "Tech Insights on NodeJS, Javascript, Mongodb"
        assert blog_config.summary_length == 30
        assert blog_config.pager_size == 5
        assert blog_config.archive_paginate == 10
        assert blog_config.author == "Manish Prasad"
        assert blog_config.keywords == ("tech", "blog", "manisuec")
        assert blog_config.enable_robots_txt is True
        assert blog_config.lazy_loading is True
        assert blog_config.toc is True

    def test_menu_sorted_by_weight(self, blog_config):
        assert blog_config.menu == (
            MenuEntry("Home", "/", 20, "home"),
            MenuEntry("Blogs", "/post/", 25, "archives"),
        )

    def test_blank_comment_credentials_disable_comments(self, blog_config):
        assert blog_config.comments is None

    def test_social_skips_blank_links(self, blog_config):
        assert blog_config.social == (
            ("a-email", "mailto:someone@example.com"),
            ("g-github", "https://github.com/manisuec"),
        )

    def test_highlighting_and_sitemap(self, blog_config):
        assert blog_config.highlight_line_numbers is True
        assert blog_config.highlight_guess_lang is True
        assert blog_config.sitemap_changefreq == "weekly"
        assert blog_config.sitemap_priority == 0.5

    def test_public_cdn_and_assets(self, blog_config):
        assert len(blog_config.public_cdn) == 1
        assert "jquery" in blog_config.public_cdn[0]
        assert blog_config.custom_css == ("lazyload.css",)
        assert blog_config.custom_js == ()

    def test_outputs(self, blog_config):
        assert blog_config.wants("home", "RSS")
        assert not blog_config.wants("page", "rss")

    def test_defaults(self):
        config = site_config({})
        assert config.base_url == "/"
        assert config.pager_size == 10
        assert config.summary_length == 70
        assert config.time_zone == dt.timezone.utc
        assert config.wants("taxonomy", "rss")

    def test_paginate_fallback(self):
        assert site_config({"paginate": 7}).pager_size == 7

    def test_line_numbers_can_be_disabled(self):
        assert site_config({"pygmentsOptions": "linenos=false"}).highlight_line_numbers is False
        assert site_config({"pygmentsOptions": "style=monokai"}).highlight_line_numbers is False

    def test_overrides_win(self):
        config = site_config({"baseURL": "https://a.example/"}, base_url="http://localhost:1313", build_drafts=True)
        assert config.base_url == "http://localhost:1313/"
        assert config.build_drafts is True

    def test_none_overrides_are_ignored(self):
        config = site_config({"baseURL": "https://a.example/"}, base_url=None, publish_dir=None)
        assert config.base_url == "https://a.example/"
        assert config.publish_dir == "public"

    def test_time_zone(self):
        config = site_config({"timeZone": "Asia/Kolkata"})
        assert config.time_zone.utcoffset(dt.datetime(2021, 1, 1)) == dt.timedelta(hours=5, minutes=30)

    def test_invalid_sitemap_priority(self):
        with pytest.raises(ConfigError, match="priority"):
            site_config({"sitemap": {"priority": "high"}})
        with pytest.raises(ConfigError, match="priority"):
            site_config({"sitemap": {"priority": 2}})

    def test_unknown_time_zone(self):
        with pytest.raises(ConfigError, match="timeZone"):
            site_config({"timeZone": "Mars/Olympus_Mons"})


class TestActiveComments:
    def test_disqus_wins(self):
        params = {
            "disqusShortname": "techinsights",
            "utterances": {"owner": "manisuec", "repo": "techinsights"},
        }
        comments = active_comments(params)
        assert comments.name == "disqus"
        assert comments.settings == {"disqusshortname": "techinsights"}

    def test_utterances(self):
        comments = active_comments({"utterances": {"owner": "manisuec", "repo": "techinsights"}})
        assert comments.name == "utterances"
        assert comments.settings["repo"] == "techinsights"

    def test_disabled_table_is_skipped(self):
        params = {
            "valine": {"enable": False, "appId": "id", "appKey": "key"},
            "livereUID": "MTAyMC8",
        }
        assert active_comments(params).name == "livere"

    def test_changyan_needs_both_keys(self):
        assert active_comments({"changyanAppid": "abc", "changyanAppkey": ""}) is None
        assert active_comments({"changyanAppid": "abc", "changyanAppkey": "def"}).name == "changyan"

    def test_nothing_configured(self):
        assert active_comments({}) is None


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "config.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('baseURL = "unterminated\n', encoding="utf-8")
        with pytest.raises(ConfigError, match="TOML"):
            load_config(path)

    def test_yaml_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("baseURL: https://example.com\ntitle: Blog\n", encoding="utf-8")
        assert site_config(load_config(path)).title == "Blog"

    def test_empty_yaml_config(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == {}

    def test_json_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"baseURL": "https://example.com", "paginate": 3}', encoding="utf-8")
        assert site_config(load_config(path)).pager_size == 3

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)
