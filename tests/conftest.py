"""Shared fixtures: a throwaway site directory with config and posts."""

from pathlib import Path

import pytest

from postforge.pipeline import BuildOptions

CONFIG = """\
baseURL = "https://techinsights.manisuec.com/"
languageCode = "en"
title = "Tech Insights"
enableRobotsTXT = true
summaryLength = 30

[pagination]
  pagerSize = 5

[[menu.main]]
  name = "Home"
  weight = 20
  identifier = "home"
  url = "/"

[[menu.main]]
  name = "Blogs"
  weight = 25
  identifier = "archives"
  url = "/post/"

[params]
  author = "Manish Prasad"
  since = "2019"
  archivePaginate = 10
  toc = true
  lazyLoading = true
  description = "A personal tech blog"

  [params.social]
    a-email = "mailto:someone@example.com"
    g-github = "https://github.com/example"
"""


def post_text(slug, title="A post", date="2021-11-02", tags=(), categories=(), body="Some body text.\n", extra=""):
    lines = ["---"]
    if title is not None:
        lines.append(f'title: "{title}"')
    if slug is not None:
        lines.append(f'slug: "{slug}"')
    if date is not None:
        lines.append(f"date: {date}")
    if tags:
        lines.append(f"tags: [{', '.join(tags)}]")
    if categories:
        lines.append(f"categories: [{', '.join(categories)}]")
    if extra:
        lines.append(extra.rstrip("\n"))
    lines.append("---")
    return "\n".join(lines) + "\n" + body


class Site:
    def __init__(self, root: Path):
        self.root = root
        self.content = root / "content" / "post"
        self.content.mkdir(parents=True)
        self.config_path = root / "config.toml"
        self.config_path.write_text(CONFIG, encoding="utf-8")
        self.public = root / "public"

    def add_post(self, name, slug, **kwargs) -> Path:
        path = self.content / name
        path.write_text(post_text(slug, **kwargs), encoding="utf-8")
        return path

    def add_raw(self, name, text) -> Path:
        path = self.content / name
        path.write_text(text, encoding="utf-8")
        return path

    def set_config(self, text) -> None:
        self.config_path.write_text(text, encoding="utf-8")

    def options(self, **kwargs) -> BuildOptions:
        kwargs.setdefault("workers", 2)
        return BuildOptions(config_path=self.config_path, **kwargs)


@pytest.fixture
def site(tmp_path):
    return Site(tmp_path)
