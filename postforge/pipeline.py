from __future__ import annotations

import dataclasses as dc
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar, Union

from .config import SiteConfig, load_config, site_config
from .content import Post, load_post
from .errors import BuildError, ConfigError, DuplicateSlug, ErrorReport
from .links import check_links
from .meta import page_metadata, render_body
from .pages import (
    GeneratedPage,
    RenderedPost,
    build_404,
    build_archive,
    build_feeds,
    build_index,
    build_posts,
    build_robots,
    build_sitemap,
    build_taxonomies,
)
from .render import copy_static, read_template, write_text
from .taxonomy import aggregate, sort_posts
from .utils import clean_output_dir

T = TypeVar("T")
R = TypeVar("R")


@dc.dataclass
class BuildOptions:
    config_path: Path
    content_dir: Optional[Path] = None
    output_dir: Optional[Path] = None
    static_dir: Optional[Path] = None
    base_url: Optional[str] = None
    build_drafts: Optional[bool] = None
    workers: int = 0
    clean: bool = False
    check_only: bool = False
    strict_links: bool = False


@dc.dataclass
class BuildResult:
    config: SiteConfig
    output_dir: Path
    posts: list[Post] = dc.field(default_factory=list)
    pages: list[GeneratedPage] = dc.field(default_factory=list)
    report: ErrorReport = dc.field(default_factory=ErrorReport)
    written: bool = False
    strict_links: bool = False

    @property
    def failed(self) -> bool:
        return self.report.has_fatal(self.strict_links)


def worker_count(requested: int) -> int:
    if requested <= 0:
        requested = os.cpu_count() or 1
    return max(1, min(requested, 32))


def run_parallel(func: Callable[[T], R], items: Sequence[T], workers: int) -> list[R]:
    """Map ``func`` over ``items`` keeping input order."""
    workers = min(workers, len(items)) if items else 1
    if workers <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(func, items))


def discover_posts(content_dir: Path) -> list[Path]:
    """Markdown files under ``content_dir`` in a stable order.

    Section index files (``_index.md``) describe list pages, not posts.
    """
    files = [path for path in content_dir.rglob("*.md") if path.is_file() and path.name != "_index.md"]
    return sorted(files, key=lambda p: p.as_posix())


def parse_posts(files: Sequence[Path], config: SiteConfig, workers: int) -> tuple[list[Post], list[BuildError]]:
    def parse_one(path: Path) -> Union[Post, BuildError]:
        try:
            return load_post(path, config.time_zone)
        except BuildError as exc:
            return exc

    posts: list[Post] = []
    errors: list[BuildError] = []
    for outcome in run_parallel(parse_one, files, workers):
        if isinstance(outcome, BuildError):
            errors.append(outcome)
        else:
            posts.append(outcome)
    return posts, errors


def find_duplicate_slugs(posts: Sequence[Post]) -> list[DuplicateSlug]:
    owners: dict[str, list[str]] = {}
    for post in posts:
        owners.setdefault(post.slug, []).append(post.source or post.slug)
    return [DuplicateSlug(slug, paths) for slug, paths in sorted(owners.items()) if len(paths) > 1]


def find_path_collisions(pages: Sequence[GeneratedPage]) -> list[DuplicateSlug]:
    """Posts whose output path clashes with a generated list or feed page."""
    owners: dict[str, list[str]] = {}
    for page in pages:
        owners.setdefault(page.path, []).append(page.source or f"generated {page.path}")
    errors = []
    for path, sources in sorted(owners.items()):
        if len(sources) > 1:
            errors.append(DuplicateSlug(path.rsplit("/index.html", 1)[0], sources))
    return errors


def render_posts(posts: Sequence[Post], config: SiteConfig, workers: int) -> list[RenderedPost]:
    def render_one(post: Post) -> RenderedPost:
        html_content, toc_html = render_body(post, config)
        meta = page_metadata(post, config, html_content)
        return RenderedPost(post=post, html=html_content, toc=toc_html, meta=meta)

    return run_parallel(render_one, posts, workers)


def generate_pages(
    template: str, config: SiteConfig, posts: Sequence[Post], workers: int
) -> tuple[list[GeneratedPage], dict]:
    ordered = sort_posts(posts)
    taxonomies = aggregate(ordered)
    rendered = render_posts(ordered, config, workers)
    by_post = {id(item.post): item for item in rendered}

    pages: list[GeneratedPage] = []
    if config.wants("page", "html"):
        pages.extend(build_posts(template, config, rendered, taxonomies, workers=workers))
    if config.wants("home", "html"):
        pages.extend(build_index(template, config, rendered, taxonomies))
    if config.wants("section", "html"):
        pages.extend(build_archive(template, config, rendered, taxonomies))
    if config.wants("taxonomy", "html"):
        pages.extend(build_taxonomies(template, config, rendered, taxonomies, by_post))
    pages.extend(build_feeds(config, rendered, taxonomies, by_post, config.rss_limit))
    pages.append(build_sitemap(config, rendered, taxonomies))
    if config.enable_robots_txt:
        pages.append(build_robots(config))
    pages.append(build_404(template, config, rendered, taxonomies))
    return pages, taxonomies


def write_pages(pages: Sequence[GeneratedPage], output_dir: Path, workers: int) -> None:
    # every page owns a distinct path, so writers never overlap
    run_parallel(lambda page: write_text(output_dir / page.path, page.content), pages, workers)


def build_site(options: BuildOptions) -> BuildResult:
    config_path = options.config_path.resolve()
    project_root = config_path.parent
    data = load_config(config_path)
    config = site_config(data, base_url=options.base_url, build_drafts=options.build_drafts)

    content_dir = options.content_dir or project_root / config.content_dir
    output_dir = options.output_dir or project_root / config.publish_dir
    static_dir = options.static_dir or project_root / config.static_dir
    if not content_dir.exists():
        raise ConfigError(f"Content directory not found: {content_dir}")

    workers = worker_count(options.workers)
    result = BuildResult(config=config, output_dir=output_dir, strict_links=options.strict_links)

    posts, errors = parse_posts(discover_posts(content_dir), config, workers)
    result.report.extend(errors)
    if not config.build_drafts:
        posts = [post for post in posts if not post.draft]

    duplicates = find_duplicate_slugs(posts)
    if duplicates:
        result.report.extend(duplicates)
        return result
    result.posts = sort_posts(posts)

    template = read_template(project_root)
    pages, taxonomies = generate_pages(template, config, result.posts, workers)
    collisions = find_path_collisions(pages)
    if collisions:
        result.report.extend(collisions)
        return result
    result.pages = pages
    result.report.extend(check_links(result.posts, taxonomies, config))

    if options.check_only or result.failed:
        return result
    if options.clean:
        clean_output_dir(output_dir, project_root)
    output_dir.mkdir(parents=True, exist_ok=True)
    if static_dir.exists():
        copy_static(static_dir, output_dir)
    write_pages(pages, output_dir, workers)
    result.written = True
    return result
