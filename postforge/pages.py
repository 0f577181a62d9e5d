from __future__ import annotations

import dataclasses as dc
import datetime as dt
import html
import json
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Sequence

from .config import SiteConfig
from .content import Post, slugify
from .meta import PageMeta, absolute_url, post_href, site_root
from .render import render_template
from .taxonomy import TAXONOMIES, Pager, Term, page_url, paginate
from .utils import rfc822_date

TAXONOMY_LABELS = {"tags": "Tags", "categories": "Categories"}


@dc.dataclass(frozen=True)
class GeneratedPage:
    path: str
    content: str
    metadata: Optional[PageMeta] = None
    source: Optional[str] = None


@dc.dataclass(frozen=True)
class RenderedPost:
    post: Post
    html: str
    toc: str
    meta: PageMeta


def format_date(value: dt.datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def href(config: SiteConfig, path: str) -> str:
    if "://" in path or path.startswith("//"):
        return path
    path = path.strip("/")
    return f"{site_root(config)}/{path}/" if path else f"{site_root(config)}/"


def taxonomy_href(config: SiteConfig, kind: str, name: str) -> str:
    return href(config, f"{kind}/{slugify(name)}")


def build_menu(config: SiteConfig) -> str:
    items = []
    for entry in config.menu:
        items.append(f'<a class="menu-item" href="{html.escape(href(config, entry.url))}">{html.escape(entry.name)}</a>')
    return "".join(items)


def build_social(config: SiteConfig) -> str:
    links = []
    for key, url in config.social:
        label = key.split("-", 1)[-1]
        links.append(
            f'<a class="social-link" href="{html.escape(url)}" title="{html.escape(label)}">{html.escape(label)}</a>'
        )
    return "".join(links)


def build_copyright(config: SiteConfig, posts: Sequence[RenderedPost]) -> str:
    if config.copyright:
        return config.copyright
    years = [item.post.date.year for item in posts]
    span = config.since
    if years:
        latest = str(max(years))
        span = f"{config.since} - {latest}" if config.since and config.since != latest else latest
    owner = config.author or config.title
    return f"&copy; {html.escape(span)} {html.escape(owner)}".strip()


def analytics_html(config: SiteConfig) -> str:
    tracking_id = config.google_analytics.strip()
    if not tracking_id:
        return ""
    tracking_id = html.escape(tracking_id)
    return (
        f'<script async src="https://www.googletagmanager.com/gtag/js?id={tracking_id}"></script>'
        "<script>window.dataLayer=window.dataLayer||[];function gtag(){dataLayer.push(arguments);}"
        f"gtag('js',new Date());gtag('config','{tracking_id}');</script>"
    )


def build_head(config: SiteConfig, extra_head: str = "", keywords: Sequence[str] = ()) -> str:
    root = site_root(config)
    parts = [extra_head] if extra_head else []
    keywords = keywords or config.keywords
    if keywords:
        parts.append(f'<meta name="keywords" content="{html.escape(", ".join(keywords))}">')
    for name in config.custom_css:
        parts.append(f'<link rel="stylesheet" href="{root}/css/{html.escape(name)}">')
    if config.wants("home", "rss"):
        parts.append(
            f'<link rel="alternate" type="application/rss+xml" href="{root}/index.xml" '
            f'title="{html.escape(config.title)}">'
        )
    parts.extend(config.public_cdn)
    analytics = analytics_html(config)
    if analytics:
        parts.append(analytics)
    return "\n".join(parts)


def build_scripts(config: SiteConfig) -> str:
    root = site_root(config)
    return "\n".join(f'<script src="{root}/js/{html.escape(name)}" defer></script>' for name in config.custom_js)


def build_term_list(config: SiteConfig, terms: Sequence[Term], kind: str) -> str:
    items = []
    for term in sorted(terms, key=lambda t: (-len(t.posts), t.name.lower())):
        items.append(
            f'<li><a href="{taxonomy_href(config, kind, term.name)}">{html.escape(term.name)}</a>'
            f'<span class="count">{len(term.posts)}</span></li>'
        )
    return "\n".join(items) if items else f"<li>No {kind} yet.</li>"


def build_sidebar(config: SiteConfig, taxonomies: dict[str, list[Term]], toc_html: str = "") -> str:
    panels = []
    if toc_html and "<li" in toc_html:
        panels.append('<div class="panel panel-toc">' "<h3>Contents</h3>" f"{toc_html}" "</div>")
    panels.append(
        '<div class="panel">'
        "<h3>Categories</h3>"
        f'<ul class="category-list">{build_term_list(config, taxonomies.get("categories", []), "categories")}</ul>'
        "</div>"
    )
    return "".join(panels)


def build_comments(config: SiteConfig, post: Post, url: str) -> str:
    system = config.comments
    if system is None:
        return ""
    settings = system.settings
    if system.name == "utterances":
        repo = html.escape(f"{settings['owner']}/{settings['repo']}")
        return (
            '<div class="comments">'
            f'<script src="https://utteranc.es/client.js" repo="{repo}" issue-term="pathname" '
            'theme="github-light" crossorigin="anonymous" async></script>'
            "</div>"
        )
    if system.name == "disqus":
        shortname = html.escape(settings["disqusshortname"])
        return (
            '<div class="comments"><div id="disqus_thread"></div>'
            "<script>var disqus_config=function(){"
            f"this.page.url={json_string(url)};this.page.identifier={json_string(post.slug)};"
            "};</script>"
            f'<script src="https://{shortname}.disqus.com/embed.js" async></script>'
            "</div>"
        )
    attrs = "".join(
        f' data-{html.escape(key)}="{html.escape(value)}"'
        for key, value in sorted(settings.items())
        if "secret" not in key
    )
    return f'<div class="comments"><div id="comments-{system.name}"{attrs}></div></div>'


def json_string(value: str) -> str:
    return json.dumps(value).replace("</", "<\\/")


def render_page(
    template: str,
    config: SiteConfig,
    posts: Sequence[RenderedPost],
    title: str,
    content: str,
    sidebar: str,
    extra_head: str = "",
    keywords: Sequence[str] = (),
) -> str:
    return render_template(
        template,
        lang=html.escape(config.language_code),
        title=html.escape(title),
        head=build_head(config, extra_head, keywords),
        root=site_root(config),
        site_name=html.escape(config.title),
        menu=build_menu(config),
        social=build_social(config),
        copyright=build_copyright(config, posts),
        scripts=build_scripts(config),
        content=content,
        sidebar=sidebar,
    )


def build_post_cards(config: SiteConfig, items: Iterable[RenderedPost]) -> str:
    cards = []
    for item in items:
        post = item.post
        url = post_href(post, config)
        category_links = " ".join(
            f'<a class="chip" href="{taxonomy_href(config, "categories", cat)}">{html.escape(cat)}</a>'
            for cat in post.categories
        )
        thumbnail = ""
        if post.thumbnail:
            thumbnail = f'<img class="post-thumbnail" src="{html.escape(post.thumbnail)}" alt="" loading="lazy">'
        cards.append(
            '<article class="post-card">'
            f"{thumbnail}"
            '<div class="post-meta">'
            f'<span class="post-date">{format_date(post.date)}</span>'
            f'<span class="post-words">{item.meta.word_count} words</span>'
            f'<span class="post-reading-time">{item.meta.reading_time} min read</span>'
            f'<span class="post-tags">{category_links}</span>'
            "</div>"
            f'<h2 class="post-title"><a href="{url}">{html.escape(post.title)}</a></h2>'
            f'<p class="post-summary">{html.escape(item.meta.summary)}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def build_pagination(config: SiteConfig, pager: Pager) -> str:
    if pager.total <= 1:
        return ""
    items = []
    if pager.prev_url:
        items.append(f'<a class="page-link" href="{href(config, pager.prev_url)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    numbers = []
    for num in range(1, pager.total + 1):
        if num == pager.number:
            numbers.append(f'<span class="page-number is-active">{num}</span>')
        else:
            numbers.append(f'<a class="page-number" href="{href(config, page_url(pager.base, num))}">{num}</a>')
    items.append(f'<div class="page-numbers">{"".join(numbers)}</div>')
    if pager.next_url:
        items.append(f'<a class="page-link" href="{href(config, pager.next_url)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def build_related(config: SiteConfig, post: Post) -> str:
    if not post.related:
        return ""
    rows = []
    for link in post.related:
        label = link.title or link.path
        rows.append(f'<li><a href="{html.escape(href(config, link.path))}">{html.escape(label)}</a></li>')
    return f'<section class="related-posts"><h3>Related posts</h3><ul>{"".join(rows)}</ul></section>'


def build_post_nav(config: SiteConfig, prev_item: Optional[RenderedPost], next_item: Optional[RenderedPost]) -> str:
    links = []
    if prev_item is not None:
        links.append(
            f'<a class="prev" href="{post_href(prev_item.post, config)}">{html.escape(prev_item.post.title)}</a>'
        )
    if next_item is not None:
        links.append(
            f'<a class="next" href="{post_href(next_item.post, config)}">{html.escape(next_item.post.title)}</a>'
        )
    return f'<nav class="post-nav">{"".join(links)}</nav>' if links else ""


def build_posts(
    template: str,
    config: SiteConfig,
    posts: Sequence[RenderedPost],
    taxonomies: dict[str, list[Term]],
    workers: int = 1,
) -> list[GeneratedPage]:
    """Render one page per post. ``posts`` must already be in listing order."""

    def render_post(index: int) -> GeneratedPage:
        item = posts[index]
        post = item.post
        newer = posts[index - 1] if index > 0 else None
        older = posts[index + 1] if index + 1 < len(posts) else None
        show_toc = config.toc if post.toc is None else post.toc
        sidebar = build_sidebar(config, taxonomies, item.toc if show_toc else "")
        category_links = " ".join(
            f'<a class="chip" href="{taxonomy_href(config, "categories", cat)}">{html.escape(cat)}</a>'
            for cat in post.categories
        )
        tag_links = " ".join(
            f'<a class="tag" href="{taxonomy_href(config, "tags", tag)}">{html.escape(tag)}</a>' for tag in post.tags
        )
        updated_html = ""
        if post.lastmod is not None and post.lastmod != post.date:
            updated_html = f'<span class="post-updated">Updated {format_date(post.lastmod)}</span>'
        cover = ""
        if post.image:
            cover = f'<img class="post-cover" src="{html.escape(post.image)}" alt="{html.escape(post.title)}">'
        content = (
            '<article class="post">'
            '<header class="post-header">'
            f'<h1 class="post-title">{html.escape(post.title)}</h1>'
            '<div class="post-meta">'
            f'<span class="post-date">{format_date(post.date)}</span>'
            f"{updated_html}"
            f'<span class="post-categories">{category_links}</span>'
            f'<span class="post-words">{item.meta.word_count} words</span>'
            f'<span class="post-reading-time">{item.meta.reading_time} min read</span>'
            "</div>"
            "</header>"
            f"{cover}"
            f'<div class="post-content">{item.html}</div>'
            f"{build_related(config, post)}"
            '<footer class="post-footer">'
            f'<div class="post-tags">{tag_links}</div>'
            f"{build_post_nav(config, newer, older)}"
            "</footer>"
            "</article>"
            f"{build_comments(config, post, item.meta.url)}"
        )
        html_doc = render_page(
            template,
            config,
            posts,
            f"{post.title} | {config.title}",
            content,
            sidebar,
            extra_head=item.meta.head_html,
            keywords=post.keywords,
        )
        return GeneratedPage(path=item.meta.path, content=html_doc, metadata=item.meta, source=post.source)

    workers = max(1, int(workers or 1))
    indexes = range(len(posts))
    if workers <= 1 or len(posts) <= 1:
        return [render_post(index) for index in indexes]
    with ThreadPoolExecutor(max_workers=min(workers, len(posts))) as executor:
        return list(executor.map(render_post, indexes))


def build_listing(
    template: str,
    config: SiteConfig,
    posts: Sequence[RenderedPost],
    taxonomies: dict[str, list[Term]],
    items: Sequence[RenderedPost],
    base: str,
    page_size: int,
    heading: str,
    intro: str,
    title: str,
) -> list[GeneratedPage]:
    pages = []
    for pager in paginate(items, page_size, base):
        content = (
            '<div class="section-head">'
            f"<h2>{html.escape(heading)}</h2>"
            f"<p>{html.escape(intro)}</p>"
            "</div>"
            f'<div class="post-list">{build_post_cards(config, pager.items)}</div>'
            f"{build_pagination(config, pager)}"
        )
        page_title = title if pager.number == 1 else f"{title} | Page {pager.number}"
        html_doc = render_page(template, config, posts, page_title, content, build_sidebar(config, taxonomies))
        pages.append(GeneratedPage(path=pager.output_path, content=html_doc))
    return pages


def build_index(
    template: str, config: SiteConfig, posts: Sequence[RenderedPost], taxonomies: dict[str, list[Term]]
) -> list[GeneratedPage]:
    return build_listing(
        template,
        config,
        posts,
        taxonomies,
        posts,
        "",
        config.pager_size,
        "Latest posts",
        config.description,
        config.title,
    )


def build_archive(
    template: str, config: SiteConfig, posts: Sequence[RenderedPost], taxonomies: dict[str, list[Term]]
) -> list[GeneratedPage]:
    """Section listing grouped by year, paginated by ``archivePaginate``."""
    pages = []
    for pager in paginate(posts, config.archive_paginate, config.section):
        groups: dict[int, list[RenderedPost]] = {}
        for item in pager.items:
            groups.setdefault(item.post.date.year, []).append(item)
        sections = []
        for year in sorted(groups, reverse=True):
            rows = []
            for item in groups[year]:
                rows.append(
                    f'<li><span class="archive-date">{item.post.date:%m-%d}</span>'
                    f'<a href="{post_href(item.post, config)}">{html.escape(item.post.title)}</a></li>'
                )
            sections.append(
                f'<section class="archive-group"><h3>{year}</h3><ul class="archive-list">{"".join(rows)}</ul></section>'
            )
        if not sections:
            sections.append('<p class="archive-empty">No posts yet.</p>')
        content = (
            '<div class="section-head"><h2>Archive</h2></div>'
            f'{"".join(sections)}'
            f"{build_pagination(config, pager)}"
        )
        title = f"Archive | {config.title}"
        if pager.number > 1:
            title = f"{title} | Page {pager.number}"
        html_doc = render_page(template, config, posts, title, content, build_sidebar(config, taxonomies))
        pages.append(GeneratedPage(path=pager.output_path, content=html_doc))
    return pages


def build_taxonomies(
    template: str,
    config: SiteConfig,
    posts: Sequence[RenderedPost],
    taxonomies: dict[str, list[Term]],
    rendered: dict[int, RenderedPost],
) -> list[GeneratedPage]:
    """Terms list pages plus one paginated listing per term.

    ``rendered`` maps ``id(post)`` to its rendered form so term listings reuse
    the summaries computed for the post pages.
    """
    pages = []
    sidebar = build_sidebar(config, taxonomies)
    for kind in TAXONOMIES:
        label = TAXONOMY_LABELS[kind]
        terms = taxonomies.get(kind, [])
        content = (
            '<div class="section-head">'
            f"<h2>{label}</h2>"
            "</div>"
            f'<ul class="term-list">{build_term_list(config, terms, kind)}</ul>'
        )
        html_doc = render_page(template, config, posts, f"{label} | {config.title}", content, sidebar)
        pages.append(GeneratedPage(path=f"{kind}/index.html", content=html_doc))
        for term in terms:
            items = [rendered[id(post)] for post in term.posts]
            pages.extend(
                build_listing(
                    template,
                    config,
                    posts,
                    taxonomies,
                    items,
                    f"{kind}/{term.slug}",
                    config.archive_paginate,
                    term.name,
                    f"{len(items)} posts",
                    f"{term.name} | {config.title}",
                )
            )
    return pages


def build_rss(
    config: SiteConfig,
    items: Sequence[RenderedPost],
    title: str,
    link_path: str,
    limit: int = 0,
) -> GeneratedPage:
    channel_link = absolute_url(config, link_path) + "/"
    feed_path = f"{link_path.strip('/')}/index.xml".lstrip("/")
    selected = list(items[:limit]) if limit > 0 else list(items)
    entries = []
    for item in selected:
        post = item.post
        entries.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(post.title)}</title>",
                    f"<link>{html.escape(item.meta.url)}</link>",
                    f"<pubDate>{rfc822_date(post.date)}</pubDate>",
                    f"<guid>{html.escape(item.meta.url)}</guid>",
                    f"<description>{html.escape(item.meta.summary)}</description>",
                    "</item>",
                ]
            )
        )
    last_build = f"<lastBuildDate>{rfc822_date(selected[0].post.date)}</lastBuildDate>" if selected else ""
    rss = "\n".join(
        line
        for line in [
            '<?xml version="1.0" encoding="utf-8" standalone="yes"?>',
            '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">',
            "<channel>",
            f"<title>{html.escape(title)}</title>",
            f"<link>{html.escape(channel_link)}</link>",
            f"<description>{html.escape(config.description or title)}</description>",
            f"<language>{html.escape(config.language_code)}</language>",
            last_build,
            f'<atom:link href="{html.escape(absolute_url(config, feed_path))}" rel="self" type="application/rss+xml" />',
            "\n".join(entries),
            "</channel>",
            "</rss>",
        ]
        if line
    )
    return GeneratedPage(path=feed_path, content=rss)


def build_feeds(
    config: SiteConfig,
    posts: Sequence[RenderedPost],
    taxonomies: dict[str, list[Term]],
    rendered: dict[int, RenderedPost],
    limit: int = 0,
) -> list[GeneratedPage]:
    feeds = []
    if config.wants("home", "rss"):
        feeds.append(build_rss(config, posts, config.title, "", limit))
    if config.wants("section", "rss"):
        feeds.append(build_rss(config, posts, f"Posts on {config.title}", config.section, limit))
    if config.wants("taxonomy", "rss"):
        for kind in TAXONOMIES:
            for term in taxonomies.get(kind, []):
                items = [rendered[id(post)] for post in term.posts]
                feeds.append(build_rss(config, items, f"{term.name} on {config.title}", f"{kind}/{term.slug}", limit))
    return feeds


def build_sitemap(
    config: SiteConfig, posts: Sequence[RenderedPost], taxonomies: dict[str, list[Term]]
) -> GeneratedPage:
    latest = max(item.post.updated for item in posts) if posts else None
    urls: list[tuple[str, Optional[dt.datetime]]] = [
        (config.base_url, latest),
        (absolute_url(config, config.section) + "/", latest),
    ]
    for kind in TAXONOMIES:
        urls.append((absolute_url(config, kind) + "/", None))
        for term in taxonomies.get(kind, []):
            term_latest = max(post.updated for post in term.posts)
            urls.append((absolute_url(config, f"{kind}/{term.slug}") + "/", term_latest))
    for item in posts:
        # canonicalURL overrides may point off-site
        urls.append((absolute_url(config, item.post.slug), item.post.updated))
    items = []
    for url, lastmod in urls:
        lines = ["<url>", f"<loc>{html.escape(url)}</loc>"]
        if lastmod is not None:
            lines.append(f"<lastmod>{lastmod.isoformat()}</lastmod>")
        if config.sitemap_changefreq:
            lines.append(f"<changefreq>{html.escape(config.sitemap_changefreq)}</changefreq>")
        if config.sitemap_priority is not None:
            lines.append(f"<priority>{config.sitemap_priority:g}</priority>")
        lines.append("</url>")
        items.append("\n".join(lines))
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="utf-8" standalone="yes"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )
    return GeneratedPage(path=config.sitemap_filename, content=sitemap)


def build_robots(config: SiteConfig) -> GeneratedPage:
    sitemap_url = absolute_url(config, config.sitemap_filename)
    return GeneratedPage(path="robots.txt", content=f"User-agent: *\nSitemap: {sitemap_url}\n")


def build_404(
    template: str, config: SiteConfig, posts: Sequence[RenderedPost], taxonomies: dict[str, list[Term]]
) -> GeneratedPage:
    content = (
        '<div class="section-head">'
        "<h2>404</h2>"
        "<p>Page not found. Try heading back to the homepage.</p>"
        "</div>"
        f'<a class="post-more" href="{href(config, "")}">Back to home</a>'
    )
    html_doc = render_page(template, config, posts, f"404 | {config.title}", content, build_sidebar(config, taxonomies))
    return GeneratedPage(path="404.html", content=html_doc)
