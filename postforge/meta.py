"""Page-level metadata derived from a post and the site configuration.

Everything here is a pure function of its arguments: no file access, no
network, no clock. Rendering the same post twice yields identical output.
"""

from __future__ import annotations

import dataclasses as dc
import html
import json
import math
import re
from typing import Optional

import markdown

from .config import SiteConfig
from .content import Post, count_words, normalize_list_spacing
from .render import add_lazy_loading, strip_tags
from .utils import join_url, url_path

WORDS_PER_MINUTE = 213
LINENOS_RE = re.compile(r'<td class="linenos">.*?</td>', re.DOTALL)


@dc.dataclass(frozen=True)
class PageMeta:
    url: str
    path: str
    word_count: int
    reading_time: int
    summary: str
    open_graph: tuple[tuple[str, str], ...]
    twitter: tuple[tuple[str, str], ...]
    json_ld: str

    @property
    def head_html(self) -> str:
        tags = [f'<link rel="canonical" href="{html.escape(self.url)}">']
        if self.summary:
            tags.append(f'<meta name="description" content="{html.escape(self.summary)}">')
        for prop, value in self.open_graph:
            tags.append(f'<meta property="{prop}" content="{html.escape(value)}">')
        for name, value in self.twitter:
            tags.append(f'<meta name="{name}" content="{html.escape(value)}">')
        tags.append(f'<script type="application/ld+json">{self.json_ld}</script>')
        return "\n".join(tags)


def site_root(config: SiteConfig) -> str:
    return url_path(config.base_url)


def post_path(post: Post) -> str:
    return f"{post.slug}/index.html"


def post_href(post: Post, config: SiteConfig) -> str:
    return f"{site_root(config)}/{post.slug}/"


def canonical_url(post: Post, config: SiteConfig) -> str:
    if post.canonical_url:
        return post.canonical_url
    return config.base_url + post.slug


def reading_time(word_count: int) -> int:
    """Minutes needed to read ``word_count`` words, never less than one."""
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def markdown_renderer(config: SiteConfig) -> markdown.Markdown:
    return markdown.Markdown(
        extensions=["fenced_code", "tables", "toc", "codehilite"],
        extension_configs={
            "toc": {"toc_depth": "2-4"},
            "codehilite": {
                "css_class": "highlight",
                "linenums": config.highlight_line_numbers,
                "guess_lang": config.highlight_guess_lang,
            },
        },
    )


def render_body(post: Post, config: SiteConfig) -> tuple[str, str]:
    md = markdown_renderer(config)
    html_content = md.convert(normalize_list_spacing(post.body))
    toc_html = md.toc
    md.reset()
    if config.lazy_loading:
        html_content = add_lazy_loading(html_content)
    return html_content, toc_html


def plain_text(html_content: str) -> str:
    return html.unescape(strip_tags(LINENOS_RE.sub(" ", html_content)))


def summarize(text: str, length: int) -> str:
    words = text.split()
    summary = " ".join(words[:length])
    if len(words) > length:
        summary += "..."
    return summary


def cover_image(post: Post, config: SiteConfig) -> Optional[str]:
    if post.image:
        return post.image
    if config.default_images:
        return config.default_images[0]
    return None


def _json_ld(post: Post, config: SiteConfig, url: str, summary: str, word_count: int) -> str:
    data = {
        "@context": "https://schema.org",
        "@type": "BlogPosting",
        "headline": post.title,
        "url": url,
        "mainEntityOfPage": {"@type": "WebPage", "@id": url},
        "datePublished": post.date.isoformat(),
        "dateModified": post.updated.isoformat(),
        "wordCount": word_count,
        "description": summary,
        "inLanguage": config.language_code,
    }
    keywords = post.keywords or post.tags
    if keywords:
        data["keywords"] = ", ".join(keywords)
    if config.author:
        data["author"] = {"@type": "Person", "name": config.author}
    if config.title:
        data["publisher"] = {"@type": "Organization", "name": config.title}
    image = cover_image(post, config)
    if image:
        data["image"] = image
    text = json.dumps(data, sort_keys=True, ensure_ascii=False)
    return text.replace("</", "<\\/")


def page_metadata(post: Post, config: SiteConfig, html_content: Optional[str] = None) -> PageMeta:
    if html_content is None:
        html_content, _ = render_body(post, config)
    text = plain_text(html_content)
    word_count = count_words(text, cjk=config.has_cjk_language)
    minutes = reading_time(word_count) if post.body.strip() else 0
    summary = post.description or summarize(text, config.summary_length)
    url = canonical_url(post, config)
    image = cover_image(post, config)

    open_graph = [
        ("og:title", post.title),
        ("og:description", summary),
        ("og:type", "article"),
        ("og:url", url),
    ]
    if config.title:
        open_graph.append(("og:site_name", config.title))
    if image:
        open_graph.append(("og:image", image))
    open_graph.append(("article:published_time", post.date.isoformat()))
    open_graph.append(("article:modified_time", post.updated.isoformat()))
    if post.categories:
        open_graph.append(("article:section", post.categories[0]))
    open_graph.extend(("article:tag", tag) for tag in post.tags)

    twitter = [
        ("twitter:card", "summary_large_image" if image else "summary"),
        ("twitter:title", post.title),
        ("twitter:description", summary),
    ]
    if image:
        twitter.append(("twitter:image", image))

    return PageMeta(
        url=url,
        path=post_path(post),
        word_count=word_count,
        reading_time=minutes,
        summary=summary,
        open_graph=tuple(open_graph),
        twitter=tuple(twitter),
        json_ld=_json_ld(post, config, url, summary, word_count),
    )


def absolute_url(config: SiteConfig, path: str) -> str:
    return join_url(config.base_url, path)
