from __future__ import annotations

import dataclasses as dc
import math
from typing import Iterable, Sequence

from .content import Post, slugify

TAXONOMIES = ("tags", "categories")


@dc.dataclass(frozen=True)
class Pager:
    number: int
    total: int
    items: tuple
    base: str

    @property
    def url(self) -> str:
        return page_url(self.base, self.number)

    @property
    def prev_url(self) -> str:
        return page_url(self.base, self.number - 1) if self.number > 1 else ""

    @property
    def next_url(self) -> str:
        return page_url(self.base, self.number + 1) if self.number < self.total else ""

    @property
    def output_path(self) -> str:
        return f"{self.url.strip('/')}/index.html".lstrip("/")


@dc.dataclass(frozen=True)
class Term:
    name: str
    slug: str
    posts: tuple[Post, ...]


def page_url(base: str, number: int) -> str:
    """Relative URL of page ``number`` of a listing rooted at ``base``.

    ``base`` is ``""`` for the home page, otherwise a path such as
    ``tags/nodejs``.
    """
    base = base.strip("/")
    prefix = f"{base}/" if base else ""
    if number <= 1:
        return prefix
    return f"{prefix}page/{number}/"


def post_sort_key(post: Post):
    return (-post.date.timestamp(), post.slug)


def sort_posts(posts: Iterable[Post]) -> list[Post]:
    return sorted(posts, key=post_sort_key)


def paginate(items: Sequence, page_size: int, base: str = "") -> list[Pager]:
    page_size = max(1, int(page_size))
    total = max(1, math.ceil(len(items) / page_size))
    pagers = []
    for number in range(1, total + 1):
        start = (number - 1) * page_size
        pagers.append(Pager(number=number, total=total, items=tuple(items[start : start + page_size]), base=base))
    return pagers


def group_by(posts: Iterable[Post], kind: str) -> list[Term]:
    """Group posts by tag or category.

    Terms whose names slugify to the same value share one listing page; the
    first name seen in sorted order labels it.
    """
    if kind not in TAXONOMIES:
        raise ValueError(f"Unknown taxonomy: {kind}")
    names: dict[str, str] = {}
    groups: dict[str, list[Post]] = {}
    for post in sort_posts(posts):
        for name in getattr(post, kind):
            slug = slugify(name)
            names.setdefault(slug, name)
            bucket = groups.setdefault(slug, [])
            if not bucket or bucket[-1] is not post:
                bucket.append(post)
    return [Term(name=names[slug], slug=slug, posts=tuple(groups[slug])) for slug in sorted(groups)]


def aggregate(posts: Iterable[Post]) -> dict[str, list[Term]]:
    posts = list(posts)
    return {kind: group_by(posts, kind) for kind in TAXONOMIES}
