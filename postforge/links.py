from __future__ import annotations

import posixpath
import re
from typing import Iterable, Optional

from .config import SiteConfig
from .content import Post
from .errors import BrokenInternalLink
from .taxonomy import TAXONOMIES, Term
from .utils import url_path

MD_LINK_RE = re.compile(r"!?\[[^\]]*\]\(\s*<?(?P<target>[^)\s>]+)>?(?:\s+[\"'][^\"']*[\"'])?\s*\)")
REF_LINK_RE = re.compile(r"^[ ]{0,3}\[[^\]]+\]:\s*<?(?P<target>[^\s>]+)>?", re.MULTILINE)
HTML_LINK_RE = re.compile(r"""\b(?:href|src)\s*=\s*["'](?P<target>[^"']+)["']""", re.IGNORECASE)
FENCED_CODE_RE = re.compile(r"^[ \t]*(?P<fence>`{3,}|~{3,}).*?^[ \t]*(?P=fence)[ \t]*$", re.MULTILINE | re.DOTALL)
INLINE_CODE_RE = re.compile(r"`[^`\n]*`")
PAGE_SUFFIX_RE = re.compile(r"(?:^|/)page/\d+$")
SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:", "#")


def extract_links(body: str) -> list[str]:
    text = FENCED_CODE_RE.sub("", body)
    text = INLINE_CODE_RE.sub("", text)
    targets = []
    for regex in (MD_LINK_RE, REF_LINK_RE, HTML_LINK_RE):
        targets.extend(match.group("target") for match in regex.finditer(text))
    return targets


def internal_path(target: str, post: Post, config: SiteConfig) -> Optional[str]:
    """Normalized site path for an intra-site link, or None for anything else.

    External URLs, anchors and links to static files (anything whose last
    segment has an extension) return None.
    """
    target = target.strip()
    if not target or target.lower().startswith(SKIP_SCHEMES):
        return None
    target = re.split(r"[?#]", target, maxsplit=1)[0]
    root = url_path(config.base_url)
    if target.startswith(config.base_url):
        path = "/" + target[len(config.base_url) :]
    elif "://" in target or target.startswith("//"):
        return None
    elif target.startswith("/"):
        path = target
        if root and (path == root or path.startswith(root + "/")):
            path = path[len(root) :] or "/"
    else:
        path = posixpath.join("/" + post.slug + "/", target)
    path = posixpath.normpath(path)
    last = path.rstrip("/").rsplit("/", 1)[-1]
    if "." in last:
        return None
    return path.strip("/")


def known_paths(posts: Iterable[Post], taxonomies: dict[str, list[Term]], config: SiteConfig) -> set[str]:
    paths = {"", config.section.strip("/")}
    paths.update(post.slug for post in posts)
    for kind in TAXONOMIES:
        paths.add(kind)
        paths.update(f"{kind}/{term.slug}" for term in taxonomies.get(kind, []))
    root = url_path(config.base_url)
    for entry in config.menu:
        url = entry.url
        if url.startswith(config.base_url):
            url = "/" + url[len(config.base_url) :]
        elif root and url.startswith(root + "/"):
            url = url[len(root) :]
        paths.add(url.strip("/"))
    return paths


def check_links(
    posts: Iterable[Post], taxonomies: dict[str, list[Term]], config: SiteConfig
) -> list[BrokenInternalLink]:
    posts = list(posts)
    valid = known_paths(posts, taxonomies, config)
    errors = []
    for post in posts:
        # related paths are site paths even without a leading slash
        related = [link.path if "://" in link.path or link.path.startswith("/") else "/" + link.path for link in post.related]
        targets = extract_links(post.body) + related
        reported = set()
        for target in targets:
            path = internal_path(target, post, config)
            if path is None:
                continue
            lookup = PAGE_SUFFIX_RE.sub("", path)
            if lookup in valid or path in valid or target in reported:
                continue
            reported.add(target)
            errors.append(BrokenInternalLink(target, post.source))
    return errors
