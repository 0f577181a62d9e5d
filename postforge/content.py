from __future__ import annotations

import dataclasses as dc
import datetime as dt
import html as html_lib
import re
from pathlib import Path
from typing import Any, Optional

import yaml

try:
    import tomllib
except ImportError:  # pragma: no cover - Python < 3.11
    import tomli as tomllib

from .errors import MalformedFrontMatter, MissingRequiredField
from .utils import parse_bool

LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
DOUBLE_QUOTE_RE = re.compile(r"^(?P<indent>[ \t]*)>>(?!>)(?P<rest>.*)$")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")

FRONT_MATTER_FENCES = {"---": "yaml", "+++": "toml"}
REQUIRED_FIELDS = ("slug", "title", "date")
KNOWN_KEYS = {
    "slug",
    "title",
    "date",
    "lastmod",
    "tags",
    "categories",
    "image",
    "thumbnail",
    "keywords",
    "canonicalurl",
    "related",
    "description",
    "draft",
    "toc",
}


@dc.dataclass(frozen=True)
class RelatedLink:
    title: str
    path: str


@dc.dataclass
class Post:
    """A single Markdown article and its front matter.

    ``params`` keeps every front-matter key the generator does not interpret,
    so rendering a post back to text loses nothing. ``source`` is the file the
    post came from and is ignored by equality.
    """

    slug: str
    title: str
    date: dt.datetime
    body: str = ""
    lastmod: Optional[dt.datetime] = None
    tags: list[str] = dc.field(default_factory=list)
    categories: list[str] = dc.field(default_factory=list)
    image: Optional[str] = None
    thumbnail: Optional[str] = None
    keywords: list[str] = dc.field(default_factory=list)
    canonical_url: Optional[str] = None
    related: list[RelatedLink] = dc.field(default_factory=list)
    description: Optional[str] = None
    draft: bool = False
    toc: Optional[bool] = None
    params: dict[str, Any] = dc.field(default_factory=dict)
    source: Optional[str] = dc.field(default=None, compare=False)

    @property
    def updated(self) -> dt.datetime:
        return self.lastmod or self.date


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def split_front_matter(text: str, source: Optional[Path | str] = None) -> tuple[str, str, str]:
    """Split ``text`` into its fence kind, raw metadata block and body.

    The body is returned exactly as it appears after the closing fence line.
    """
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines(keepends=True)
    fence = lines[0].strip() if lines else ""
    if fence not in FRONT_MATTER_FENCES:
        raise MalformedFrontMatter("front matter block is missing", source)

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == fence:
            end = i
            break
    if end is None:
        raise MalformedFrontMatter(f"front matter block is not terminated by '{fence}'", source)
    return FRONT_MATTER_FENCES[fence], "".join(lines[1:end]), "".join(lines[end + 1 :])


def parse_front_matter(text: str, source: Optional[Path | str] = None) -> tuple[dict, str]:
    kind, meta_text, body = split_front_matter(text, source)
    try:
        if kind == "toml":
            meta = tomllib.loads(meta_text)
        else:
            meta = yaml.safe_load(meta_text)
    except (yaml.YAMLError, tomllib.TOMLDecodeError, ValueError) as exc:
        # out-of-range timestamps surface from PyYAML as ValueError
        raise MalformedFrontMatter(f"invalid {kind.upper()} front matter: {exc}", source) from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise MalformedFrontMatter("front matter must be a mapping", source)
    return {str(key).strip().lower(): value for key, value in meta.items()}, body


def _parse_string(meta: dict, key: str, source) -> Optional[str]:
    value = meta.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise MalformedFrontMatter(f"field '{key}' must be a string", source)
    return str(value).strip()


def _parse_strings(meta: dict, key: str, source) -> list[str]:
    value = meta.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        items = parse_list(value)
    elif isinstance(value, list):
        items = []
        for item in value:
            if isinstance(item, bool) or not isinstance(item, (str, int, float)):
                raise MalformedFrontMatter(f"field '{key}' must be a list of strings", source)
            items.append(str(item).strip())
    else:
        raise MalformedFrontMatter(f"field '{key}' must be a list", source)
    seen = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen


def _parse_datetime(meta: dict, key: str, source, time_zone: dt.tzinfo) -> Optional[dt.datetime]:
    value = meta.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, dt.date):
        parsed = dt.datetime.combine(value, dt.time())
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(text)
        except ValueError as exc:
            raise MalformedFrontMatter(f"field '{key}' is not a valid date: {value!r}", source) from exc
    else:
        raise MalformedFrontMatter(f"field '{key}' must be a date", source)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=time_zone)
    return parsed


def _parse_related(meta: dict, source) -> list[RelatedLink]:
    value = meta.get("related")
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedFrontMatter("field 'related' must be a list", source)
    links = []
    for item in value:
        if not isinstance(item, dict):
            raise MalformedFrontMatter("entries of 'related' must have a title and a path", source)
        title = item.get("title", "")
        path = item.get("path")
        if not isinstance(title, str) or not isinstance(path, str) or not path.strip():
            raise MalformedFrontMatter("entries of 'related' must have a title and a path", source)
        links.append(RelatedLink(title=title.strip(), path=path.strip()))
    return links


def _parse_slug(meta: dict, params: dict, source) -> Optional[str]:
    key = "slug" if meta.get("slug") not in (None, "") else "url"
    value = _parse_string(meta, key, source)
    if key == "url":
        params.pop("url", None)
    if value is None:
        return None
    slug = value.strip("/")
    if not slug:
        return None
    if "\\" in slug or any(part in ("", ".", "..") for part in slug.split("/")):
        raise MalformedFrontMatter(f"field '{key}' is not a valid path: {value!r}", source)
    return slug


def parse_post(
    text: str,
    source: Optional[Path | str] = None,
    time_zone: dt.tzinfo = dt.timezone.utc,
) -> Post:
    meta, body = parse_front_matter(text, source)
    params = {key: value for key, value in meta.items() if key not in KNOWN_KEYS}

    slug = _parse_slug(meta, params, source)
    title = _parse_string(meta, "title", source)
    date = _parse_datetime(meta, "date", source, time_zone)
    for field, value in zip(REQUIRED_FIELDS, (slug, title, date)):
        if not value:
            raise MissingRequiredField(field, source)

    image = _parse_string(meta, "image", source)
    if image is None and isinstance(meta.get("images"), list) and meta["images"]:
        first = meta["images"][0]
        image = first.strip() if isinstance(first, str) else None

    toc = meta.get("toc")
    draft = meta.get("draft", False)
    if not isinstance(draft, (bool, str, int)):
        raise MalformedFrontMatter("field 'draft' must be a boolean", source)

    return Post(
        slug=slug,
        title=title,
        date=date,
        body=body,
        lastmod=_parse_datetime(meta, "lastmod", source, time_zone),
        tags=_parse_strings(meta, "tags", source),
        categories=_parse_strings(meta, "categories", source),
        image=image or None,
        thumbnail=_parse_string(meta, "thumbnail", source) or None,
        keywords=_parse_strings(meta, "keywords", source),
        canonical_url=_parse_string(meta, "canonicalurl", source) or None,
        related=_parse_related(meta, source),
        description=_parse_string(meta, "description", source) or None,
        draft=parse_bool(draft),
        toc=None if toc is None else parse_bool(toc),
        params=params,
        source=str(source) if source is not None else None,
    )


def render_post(post: Post) -> str:
    """Serialize ``post`` back to YAML front matter followed by its body."""
    meta: dict[str, Any] = {
        "title": post.title,
        "slug": post.slug,
        "date": post.date.isoformat(),
    }
    if post.lastmod is not None:
        meta["lastmod"] = post.lastmod.isoformat()
    if post.draft:
        meta["draft"] = True
    if post.description is not None:
        meta["description"] = post.description
    if post.tags:
        meta["tags"] = list(post.tags)
    if post.categories:
        meta["categories"] = list(post.categories)
    if post.keywords:
        meta["keywords"] = list(post.keywords)
    if post.image is not None:
        meta["image"] = post.image
    if post.thumbnail is not None:
        meta["thumbnail"] = post.thumbnail
    if post.canonical_url is not None:
        meta["canonicalURL"] = post.canonical_url
    if post.toc is not None:
        meta["toc"] = post.toc
    if post.related:
        meta["related"] = [{"title": link.title, "path": link.path} for link in post.related]
    meta.update(post.params)
    header = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{header}---\n{post.body}"


def load_post(path: Path, time_zone: dt.tzinfo = dt.timezone.utc) -> Post:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedFrontMatter(f"file is not valid UTF-8: {exc}", path) from exc
    return parse_post(text, path, time_zone)


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        quote_match = DOUBLE_QUOTE_RE.match(line)
        if quote_match:
            rest = quote_match.group("rest").lstrip()
            if rest:
                line = f'{quote_match.group("indent")}> {rest}'
            else:
                line = f'{quote_match.group("indent")}>'
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            if not list_match.group("indent"):
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str, cjk: bool = False) -> int:
    text = html_lib.unescape(text)
    if not cjk:
        return len(text.split())
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    return cjk_count + len(text.split())

