from __future__ import annotations

import dataclasses as dc
import datetime as dt
import json
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

try:
    import tomllib as toml
except ImportError:  # pragma: no cover - Python < 3.11
    import tomli as toml

from .errors import ConfigError
from .utils import parse_bool, parse_int

# Only one comment integration is wired into pages; the first configured wins.
COMMENT_SYSTEMS = ("disqus", "utterances", "gitalk", "gitment", "valine", "changyan", "livere")
COMMENT_CREDENTIALS = {
    "utterances": ("owner", "repo"),
    "gitalk": ("owner", "repo", "clientid", "clientsecret"),
    "gitment": ("owner", "repo", "clientid", "clientsecret"),
    "valine": ("appid", "appkey"),
}
FLAT_COMMENT_KEYS = {
    "disqus": ("disqusshortname",),
    "changyan": ("changyanappid", "changyanappkey"),
    "livere": ("livereuid",),
}


@dc.dataclass(frozen=True)
class MenuEntry:
    name: str
    url: str
    weight: int = 0
    identifier: str = ""


@dc.dataclass(frozen=True)
class CommentSystem:
    name: str
    settings: dict


@dc.dataclass(frozen=True)
class SiteConfig:
    """Site-wide settings, loaded once per generation run."""

    base_url: str
    title: str = ""
    language_code: str = "en"
    theme: str = ""
    description: str = ""
    author: str = ""
    keywords: tuple[str, ...] = ()
    default_images: tuple[str, ...] = ()
    summary_length: int = 70
    pager_size: int = 10
    archive_paginate: int = 10
    menu: tuple[MenuEntry, ...] = ()
    toc: bool = True
    lazy_loading: bool = False
    comments: Optional[CommentSystem] = None
    social: tuple[tuple[str, str], ...] = ()
    outputs: dict = dc.field(default_factory=dict)
    public_cdn: tuple[str, ...] = ()
    custom_css: tuple[str, ...] = ()
    custom_js: tuple[str, ...] = ()
    google_analytics: str = ""
    sitemap_changefreq: str = ""
    sitemap_priority: Optional[float] = None
    sitemap_filename: str = "sitemap.xml"
    enable_robots_txt: bool = False
    has_cjk_language: bool = False
    highlight_line_numbers: bool = False
    highlight_guess_lang: bool = False
    time_zone: dt.tzinfo = dt.timezone.utc
    since: str = ""
    copyright: str = ""
    content_dir: str = "content"
    publish_dir: str = "public"
    static_dir: str = "static"
    build_drafts: bool = False
    rss_limit: int = 0
    section: str = "post"

    def wants(self, kind: str, output_format: str) -> bool:
        formats = self.outputs.get(kind, ())
        return output_format.lower() in formats


DEFAULT_OUTPUTS = {
    "home": ("html", "rss"),
    "page": ("html",),
    "section": ("html", "rss"),
    "taxonomy": ("html", "rss"),
}


def load_config(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {path}")
    return data


def _lower_keys(value: Any) -> dict:
    if not isinstance(value, dict):
        return {}
    return {str(key).lower(): item for key, item in value.items()}


def _strings(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if str(item).strip())
    return ()


def _menu(data: dict) -> tuple[MenuEntry, ...]:
    menus = _lower_keys(data.get("menu"))
    entries = []
    for item in menus.get("main") or []:
        item = _lower_keys(item)
        name = str(item.get("name") or "").strip()
        if not name:
            continue
        entries.append(
            MenuEntry(
                name=name,
                url=str(item.get("url") or "/"),
                weight=parse_int(item.get("weight"), 0),
                identifier=str(item.get("identifier") or ""),
            )
        )
    return tuple(sorted(entries, key=lambda entry: (entry.weight, entry.name.lower())))


def _outputs(data: dict) -> dict:
    configured = _lower_keys(data.get("outputs"))
    outputs = dict(DEFAULT_OUTPUTS)
    for kind, formats in configured.items():
        outputs[kind] = tuple(item.lower() for item in _strings(formats))
    return outputs


def active_comments(params: dict) -> Optional[CommentSystem]:
    """Pick the single comment integration that gets wired into post pages."""
    params = _lower_keys(params)
    for name in COMMENT_SYSTEMS:
        if name in FLAT_COMMENT_KEYS:
            settings = {key: str(params.get(key) or "").strip() for key in FLAT_COMMENT_KEYS[name]}
            if all(settings.values()):
                return CommentSystem(name, settings)
            continue
        table = _lower_keys(params.get(name))
        if not table:
            continue
        if "enable" in table and not parse_bool(table["enable"]):
            continue
        values = [str(table.get(key) or "").strip() for key in COMMENT_CREDENTIALS[name]]
        if all(values):
            return CommentSystem(name, {key: str(value) for key, value in table.items() if key != "enable"})
    return None


def _line_numbers(options: Any) -> bool:
    for option in str(options or "").split(","):
        key, _, value = option.partition("=")
        if key.strip().lower() == "linenos":
            value = value.strip().lower()
            return value not in {"false", "0", "no", "off"}
    return False


def _priority(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        priority = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid sitemap priority in config: {value!r}") from exc
    if not 0.0 <= priority <= 1.0:
        raise ConfigError(f"Sitemap priority must be between 0.0 and 1.0: {value!r}")
    return priority


def _time_zone(value: Any) -> dt.tzinfo:
    name = str(value or "").strip()
    if not name or name.upper() == "UTC":
        return dt.timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown timeZone in config: {name}") from exc


def site_config(data: dict, **overrides: Any) -> SiteConfig:
    """Build a ``SiteConfig`` from a Hugo-style config mapping.

    Keyword overrides replace the resulting fields, which is how command
    line flags take precedence over the file.
    """
    top = _lower_keys(data)
    params = _lower_keys(top.get("params"))
    pagination = _lower_keys(top.get("pagination"))
    sitemap = _lower_keys(top.get("sitemap"))
    cdn = _lower_keys(params.get("publiccdn"))

    base_url = str(overrides.pop("base_url", None) or top.get("baseurl") or "/").strip()
    if not base_url.endswith("/"):
        base_url += "/"

    pager_size = parse_int(pagination.get("pagersize", top.get("paginate")), 10)
    pager_size = max(1, pager_size)
    archive_paginate = max(1, parse_int(params.get("archivepaginate"), pager_size))

    cdn_snippets: tuple[str, ...] = ()
    if parse_bool(cdn.get("enable")):
        cdn_snippets = tuple(str(value) for key, value in cdn.items() if key != "enable" and str(value).strip())

    social = _lower_keys(params.get("social"))
    social_links = tuple((key, str(value)) for key, value in sorted(social.items()) if str(value).strip())

    priority = sitemap.get("priority")
    values = dict(
        base_url=base_url,
        title=str(top.get("title") or ""),
        language_code=str(top.get("languagecode") or "en"),
        theme=str(top.get("theme") or ""),
        description=str(params.get("description") or ""),
        author=str(params.get("author") or ""),
        keywords=_strings(params.get("keywords")),
        default_images=_strings(params.get("images")),
        summary_length=max(1, parse_int(top.get("summarylength"), 70)),
        pager_size=pager_size,
        archive_paginate=archive_paginate,
        menu=_menu(top),
        toc=parse_bool(params.get("toc", True)),
        lazy_loading=parse_bool(params.get("lazyloading")),
        comments=active_comments(params),
        social=social_links,
        outputs=_outputs(top),
        public_cdn=cdn_snippets,
        custom_css=_strings(params.get("customcss")),
        custom_js=_strings(params.get("customjs")),
        google_analytics=str(params.get("googleanalytics") or top.get("googleanalytics") or ""),
        sitemap_changefreq=str(sitemap.get("changefreq") or ""),
        sitemap_priority=_priority(priority),
        sitemap_filename=str(sitemap.get("filename") or "sitemap.xml"),
        enable_robots_txt=parse_bool(top.get("enablerobotstxt")),
        has_cjk_language=parse_bool(top.get("hascjklanguage")),
        highlight_line_numbers=_line_numbers(top.get("pygmentsoptions")),
        highlight_guess_lang=parse_bool(top.get("pygmentscodefencesguesssyntax")),
        time_zone=_time_zone(top.get("timezone")),
        since=str(params.get("since") or ""),
        copyright=str(top.get("copyright") or ""),
        content_dir=str(top.get("contentdir") or "content"),
        publish_dir=str(top.get("publishdir") or "public"),
        static_dir=str(top.get("staticdir") or "static"),
        build_drafts=parse_bool(top.get("builddrafts")),
        rss_limit=max(0, parse_int(_lower_keys(_lower_keys(top.get("services")).get("rss")).get("limit", top.get("rsslimit")), 0)),
    )
    values.update({key: value for key, value in overrides.items() if value is not None})
    return SiteConfig(**values)
