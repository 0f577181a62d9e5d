from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .config import load_config
from .errors import ConfigError
from .pipeline import BuildOptions, BuildResult, build_site
from .utils import parse_bool, parse_int


def report_errors(result: BuildResult) -> None:
    if not result.report:
        return
    fatal = result.failed
    heading = "Build failed" if fatal else "Build finished with problems"
    print(f"{heading}: {len(result.report)} error(s)", file=sys.stderr)
    print(result.report.render(), file=sys.stderr)


def build_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    build = config.get("build") if isinstance(config.get("build"), dict) else {}

    def cfg_value(key: str, default: object) -> object:
        value = build.get(key)
        return default if value is None else value

    def cfg_bool(key: str, default: bool) -> bool:
        value = cfg_value(key, default)
        return parse_bool(value) if value is not None else default

    def cfg_int(key: str, default: int) -> int:
        return parse_int(cfg_value(key, default), default)

    parser = argparse.ArgumentParser(prog="postforge", description="Static blog generator for Markdown posts.")
    parser.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--content", default=None, help="Directory containing Markdown posts (default: contentDir).")
    parser.add_argument("--output", default=None, help="Output directory for the site (default: publishDir).")
    parser.add_argument("--static", default=None, help="Directory of static assets copied verbatim (default: staticDir).")
    parser.add_argument("--base-url", default=None, help="Override baseURL from the config file.")
    parser.add_argument(
        "--workers",
        default=cfg_int("workers", 0),
        type=int,
        help="Number of worker threads for parsing/rendering (0 = auto).",
    )
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("clean", False),
        help="Remove the output directory before writing.",
    )
    parser.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include posts marked as drafts (default: buildDrafts).",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Parse and validate everything without writing output.",
    )
    parser.add_argument(
        "--strict-links",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("strict_links", False),
        help="Treat broken internal links as fatal.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default="config.toml")
    pre_args, _ = pre_parser.parse_known_args(argv)
    config_path = Path(pre_args.config)
    config = {}
    if config_path.exists():
        try:
            config = load_config(config_path)
        except ConfigError as exc:
            print(exc, file=sys.stderr)
            return 1

    args = build_parser(config, pre_args.config).parse_args(argv)
    options = BuildOptions(
        config_path=Path(args.config),
        content_dir=Path(args.content) if args.content else None,
        output_dir=Path(args.output) if args.output else None,
        static_dir=Path(args.static) if args.static else None,
        base_url=args.base_url,
        build_drafts=args.drafts,
        workers=args.workers,
        clean=args.clean,
        check_only=args.check,
        strict_links=args.strict_links,
    )

    start = time.perf_counter()
    try:
        result = build_site(options)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start

    report_errors(result)
    if result.failed:
        return 1
    print(f"Processed {len(result.posts)} posts into {len(result.pages)} pages in {elapsed:.2f}s.")
    if result.written:
        print(f"Site generated in: {result.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
