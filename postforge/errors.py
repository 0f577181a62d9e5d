from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional


class ConfigError(Exception):
    """Raised when the site configuration file cannot be loaded."""


class BuildError(Exception):
    kind = "BuildError"
    fatal = False

    def __init__(self, message: str, path: Optional[Path | str] = None):
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else ""

    def __str__(self) -> str:
        return self.message

    def describe(self) -> str:
        prefix = f"{self.path}: " if self.path else ""
        return f"{prefix}{self.kind}: {self.message}"


class MalformedFrontMatter(BuildError):
    kind = "MalformedFrontMatter"


class MissingRequiredField(BuildError):
    kind = "MissingRequiredField"

    def __init__(self, field: str, path: Optional[Path | str] = None):
        super().__init__(f"required field '{field}' is missing", path)
        self.field = field


class DuplicateSlug(BuildError):
    kind = "DuplicateSlug"
    fatal = True

    def __init__(self, slug: str, paths: Iterable[Path | str]):
        self.slug = slug
        self.paths = sorted(str(path) for path in paths)
        super().__init__(f"slug '{slug}' is used by {', '.join(self.paths)}", self.paths[0] if self.paths else None)


class BrokenInternalLink(BuildError):
    kind = "BrokenInternalLink"

    def __init__(self, target: str, path: Optional[Path | str] = None):
        super().__init__(f"link target '{target}' does not match any page", path)
        self.target = target


class ErrorReport:
    def __init__(self) -> None:
        self.errors: list[BuildError] = []

    def add(self, error: BuildError) -> None:
        self.errors.append(error)

    def extend(self, errors: Iterable[BuildError]) -> None:
        self.errors.extend(errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __bool__(self) -> bool:
        return bool(self.errors)

    def __iter__(self):
        return iter(self.ordered())

    def ordered(self) -> list[BuildError]:
        return sorted(self.errors, key=lambda err: (err.path, err.kind, err.message))

    def of_kind(self, kind: type[BuildError]) -> list[BuildError]:
        return [err for err in self.ordered() if isinstance(err, kind)]

    def has_fatal(self, strict_links: bool = False) -> bool:
        for err in self.errors:
            if err.fatal:
                return True
            if strict_links and isinstance(err, BrokenInternalLink):
                return True
        return False

    def render(self) -> str:
        return "\n".join(err.describe() for err in self.ordered())
