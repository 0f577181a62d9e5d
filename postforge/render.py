from __future__ import annotations

import re
import shutil
from pathlib import Path

IMG_TAG_RE = re.compile(r"<img(?P<attrs>[^>]*?)(?P<close>\s*/?>)", re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
TEMPLATES_DIR = Path(__file__).parent / "templates"


def add_lazy_loading(html_text: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group("attrs")
        if re.search(r"\sloading\s*=", attrs, re.IGNORECASE):
            return match.group(0)
        return f'<img{attrs} loading="lazy"{match.group("close")}'

    return IMG_TAG_RE.sub(repl, html_text)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub(" ", html_text)


def render_template(template: str, **context: str) -> str:
    output = template
    late_keys = {"content", "sidebar"}
    for key, value in context.items():
        if key in late_keys:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in late_keys:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def read_template(project_root: Path, name: str = "base.html") -> str:
    override = project_root / "layouts" / name
    if override.exists():
        return override.read_text(encoding="utf-8")
    return (TEMPLATES_DIR / name).read_text(encoding="utf-8")


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_static(static_dir: Path, output_dir: Path) -> None:
    for item in static_dir.iterdir():
        dest = output_dir / item.name
        if item.is_dir():
            if dest.exists():
                shutil.rmtree(dest)
            shutil.copytree(item, dest)
        else:
            shutil.copy2(item, dest)
