from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

_FALLBACK_TEMPLATE = {"title": "{kind}", "content": "{analysis_name}"}


@dataclass(frozen=True)
class MessageCatalog:
    """Status labels and notification templates loaded from YAML."""

    status_labels: dict[str, str]
    templates: dict[str, dict[str, str]]
    preview_length: int = 50

    def status_label(self, status: str) -> str:
        return self.status_labels.get(status, status)

    def render(self, kind: str, **values: object) -> tuple[str, str]:
        template = self.templates.get(kind, _FALLBACK_TEMPLATE)
        context = {"kind": kind, **values}
        return template["title"].format(**context), template["content"].format(**context)

    def preview(self, text: str) -> str:
        if len(text) > self.preview_length:
            return f"{text[: self.preview_length]}..."
        return text


def load_catalog(path: Path | None = None) -> MessageCatalog:
    path = path or CONFIG_DIR / "notifications.yaml"
    if not path.exists():
        return MessageCatalog(status_labels={}, templates={})
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    return MessageCatalog(
        status_labels=dict(data.get("status_labels") or {}),
        templates={key: dict(value) for key, value in (data.get("templates") or {}).items()},
        preview_length=int(data.get("message_preview_length") or 50),
    )


@lru_cache(maxsize=1)
def default_catalog() -> MessageCatalog:
    return load_catalog()
