# stitchquote/domain/media.py
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Set

IMAGE_URL_RE = re.compile(
    r"^https?://\S+?\.(?:jpe?g|png|webp|gif|heic|heif)(?:[?#]\S*)?$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class MediaReference:
    url: str
    path: str  # where in the record it was found, e.g. "extra.gallery[0].src"


def is_image_url(value: Any) -> bool:
    return isinstance(value, str) and bool(IMAGE_URL_RE.match(value.strip()))


def parse_json_value(value: Any) -> Any:
    """Decode JSON that a driver handed back as text; other values pass through."""
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        text = value.strip()
        if text[:1] in ("[", "{"):
            try:
                return json.loads(text)
            except ValueError:
                return value
    return value


def _child_path(base: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{base}[{key}]"
    return f"{base}.{key}" if base else str(key)


def extract_media_references(
    value: Any,
    *,
    skip_keys: Iterable[str] = (),
    root: str = "",
) -> List[MediaReference]:
    """
    Walk an arbitrary JSON-like value and collect http(s) image URLs.

    Strings holding encoded JSON are decoded and walked too. Containers that
    were already visited are not descended again, so self-referencing
    structures terminate. URLs are de-duplicated; the first path wins.
    """
    skip: Set[str] = set(skip_keys)
    visited: Set[int] = set()
    seen_urls: Set[str] = set()
    found: List[MediaReference] = []

    def walk(node: Any, path: str) -> None:
        node = parse_json_value(node)

        if isinstance(node, str):
            url = node.strip()
            if is_image_url(url) and url not in seen_urls:
                seen_urls.add(url)
                found.append(MediaReference(url=url, path=path or "$"))
            return

        if isinstance(node, dict):
            if id(node) in visited:
                return
            visited.add(id(node))
            for key, child in node.items():
                if key in skip:
                    continue
                walk(child, _child_path(path, key))
            return

        if isinstance(node, (list, tuple)):
            if id(node) in visited:
                return
            visited.add(id(node))
            for idx, child in enumerate(node):
                walk(child, _child_path(path, idx))

    walk(value, root)
    return found


def first_url(item: Any) -> Optional[str]:
    """`{"url": ...}` object or bare URL string -> URL, else None."""
    if isinstance(item, str):
        url = item.strip()
        return url or None
    if isinstance(item, dict):
        url = str(item.get("url") or "").strip()
        return url or None
    return None
