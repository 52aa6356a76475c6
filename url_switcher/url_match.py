"""URL equivalence used to decide whether an open tab "is" the requested URL."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import TypeVar

from .tabs import TabDescriptor

_SCHEME_RE = re.compile(r"^https?://")
_WWW_RE = re.compile(r"^www\.")
_FRAGMENT_RE = re.compile(r"#.*$", re.DOTALL)

T = TypeVar("T", bound=TabDescriptor)


def _normalize_once(url: str) -> str:
    s = url.lower()
    s = _SCHEME_RE.sub("", s, count=1)
    s = _WWW_RE.sub("", s, count=1)
    if s.endswith("/"):
        s = s[:-1]
    return _FRAGMENT_RE.sub("", s, count=1)


def normalize_url(url: str | None) -> str:
    """Lowercase, drop http(s)://, www., one trailing slash and the fragment.

    The steps are repeated until nothing changes so that normalizing twice is a no-op
    (e.g. "a.com/#x/" needs a second pass to lose the slash exposed by the fragment).
    """
    if not url:
        return ""
    current = str(url)
    while True:
        nxt = _normalize_once(current)
        if nxt == current:
            return nxt
        current = nxt


def urls_match(candidate: str | None, target: str | None) -> bool:
    """Equal after normalization, or one a prefix of the other.

    Prefix matching in either direction means "a.com" also matches "a.com.evil.com";
    kept as observed behaviour. An empty URL is a prefix of every URL and so matches anything.
    """
    a = normalize_url(candidate)
    b = normalize_url(target)
    return a == b or a.startswith(b) or b.startswith(a)


def find_best_match(tabs: Iterable[T], target: str | None) -> T | None:
    """First tab (directory order) equivalent to `target`; None means open a new tab."""
    for tab in tabs:
        if urls_match(tab.url, target):
            return tab
    return None


__all__ = ["find_best_match", "normalize_url", "urls_match"]
