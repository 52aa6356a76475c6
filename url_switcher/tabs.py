from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class TabDescriptor:
    """Read-only snapshot of one open browser tab."""

    id: int | str
    window_id: int | str | None = None
    url: str = ""
    title: str = ""
    active: bool = False
    fav_icon_url: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TabDescriptor:
        return cls(
            id=raw.get("id"),  # type: ignore[arg-type]
            window_id=raw.get("windowId"),
            url=str(raw.get("url") or ""),
            title=str(raw.get("title") or ""),
            active=bool(raw.get("active")),
            fav_icon_url=str(raw.get("favIconUrl") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "windowId": self.window_id,
            "url": self.url,
            "title": self.title,
            "active": self.active,
            "favIconUrl": self.fav_icon_url,
        }


class TabDirectory(Protocol):
    """Browser-side collaborator: enumerate, focus and open tabs.

    `activate` and `open_new` raise `TabDirectoryError` on failure.
    """

    def list_tabs(self) -> list[TabDescriptor]: ...

    def activate(self, tab_id: int | str, window_id: int | str | None) -> None: ...

    def open_new(self, url: str) -> int | str: ...


__all__ = ["TabDescriptor", "TabDirectory"]
