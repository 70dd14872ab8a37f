"""Navigation links back into the note application."""

from __future__ import annotations

from dataclasses import dataclass

WEB_APP_URL = "https://roamresearch.com/#/app"
DESKTOP_APP_URL = "roam://#/app"


@dataclass(frozen=True)
class NavigationLink:
    web_url: str
    desktop_url: str

    def markdown(self, desktop: bool = False) -> str:
        if desktop:
            return f"[Open]({self.desktop_url})"
        return f"[Web]({self.web_url}) | [Desktop]({self.desktop_url})"


def page_url(uid: str, graph_name: str | None) -> NavigationLink | None:
    """Link to a page, or None when no graph name is known."""
    if not graph_name or not uid:
        return None
    return NavigationLink(
        web_url=f"{WEB_APP_URL}/{graph_name}/page/{uid}",
        desktop_url=f"{DESKTOP_APP_URL}/{graph_name}/page/{uid}",
    )


# Blocks are addressed through the same route as pages.
block_url = page_url
