"""Base class for page-level views."""

import logging

from rich.console import RenderableType
from rich.text import Text

from ..app import AppContext
from ..remote.auth import Session
from ..session import Subscription
from ..ui.search import SearchBox

log = logging.getLogger(__name__)


class View:
    """A page: owns its state, talks to the collaborators, renders itself.

    Subclasses create their search boxes through ``_search_box`` and their
    auth subscription through ``_watch_session`` so that ``close()`` can
    release both.
    """

    title = ""

    def __init__(self, app: AppContext) -> None:
        self.app = app
        self.config = app.config
        self.redirect: str | None = None
        self._boxes: list[SearchBox] = []
        self._subscription: Subscription | None = None

    def _search_box(self, fetch, delay: float, **kwargs) -> SearchBox:
        box = SearchBox(fetch, delay, scheduler=self.app.scheduler, **kwargs)
        self._boxes.append(box)
        return box

    def _watch_session(self) -> Session | None:
        """Subscribe to auth changes and return the current session."""
        self._subscription = self.app.session.subscribe(self.on_auth_change)
        return self.app.session.get_session()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every search box of the view has settled."""
        return all(box.wait_idle(timeout) for box in self._boxes)

    def on_auth_change(self, event: str, session: Session | None) -> None:
        pass

    def render(self) -> RenderableType:
        return Text(self.title)

    def close(self) -> None:
        for box in self._boxes:
            box.close()
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
