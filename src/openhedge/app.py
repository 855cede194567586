"""Application context shared by every view."""

import logging
from dataclasses import dataclass

import httpx

from .config import Config
from .market.alphavantage import MarketDataClient
from .remote.auth import AuthClient, Session, SessionStore
from .remote.client import RemoteError, RestClient
from .session import SIGNED_IN, AppSession
from .storage.profiles import ProfileStore
from .ui.debounce import Scheduler, ThreadingScheduler

log = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Collaborators a view needs: remote store, auth session, market data."""

    config: Config
    rest: RestClient
    auth: AuthClient
    session: AppSession
    market: MarketDataClient
    profiles: ProfileStore
    scheduler: Scheduler

    def _on_auth_change(self, event: str, session: Session | None) -> None:
        if event != SIGNED_IN or session is None:
            return
        try:
            self.profiles.ensure_profile(session.user_id, session.email)
        except RemoteError as e:
            log.error("Error ensuring profile for %s: %s", session.user_id, e)

    def close(self) -> None:
        self.rest.close()
        self.auth.close()
        self.market.close()

    def __enter__(self) -> "AppContext":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def create_app(
    config: Config,
    transport: httpx.BaseTransport | None = None,
    market_transport: httpx.BaseTransport | None = None,
    scheduler: Scheduler | None = None,
) -> AppContext:
    """Wire up the collaborators for ``config``."""
    rest = RestClient(config, transport=transport)
    auth = AuthClient(config, transport=transport)
    session = AppSession(auth, SessionStore(config.session_file), rest)
    app = AppContext(
        config=config,
        rest=rest,
        auth=auth,
        session=session,
        market=MarketDataClient(config, transport=market_transport),
        profiles=ProfileStore(rest),
        scheduler=scheduler or ThreadingScheduler(),
    )
    session.subscribe(app._on_auth_change)
    return app
