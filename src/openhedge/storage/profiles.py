"""User profile document storage (watchlist/portfolio).

The profile row holds a free-form JSON document under ``user_details`` whose
``portfolio`` key is the list of watchlist positions. Every write replaces the
whole document: there is no concurrency token and no server-side append, so
two clients editing at once race and the last writer wins.
"""

import logging
from datetime import datetime, timezone

from ..remote.client import RestClient
from .models import PortfolioEntry

log = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"


def default_user_details(email: str | None = None) -> dict:
    """Default document for a newly created profile."""
    return {
        "email": email,
        "portfolio": [],
        "created_at": datetime.now(timezone.utc).isoformat(),
    }


class ProfileStore:
    """Read-modify-write access to one user's profile document."""

    def __init__(self, rest: RestClient) -> None:
        self.rest = rest

    def fetch_details(self, user_id: str) -> dict:
        """
        Fetch the ``user_details`` document.

        Raises:
            RemoteError: If the profile does not exist or the query fails
        """
        row = (
            self.rest.from_(PROFILES_TABLE)
            .select("user_details")
            .eq("id", user_id)
            .single()
            .execute()
        )
        return (row or {}).get("user_details") or {}

    def ensure_profile(self, user_id: str, email: str | None = None) -> bool:
        """
        Create the profile row if it does not exist yet.

        This is check-then-insert, not an atomic upsert: two first logins
        racing each other can both see "missing" and both insert.

        Returns:
            True if a profile was created
        """
        existing = (
            self.rest.from_(PROFILES_TABLE).select("id").eq("id", user_id).maybe_single().execute()
        )
        if existing:
            return False

        self.rest.from_(PROFILES_TABLE).insert(
            {"id": user_id, "user_details": default_user_details(email)}
        ).execute()
        log.info("Created profile for user %s", user_id)
        return True

    def get_portfolio(self, user_id: str) -> list[PortfolioEntry]:
        details = self.fetch_details(user_id)
        return [PortfolioEntry.from_dict(p) for p in details.get("portfolio") or []]

    def _write(self, user_id: str, details: dict) -> None:
        self.rest.from_(PROFILES_TABLE).update({"user_details": details}).eq("id", user_id).execute()

    def append_position(self, user_id: str, entry: PortfolioEntry) -> list[PortfolioEntry]:
        """
        Re-read the document, append ``entry`` and write the whole document back.

        Returns:
            The portfolio as written
        """
        details = self.fetch_details(user_id)
        portfolio = list(details.get("portfolio") or [])
        portfolio.append(entry.to_dict())
        self._write(user_id, {**details, "portfolio": portfolio})
        return [PortfolioEntry.from_dict(p) for p in portfolio]

    def replace_portfolio(self, user_id: str, entries: list[PortfolioEntry]) -> None:
        """Re-read the document and overwrite its portfolio with ``entries``."""
        details = self.fetch_details(user_id)
        self._write(user_id, {**details, "portfolio": [e.to_dict() for e in entries]})
