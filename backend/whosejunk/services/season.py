"""Season gate and season admin control.

The season is a single shared counter. Attempts are stamped with the season
they were played in, so advancing it re-opens play for everyone while the
earlier seasons' records stay untouched.
"""
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from whosejunk.models import attempt_key
from whosejunk.store import Conflict, DocumentStore

SEASONS = 'seasons'
SEASON_KEY = 'current'
ATTEMPTS = 'attempts'


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    season: int
    record: Optional[dict] = None

    def to_dict(self):
        return {
            'eligible': self.eligible,
            'season': self.season,
            'attempt': self.record,
        }


def ensure_season(store: DocumentStore, initial: int = 1) -> None:
    """Create the counter if it does not exist yet; an existing one wins."""
    result = store.create_only(SEASONS, SEASON_KEY, {'season': initial})
    if not isinstance(result, Conflict):
        current_app.logger.info(f"[season] counter created at {initial}")


def current_season(store: DocumentStore) -> int:
    doc = store.get_document(SEASONS, SEASON_KEY)
    if doc is None:
        ensure_season(store, int(current_app.config.get('INITIAL_SEASON', 1)))
        doc = store.get_document(SEASONS, SEASON_KEY)
    return int(doc['season'])


def find_attempt(store: DocumentStore, uid: str, season: int) -> Optional[dict]:
    return store.get_document(ATTEMPTS, attempt_key(season, uid))


def check_eligibility(store: DocumentStore, policy, uid: str, season: int) -> Eligibility:
    """Advisory check; the commit itself is what enforces one attempt."""
    record = find_attempt(store, uid, season)
    return Eligibility(eligible=policy.is_eligible(record, season), season=season, record=record)


def advance_season(store: DocumentStore) -> int:
    """Atomically move to the next season and return its number."""
    current_season(store)
    ack = store.increment_field(SEASONS, SEASON_KEY, 'season', 1)
    season = int(ack.document['season'])
    current_app.logger.info(f"[season-advance] now season={season}")
    return season
