from typing import Callable, List

from whosejunk.store import DocumentStore, Query, Subscription

ATTEMPTS = 'attempts'


def leaderboard_query(season: int, limit: int) -> Query:
    return Query(ATTEMPTS, where={'season': int(season)}, order_by='score', descending=True, limit=limit)


def rank(documents: List[dict]) -> List[dict]:
    """Attach 1-based positions; equal scores keep the store's order."""
    return [dict(doc, rank=i + 1) for i, doc in enumerate(documents)]


def top_attempts(store: DocumentStore, season: int, limit: int) -> List[dict]:
    return rank(store.query(leaderboard_query(season, limit)))


def subscribe(store: DocumentStore, season: int, limit: int,
              listener: Callable[[List[dict]], None]) -> Subscription:
    """Live top-N for one season. Cancel the returned subscription on teardown."""
    return store.subscribe(leaderboard_query(season, limit), lambda docs: listener(rank(docs)))
