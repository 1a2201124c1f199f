"""Attempt commit protocol.

A finished play-through's score is written to the leaderboard under the key
``{season}:{uid}``. Which write is used depends on the deployment's policy:

- single_attempt: create-only. The first write for a key wins; any later one
  (second tab, reload-and-resubmit, network retry) comes back as Rejected.
- best_score: the store raises the stored score to the new one only when it
  is higher. Max is commutative and idempotent, so duplicate or reordered
  commits converge.
"""
from dataclasses import dataclass
from typing import Optional, Union

from flask import current_app

from whosejunk.identity import Identity
from whosejunk.models import attempt_key
from whosejunk.store import SERVER_TIMESTAMP, Ack, Conflict, DocumentStore

ATTEMPTS = 'attempts'
ALREADY_SUBMITTED = 'already_submitted'


@dataclass(frozen=True)
class Rejected:
    reason: str
    key: str

    def to_dict(self):
        return {'error': self.reason, 'key': self.key}


CommitResult = Union[Ack, Rejected]


def _fields(identity: Identity, season: int, score: int) -> dict:
    return {
        'uid': identity.uid,
        'email': identity.email,
        'name': identity.name,
        'score': int(score),
        'season': int(season),
        'submitted_at': SERVER_TIMESTAMP,
    }


class SingleAttemptPolicy:
    name = 'single_attempt'
    leaderboard_limit = 50

    def is_eligible(self, record: Optional[dict], season: int) -> bool:
        return record is None

    def commit(self, store: DocumentStore, identity: Identity, season: int, score: int) -> CommitResult:
        key = attempt_key(season, identity.uid)
        result = store.create_only(ATTEMPTS, key, _fields(identity, season, score))
        if isinstance(result, Conflict):
            current_app.logger.info(f"[commit] rejected uid={identity.uid} season={season}: already submitted")
            return Rejected(ALREADY_SUBMITTED, key)
        current_app.logger.info(f"[commit] uid={identity.uid} season={season} score={score}")
        return result


class BestScorePolicy:
    name = 'best_score'
    leaderboard_limit = 20

    def is_eligible(self, record: Optional[dict], season: int) -> bool:
        return True

    def commit(self, store: DocumentStore, identity: Identity, season: int, score: int) -> CommitResult:
        key = attempt_key(season, identity.uid)
        fields = _fields(identity, season, score)
        new_score = fields.pop('score')
        ack = store.max_field(ATTEMPTS, key, 'score', new_score, fields)
        current_app.logger.info(
            f"[commit] uid={identity.uid} season={season} score={score} best={ack.document['score']}"
        )
        return ack


POLICIES = {
    SingleAttemptPolicy.name: SingleAttemptPolicy,
    BestScorePolicy.name: BestScorePolicy,
}


def get_policy(name: Optional[str] = None):
    name = name or current_app.config.get('LEADERBOARD_POLICY', SingleAttemptPolicy.name)
    try:
        return POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown leaderboard policy: {name}") from None
