"""Round engine: one player's play-through of the round catalog.

A session walks an ordered list of rounds. Each round goes
UNANSWERED -> SUBMITTED -> REVEALED and the session goes
PLAYING -> FINISHED when advanced past the last round.
"""
import json
import os
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set

from whosejunk.exceptions import CatalogError, InvalidRoundTransition


DEFAULT_CATALOG = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'data', 'rounds.json')


class RoundState(str, Enum):
    UNANSWERED = 'unanswered'
    SUBMITTED = 'submitted'
    REVEALED = 'revealed'


class SessionState(str, Enum):
    PLAYING = 'playing'
    FINISHED = 'finished'


class RoundAction(str, Enum):
    SUBMIT = 'submit'
    REVEAL = 'reveal'
    ADVANCE = 'advance'
    RETRY = 'retry'


# {round_state: {action: next_round_state}}; ADVANCE moves on to a fresh round
TRANSITIONS = {
    RoundState.UNANSWERED: {
        RoundAction.SUBMIT: RoundState.SUBMITTED,
        RoundAction.ADVANCE: RoundState.UNANSWERED,
        RoundAction.RETRY: RoundState.UNANSWERED,
    },
    RoundState.SUBMITTED: {
        RoundAction.SUBMIT: RoundState.SUBMITTED,
        RoundAction.REVEAL: RoundState.REVEALED,
        RoundAction.ADVANCE: RoundState.UNANSWERED,
        RoundAction.RETRY: RoundState.UNANSWERED,
    },
    RoundState.REVEALED: {
        RoundAction.SUBMIT: RoundState.REVEALED,
        RoundAction.REVEAL: RoundState.REVEALED,
        RoundAction.ADVANCE: RoundState.UNANSWERED,
        RoundAction.RETRY: RoundState.UNANSWERED,
    },
}


@dataclass(frozen=True)
class RoundDefinition:
    id: str
    prompt_asset: str
    reveal_asset: str
    answer_object: str
    answer_owner: str

    @classmethod
    def from_dict(cls, data: dict) -> 'RoundDefinition':
        try:
            return cls(
                id=str(data['id']),
                prompt_asset=data['prompt_asset'],
                reveal_asset=data['reveal_asset'],
                answer_object=data['answer_object'],
                answer_owner=data['answer_owner'],
            )
        except (KeyError, TypeError) as exc:
            raise CatalogError(f"Malformed round definition {data!r}: missing {exc}") from exc


@dataclass(frozen=True)
class RoundResult:
    correct_object: bool
    correct_owner: bool

    @property
    def correct(self) -> bool:
        return self.correct_object and self.correct_owner

    def to_dict(self):
        return {
            'correct_object': self.correct_object,
            'correct_owner': self.correct_owner,
            'correct': self.correct,
        }


def load_rounds(path: Optional[str] = None) -> List[RoundDefinition]:
    """Load the ordered round catalog from JSON."""
    path = path or DEFAULT_CATALOG
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        raise CatalogError(f"Cannot read round catalog {path}: {exc}") from exc
    if isinstance(raw, dict):
        raw = raw.get('rounds')
    if not isinstance(raw, list) or not raw:
        raise CatalogError(f"Round catalog {path} has no rounds")
    rounds = [RoundDefinition.from_dict(item) for item in raw]
    ids = [r.id for r in rounds]
    if len(set(ids)) != len(ids):
        raise CatalogError(f"Round catalog {path} has duplicate ids")
    return rounds


def normalize(text: Optional[str]) -> str:
    return (text or '').strip().casefold()


class RoundSession:
    """
    Local state of one play-through.

    Attributes:
        current_index: Index of the round being played
        score: Rounds answered fully correctly, each counted once
        round_state: State of the current round
        state: PLAYING or FINISHED
        season: Season the play-through was started in
        committed: Whether this play-through's score was already recorded
    """

    def __init__(self, rounds: List[RoundDefinition], season: Optional[int] = None):
        if not rounds:
            raise CatalogError('A session needs at least one round')
        self.rounds = list(rounds)
        self.season = season
        self.restart()

    # ---- read-only views ----

    @property
    def current(self) -> RoundDefinition:
        return self.rounds[self.current_index]

    @property
    def total(self) -> int:
        return len(self.rounds)

    @property
    def submitted(self) -> bool:
        return self.round_state in (RoundState.SUBMITTED, RoundState.REVEALED)

    @property
    def revealed(self) -> bool:
        return self.round_state == RoundState.REVEALED

    @property
    def finished(self) -> bool:
        return self.state == SessionState.FINISHED

    @property
    def is_last_round(self) -> bool:
        return self.current_index == self.total - 1

    # ---- transitions ----

    def _check(self, action: RoundAction) -> RoundState:
        if self.finished:
            raise InvalidRoundTransition(f"Cannot {action.value}: the game is finished")
        allowed = TRANSITIONS[self.round_state]
        if action not in allowed:
            raise InvalidRoundTransition(
                f"Cannot {action.value} while the round is {self.round_state.value}"
            )
        return allowed[action]

    def _reset_round(self) -> None:
        self.guess_object = ''
        self.guess_owner = ''
        self.round_state = RoundState.UNANSWERED
        self.scored_this_round = False
        self.result: Optional[RoundResult] = None

    def submit_guess(self, object_guess: Optional[str], owner_guess: Optional[str]) -> RoundResult:
        next_state = self._check(RoundAction.SUBMIT)
        if self.submitted:
            # Answers are locked once submitted
            return self.result
        current = self.current
        result = RoundResult(
            correct_object=normalize(object_guess) == normalize(current.answer_object),
            correct_owner=normalize(owner_guess) == normalize(current.answer_owner),
        )
        self.guess_object = object_guess or ''
        self.guess_owner = owner_guess or ''
        self.result = result
        self.round_state = next_state
        if result.correct and self.current_index not in self._scored_rounds:
            self._scored_rounds.add(self.current_index)
            self.score += 1
            self.scored_this_round = True
        return result

    def reveal(self) -> None:
        self.round_state = self._check(RoundAction.REVEAL)

    def advance(self) -> None:
        self._check(RoundAction.ADVANCE)
        if self.is_last_round:
            self.state = SessionState.FINISHED
            return
        self.current_index += 1
        self._reset_round()

    def retry(self) -> None:
        self._check(RoundAction.RETRY)
        self._reset_round()

    def restart(self) -> None:
        self.current_index = 0
        self.score = 0
        self.state = SessionState.PLAYING
        self._scored_rounds: Set[int] = set()
        self.committed = False
        self._reset_round()

    def to_dict(self):
        current = self.current
        payload = {
            'round': self.current_index + 1,
            'total_rounds': self.total,
            'round_id': current.id,
            'round_state': self.round_state.value,
            'state': self.state.value,
            'finished': self.finished,
            'score': self.score,
            'season': self.season,
            'committed': self.committed,
            'submitted': self.submitted,
            'revealed': self.revealed,
            'scored_this_round': self.scored_this_round,
            'image': current.reveal_asset if self.revealed else current.prompt_asset,
            'guess_object': self.guess_object,
            'guess_owner': self.guess_owner,
            'result': self.result.to_dict() if self.result else None,
        }
        if self.submitted:
            payload['answer_object'] = current.answer_object
            payload['answer_owner'] = current.answer_owner
        return payload
