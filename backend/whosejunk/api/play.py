from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
import threading
from typing import Dict

from whosejunk.exceptions import NoActiveSession
from whosejunk.services.attempts import get_policy
from whosejunk.services.rounds import RoundSession
from whosejunk.services.season import check_eligibility, current_season
from whosejunk.store import get_store


play = Blueprint('play', __name__)

# One in-memory play-through per signed-in uid (runtime-only)
_sessions: Dict[str, RoundSession] = {}
_sessions_lock = threading.Lock()


def get_round_session(uid: str) -> RoundSession:
    with _sessions_lock:
        session = _sessions.get(uid)
    if session is None:
        raise NoActiveSession(uid)
    return session


def discard_session_on_sign_out(uid, identity) -> None:
    if identity is None:
        with _sessions_lock:
            _sessions.pop(uid, None)


@play.route('/start', methods=['POST'])
@login_required
def start():
    store = get_store()
    season = current_season(store)
    gate = check_eligibility(store, get_policy(), current_user.uid, season)
    if not gate.eligible:
        return jsonify(dict(gate.to_dict(), error='already_submitted',
                            message='You have already played this season.')), 409
    session = RoundSession(current_app.extensions['round_catalog'], season=season)
    with _sessions_lock:
        _sessions[current_user.uid] = session
    current_app.logger.info(f"[play-start] uid={current_user.uid} season={season}")
    return jsonify(session.to_dict()), 201


@play.route('/state', methods=['GET'])
@login_required
def state():
    return jsonify(get_round_session(current_user.uid).to_dict())


@play.route('/guess', methods=['POST'])
@login_required
def guess():
    data = request.get_json(silent=True) or {}
    session = get_round_session(current_user.uid)
    result = session.submit_guess(data.get('guess_object'), data.get('guess_owner'))
    return jsonify(dict(session.to_dict(), result=result.to_dict()))


@play.route('/reveal', methods=['POST'])
@login_required
def reveal():
    session = get_round_session(current_user.uid)
    session.reveal()
    return jsonify(session.to_dict())


@play.route('/advance', methods=['POST'])
@login_required
def advance():
    session = get_round_session(current_user.uid)
    session.advance()
    if session.finished:
        current_app.logger.info(
            f"[play-finish] uid={current_user.uid} score={session.score}/{session.total}"
        )
    return jsonify(session.to_dict())


@play.route('/retry', methods=['POST'])
@login_required
def retry():
    session = get_round_session(current_user.uid)
    session.retry()
    return jsonify(session.to_dict())


@play.route('/restart', methods=['POST'])
@login_required
def restart():
    # Local replay only; committing stays a separate, explicit request
    session = get_round_session(current_user.uid)
    session.restart()
    return jsonify(session.to_dict())
