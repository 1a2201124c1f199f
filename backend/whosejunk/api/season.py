from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
import threading
from typing import Set

from whosejunk import socketio
from whosejunk.api.play import get_round_session
from whosejunk.exceptions import InvalidRoundTransition
from whosejunk.identity import current_identity, is_admin
from whosejunk.services.attempts import Rejected, get_policy
from whosejunk.services.leaderboard import top_attempts
from whosejunk.services.season import advance_season, check_eligibility, current_season
from whosejunk.store import get_store


season = Blueprint('season', __name__)

# uids with a commit request currently being processed
_commits_in_flight: Set[str] = set()
_commits_lock = threading.Lock()


@season.route('', methods=['GET'])
@login_required
def get_season():
    store = get_store()
    policy = get_policy()
    current = current_season(store)
    gate = check_eligibility(store, policy, current_user.uid, current)
    payload = gate.to_dict()
    payload['policy'] = policy.name
    payload['is_admin'] = is_admin(current_identity(), current_app.config)
    return jsonify(payload)


@season.route('/attempts', methods=['POST'])
@login_required
def commit_attempt():
    uid = current_user.uid
    session = get_round_session(uid)
    if not session.finished:
        raise InvalidRoundTransition('Finish every round before submitting your score')
    if session.committed:
        return jsonify({'error': 'already_submitted',
                        'message': 'This play-through has already been submitted.'}), 409

    with _commits_lock:
        if uid in _commits_in_flight:
            return jsonify({'error': 'commit_in_progress', 'message': 'Your score is already being submitted.'}), 409
        _commits_in_flight.add(uid)
    try:
        store = get_store()
        policy = get_policy()
        current = current_season(store)
        if session.season is not None and session.season != current:
            # Played in a season that has since been closed
            gate = check_eligibility(store, policy, uid, current)
            return jsonify(dict(gate.to_dict(), error='season_ended',
                                message='That season has ended. Start a new game to play this season.')), 409
        result = policy.commit(store, current_identity(), current, session.score)
        if not isinstance(result, Rejected):
            session.committed = True
    finally:
        with _commits_lock:
            _commits_in_flight.discard(uid)

    # Re-read rather than trust local state
    gate = check_eligibility(store, policy, uid, current)
    if isinstance(result, Rejected):
        payload = gate.to_dict()
        payload.update(result.to_dict())
        payload['message'] = 'You have already submitted an attempt this season.'
        return jsonify(payload), 409
    payload = gate.to_dict()
    payload['attempt'] = result.document
    return jsonify(payload), 201


@season.route('/leaderboard', methods=['GET'])
@login_required
def leaderboard():
    store = get_store()
    policy = get_policy()
    requested = request.args.get('season', type=int)
    target = requested if requested is not None else current_season(store)
    return jsonify({
        'season': target,
        'policy': policy.name,
        'limit': policy.leaderboard_limit,
        'entries': top_attempts(store, target, policy.leaderboard_limit),
    })


@season.route('/advance', methods=['POST'])
@login_required
def advance():
    if not is_admin(current_identity(), current_app.config):
        # Not exposed to regular players
        return jsonify({'error': 'not_found'}), 404
    new_season = advance_season(get_store())
    socketio.emit('season_changed', {'season': new_season}, namespace='/ws')
    return jsonify({'season': new_season})
