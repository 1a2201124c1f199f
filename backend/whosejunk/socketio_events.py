from flask import request
from flask_login import current_user
from flask_socketio import emit
from typing import Dict

from whosejunk import socketio
from whosejunk.exceptions import StoreUnavailable
from whosejunk.services import leaderboard
from whosejunk.services.attempts import get_policy
from whosejunk.services.season import current_season
from whosejunk.store import Subscription, get_store


# Live leaderboard subscription held by each connected socket
_sid_subscriptions: Dict[str, Subscription] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _cancel_watch(sid: str) -> None:
    sub = _sid_subscriptions.pop(sid, None)
    if sub is not None:
        sub.cancel()


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    _cancel_watch(_get_sid())


def handle_watch_leaderboard(data):
    if not current_user.is_authenticated:
        emit('error', {'message': 'Sign in to view the leaderboard'})
        return
    store = get_store()
    requested = (data or {}).get('season')
    try:
        season = int(requested) if requested is not None else current_season(store)
    except (TypeError, ValueError):
        emit('error', {'message': 'season must be a number'})
        return
    except StoreUnavailable as exc:
        emit('error', {'message': str(exc)})
        return

    sid = _get_sid()
    namespace = request.namespace  # type: ignore
    _cancel_watch(sid)

    def _push(entries):
        socketio.emit('leaderboard_update', {'season': season, 'entries': entries}, to=sid, namespace=namespace)

    try:
        _sid_subscriptions[sid] = leaderboard.subscribe(store, season, get_policy().leaderboard_limit, _push)
    except StoreUnavailable as exc:
        emit('error', {'message': str(exc)})
        return
    emit('watching', {'season': season})


def handle_unwatch_leaderboard(data=None):
    _cancel_watch(_get_sid())
    emit('unwatched', {})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('watch_leaderboard', handle_watch_leaderboard, namespace=namespace)
        socketio.on_event('unwatch_leaderboard', handle_unwatch_leaderboard, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
