"""
Game exceptions.

Raised by the services layer; blueprints translate them into JSON errors.
"""


class JunkGameException(Exception):
    """Base class for all game errors."""
    status_code = 400
    error_code = 'game_error'

    def to_dict(self):
        return {'error': self.error_code, 'message': str(self)}


# ============ Round engine ============

class InvalidRoundTransition(JunkGameException):
    """An operation is not allowed in the session's current state."""
    error_code = 'invalid_transition'


class NoActiveSession(JunkGameException):
    """The player has not started a play-through."""
    status_code = 404
    error_code = 'no_active_session'

    def __init__(self, uid):
        self.uid = uid
        super().__init__(f"No active session for {uid}")


class CatalogError(JunkGameException):
    """The static round catalog is missing or malformed."""
    status_code = 500
    error_code = 'catalog_error'


# ============ Store ============

class StoreUnavailable(JunkGameException):
    """The document store could not be reached. Not retried automatically."""
    status_code = 503
    error_code = 'store_unavailable'
