"""Signed-in player identity.

Identity verification belongs to an external provider (Google sign-in in the
web client). This module is the boundary: a provider turns a credential into
an ``Identity``, and Flask-Login keeps it for the life of the session.
"""
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from flask import current_app, session
from flask_login import UserMixin, current_user, login_user, logout_user


@dataclass(frozen=True)
class Identity:
    uid: str
    name: Optional[str] = None
    email: Optional[str] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(uid=str(data['uid']), name=data.get('name'), email=data.get('email'))


class PlayerUser(UserMixin):
    def __init__(self, identity: Identity):
        self.identity = identity

    def get_id(self):
        return self.identity.uid

    @property
    def uid(self):
        return self.identity.uid

    @property
    def email(self):
        return self.identity.email

    def to_dict(self):
        return self.identity.to_dict()


class IdentityProvider:
    """Turns a sign-in credential into an Identity, or None if it is not valid."""

    def verify(self, credential) -> Optional[Identity]:
        raise NotImplementedError


class TrustedClaimsProvider(IdentityProvider):
    """Accepts ``{uid, name, email}`` claims relayed by a trusted front end."""

    def verify(self, credential) -> Optional[Identity]:
        if not isinstance(credential, dict):
            return None
        uid = credential.get('uid')
        if not uid:
            return None
        email = (credential.get('email') or '').strip() or None
        return Identity(uid=str(uid), name=credential.get('name') or email, email=email)


def get_provider() -> IdentityProvider:
    return current_app.extensions['identity_provider']


def on_auth_change(callback: Callable[[str, Optional[Identity]], None], app=None) -> Callable[[], None]:
    """Call ``callback(uid, identity_or_none)`` on every sign-in and sign-out."""
    listeners = (app or current_app).extensions.setdefault('auth_listeners', [])
    listeners.append(callback)

    def unsubscribe():
        if callback in listeners:
            listeners.remove(callback)
    return unsubscribe


def _fire(uid: str, identity: Optional[Identity]) -> None:
    for callback in list(current_app.extensions.get('auth_listeners', [])):
        callback(uid, identity)


def email_allowed(email: Optional[str], config) -> bool:
    if not config.get('LOCK_TO_DOMAIN', True):
        return True
    domain = (config.get('ALLOWED_EMAIL_DOMAIN') or '').lower().lstrip('@')
    return bool(email) and email.lower().endswith(f"@{domain}")


def is_admin(identity: Optional[Identity], config) -> bool:
    if identity is None or not identity.email:
        return False
    return identity.email.lower() in {e.lower() for e in config.get('ADMIN_EMAILS', [])}


def current_identity() -> Optional[Identity]:
    if current_user and current_user.is_authenticated:
        return current_user.identity
    return None


def sign_in(identity: Identity) -> bool:
    """Start a session for ``identity``. Returns False when its domain is not allowed."""
    if not email_allowed(identity.email, current_app.config):
        current_app.logger.warning(f"[sign-in] rejected {identity.email!r}: outside allowed domain")
        sign_out()
        return False
    session['identity'] = identity.to_dict()
    login_user(PlayerUser(identity))
    current_app.logger.info(f"[sign-in] uid={identity.uid}")
    _fire(identity.uid, identity)
    return True


def sign_out() -> None:
    uid = current_user.get_id() if current_user and current_user.is_authenticated else None
    logout_user()
    session.pop('identity', None)
    if uid:
        current_app.logger.info(f"[sign-out] uid={uid}")
        _fire(uid, None)


def load_user(uid):
    data = session.get('identity')
    if data and str(data.get('uid')) == str(uid):
        return PlayerUser(Identity.from_dict(data))
    return None
