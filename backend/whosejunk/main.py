from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from whosejunk.exceptions import JunkGameException
from whosejunk.identity import current_identity, get_provider, is_admin, sign_in, sign_out

main = Blueprint('main', __name__)


@main.app_errorhandler(JunkGameException)
def handle_game_error(exc):
    if exc.status_code >= 500:
        current_app.logger.error(f"[error] {exc.error_code}: {exc}")
    return jsonify(exc.to_dict()), exc.status_code


@main.route('/')
def index():
    return jsonify({'message': 'Whose Junk Is This?'})


@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    identity = get_provider().verify(data)
    if identity is None:
        return jsonify({'error': 'invalid_credentials', 'message': 'Sign-in failed.'}), 401
    if not sign_in(identity):
        domain = current_app.config.get('ALLOWED_EMAIL_DOMAIN')
        return jsonify({
            'error': 'domain_not_allowed',
            'message': f'Only @{domain} accounts can access this app.',
        }), 403
    return jsonify({
        'user': identity.to_dict(),
        'is_admin': is_admin(identity, current_app.config),
    })


@main.route('/logout', methods=['POST'])
def logout():
    sign_out()
    return jsonify({'message': 'Logged out successfully.'})


@main.route('/me')
@login_required
def me():
    identity = current_identity()
    return jsonify({
        'user': identity.to_dict(),
        'is_admin': is_admin(identity, current_app.config),
    })
