"""
Authentication blueprint.
Handles operator login and logout with the Flask session.
"""
import logging

from flask import Blueprint, request, session, g, jsonify

from pos_app.database import get_session
from pos_app.middleware import require_login
from pos_app.models import AppUser

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


@auth_bp.route('/login', methods=['POST'])
def login():
    """Log an operator in (JSON or form body with username/password)."""
    payload = _payload()
    username = str(payload.get('username', '')).strip()
    password = str(payload.get('password', ''))

    if not username or not password:
        return jsonify({'status': 'error', 'message': 'Username and password are required.'}), 400

    db_session = get_session()
    user = db_session.query(AppUser).filter_by(username=username, active=True).first()

    if not user or not user.check_password(password):
        logger.warning(f"Failed login for username={username!r} from {request.remote_addr}")
        return jsonify({'status': 'error', 'message': 'Invalid username or password.'}), 401

    session.clear()
    session['user_id'] = user.id
    session.permanent = True

    logger.info(f"User {user.id} logged in")
    return jsonify({'status': 'ok', 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Log out and drop the session (including the cart)."""
    user_id = session.get('user_id')
    session.clear()
    if user_id:
        logger.info(f"User {user_id} logged out")
    return jsonify({'status': 'ok'})


@auth_bp.route('/me')
@require_login
def me():
    return jsonify({'status': 'ok', 'user': g.user.to_dict()})
