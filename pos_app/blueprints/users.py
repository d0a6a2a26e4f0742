"""
User management blueprint.
Only ADMIN operators can list and create users.
"""
import logging

from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from pos_app.database import get_session
from pos_app.decorators.permissions import admin_only
from pos_app.exceptions import BusinessLogicError
from pos_app.middleware import require_login
from pos_app.models import AppUser, UserRole

logger = logging.getLogger(__name__)

users_bp = Blueprint('users', __name__, url_prefix='/api/users')

MIN_PASSWORD_LENGTH = 6


def _validate_user_form(payload: dict) -> list:
    errors = []
    username = str(payload.get('username', '')).strip()
    password = str(payload.get('password', ''))
    role = str(payload.get('role', UserRole.CASHIER.value)).upper()

    if not username:
        errors.append('Username is required.')
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
    if role not in {r.value for r in UserRole}:
        errors.append('Invalid role. Use ADMIN or CASHIER.')
    return errors


@users_bp.route('', methods=['GET'])
@require_login
@admin_only
def list_users():
    """List all operators (no password hashes)."""
    session = get_session()
    users = session.query(AppUser).order_by(AppUser.created_at.asc(), AppUser.id.asc()).all()
    return jsonify([user.to_dict() for user in users])


@users_bp.route('', methods=['POST'])
@require_login
@admin_only
def create_user():
    """Create an operator; the password is hashed server-side."""
    payload = request.get_json(silent=True) or request.form.to_dict()
    errors = _validate_user_form(payload)
    if errors:
        raise BusinessLogicError(' '.join(errors), payload={'errors': errors})

    session = get_session()
    username = payload['username'].strip()

    if session.query(AppUser).filter_by(username=username).first():
        raise BusinessLogicError(f'User {username} already exists.', status_code=409)

    user = AppUser(
        username=username,
        name=(str(payload.get('name') or '').strip() or None),
        role=str(payload.get('role', UserRole.CASHIER.value)).upper()
    )
    user.set_password(payload['password'])

    try:
        session.add(user)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError(f'User {username} already exists.', status_code=409)

    logger.info(f"User {user.id} ({user.role}) created by {g.user_id}")
    return jsonify(user.to_dict()), 201
