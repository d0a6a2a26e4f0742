"""Middleware for operator authentication."""
from functools import wraps
from flask import session, g, jsonify
from pos_app.database import db_session
from pos_app.models import AppUser


def load_user():
    """
    Load the current operator into g (Flask's per-request global).

    Sets g.user and g.user_id when the session holds an active user.
    """
    g.user = None
    g.user_id = None

    user_id = session.get('user_id')
    if user_id:
        user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
        if user:
            g.user = user
            g.user_id = user.id
        else:
            # Deactivated or deleted since login
            session.pop('user_id', None)


def require_login(f):
    """
    Decorator: Require an operator to be logged in.

    Answers 401 with a JSON body when nobody is.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            return jsonify({'status': 'error', 'message': 'Login required.'}), 401
        return f(*args, **kwargs)
    return decorated_function
