"""
Permission decorators for role-based access control.
Extends require_login with role checks.
"""

from functools import wraps
from flask import g

from pos_app.exceptions import UnauthorizedError


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('ADMIN')
        @require_role('ADMIN', 'CASHIER')

    Must be used AFTER require_login.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.get('user')
            if not user or user.role not in allowed_roles:
                raise UnauthorizedError('You do not have permission to access this function.')
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def admin_only(f):
    """Shortcut for @require_role('ADMIN')."""
    return require_role('ADMIN')(f)
