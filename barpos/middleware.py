"""Middleware for the authentication collaborator's manager context."""
from functools import wraps
from flask import session, g, request, jsonify


def load_manager():
    """
    Load the calling event manager into g.

    The authentication collaborator (session login or an upstream gateway)
    supplies an opaque manager id and a role. They are trusted as-is to
    scope every read and write.
    """
    g.manager_id = None
    g.manager_role = None

    manager_id = session.get('manager_id') or request.headers.get('X-Manager-Id')
    if manager_id:
        g.manager_id = str(manager_id).strip() or None
        role = session.get('manager_role') or request.headers.get('X-Manager-Role')
        g.manager_role = role.strip().upper() if role else None


def require_manager(f):
    """
    Decorator: Require an authenticated event manager.

    Returns a JSON 401 when no manager id was supplied.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('manager_id') is None:
            return jsonify({
                'status': 'error',
                'kind': 'Unauthenticated',
                'message': 'Authentication required'
            }), 401
        return f(*args, **kwargs)
    return decorated_function
