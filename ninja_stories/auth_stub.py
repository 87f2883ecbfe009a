"""
Auth helpers reading the session set by the main app's login system.
The session carries user_id and role (student, teacher or admin).
"""
from functools import wraps
from typing import Optional

from flask import session, jsonify


def get_current_user_id() -> Optional[int]:
    """
    Return the current logged-in user's ID from session.
    Returns None if no user is logged in.
    """
    return session.get('user_id')


def get_current_role() -> str:
    return session.get('role', 'student')


def can_view_progression(user_id: int) -> bool:
    """Users see their own progression; teachers and admins see anyone's."""
    if get_current_user_id() == user_id:
        return True
    return get_current_role() in ('teacher', 'admin')


def login_required(f):
    """Require login - JSON 401 for the progression API."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if get_current_user_id() is None:
            return jsonify({'success': False, 'error': 'Please log in to access this page.'}), 401
        return f(*args, **kwargs)
    return decorated
