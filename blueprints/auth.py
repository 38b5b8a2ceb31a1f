from flask import Blueprint, jsonify, session, g
from functools import wraps
import logging

from errors import AuthenticationRequired, ConflictError, PermissionDenied, ValidationError
from models import db, User
from blueprints.common import json_body, require_fields, text_field

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')
logger = logging.getLogger(__name__)


# Helper function - load current user
def load_current_user():
    """Load user into g.current_user for easy access"""
    user_id = session.get('user_id')
    g.current_user = db.session.get(User, user_id) if user_id is not None else None


# Decorators for authentication
def login_required(f):
    """Require any logged-in user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not getattr(g, 'current_user', None):
            raise AuthenticationRequired("Please log in to access this resource")
        return f(*args, **kwargs)
    return decorated_function


def roles_required(*roles):
    """Require a logged-in user holding one of ``roles``"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, 'current_user', None)
            if not user:
                raise AuthenticationRequired("Please log in to access this resource")
            if user.role not in roles:
                raise PermissionDenied(f"This action requires one of the roles: {', '.join(roles)}")
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def check_user_uniqueness(email, exclude_user_id=None):
    """
    Check if the email already belongs to another account.
    Returns list of errors. Requires Flask app context.
    """
    errors = []
    query = User.query.filter(db.func.lower(User.email) == email.lower())
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        errors.append("Email already registered")
    return errors


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create a new account for any academy role"""
    data = json_body()
    first_name = text_field(data, 'first_name') or ''
    last_name = text_field(data, 'last_name') or ''
    email = text_field(data, 'email') or ''
    password = text_field(data, 'password', strip=False) or ''
    role = data.get('role')
    phone_number = text_field(data, 'phone_number') or None

    # Validate format (no DB queries)
    errors = User.validate_format(first_name, last_name, email, password, role, phone_number)
    if errors:
        raise ValidationError(errors=errors)

    # Check uniqueness (requires DB queries)
    uniqueness_errors = check_user_uniqueness(email)
    if uniqueness_errors:
        raise ConflictError('; '.join(uniqueness_errors))

    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        role=role,
        phone_number=phone_number,
        picture=data.get('picture'),
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    logger.info("Registered user %s with role %s", user.id, user.role)
    return jsonify(user.to_dict()), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """Session login by email and password"""
    data = json_body()
    require_fields(data, 'email', 'password')

    email = text_field(data, 'email')
    password = text_field(data, 'password', strip=False)
    user = User.query.filter(db.func.lower(User.email) == email.lower()).first()
    if not user or not user.check_password(password):
        raise AuthenticationRequired("Invalid email or password")

    session.clear()
    session['user_id'] = user.id
    session['role'] = user.role
    return jsonify({'message': f'Welcome back, {user.first_name}!', 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'You have been logged out.'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify(g.current_user.to_dict())
