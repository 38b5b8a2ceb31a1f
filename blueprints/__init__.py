"""
Blueprints package for the academy backend
Contains one JSON blueprint per resource
"""

from .auth import auth_bp
from .users import users_bp
from .equipes import equipes_bp
from .matches import matches_bp
from .coupes import coupes_bp
from .injuries import injuries_bp
from .chat import chat_bp
from .diet import diet_bp
from .staff import staff_bp

__all__ = [
    'auth_bp',
    'users_bp',
    'equipes_bp',
    'matches_bp',
    'coupes_bp',
    'injuries_bp',
    'chat_bp',
    'diet_bp',
    'staff_bp',
]
