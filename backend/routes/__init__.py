"""
Property Document Tracker - Routes Package

API routers for the document tracker.
"""

from .auth import router as auth_router
from .stages import router as stages_router, set_dependencies as set_stages_deps

__all__ = [
    'auth_router',
    'stages_router', 'set_stages_deps',
]
