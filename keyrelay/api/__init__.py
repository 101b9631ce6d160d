"""
API package - FastAPI application for keyrelay
"""

from .app import create_app

__all__ = ['create_app']
