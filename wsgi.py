"""
WSGI entry point for the Municipal Project Management System.

Usage:
    APP_ENV=production gunicorn wsgi:app
    flask --app wsgi db upgrade        # apply migrations/
    flask --app wsgi seed-demo         # demo wards, roles, admin, programs
"""

from app import create_app

# APP_ENV selects the config (development when unset).
app = create_app()
