"""
Nexus Project Hub WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-default-workspace
    gunicorn wsgi:app
"""

from app import create_app

app = create_app()
