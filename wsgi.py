"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi fix-states --type feature
"""

from wsjfp import create_app

app = create_app()
