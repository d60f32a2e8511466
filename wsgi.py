"""
Flask CLI / WSGI entry point.

Usage:
    flask --app wsgi alerts sweep
    flask --app wsgi alerts check 42
    gunicorn wsgi:app
"""

from buildtrack import create_app

app = create_app()
