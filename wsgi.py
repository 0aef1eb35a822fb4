"""
WSGI entry point for deployment (Gunicorn).
    gunicorn wsgi:server -c gunicorn.conf.py
"""
from clinic_dashboard.app import server  # noqa: F401
