"""WSGI entrypoint: ``gunicorn menuz.wsgi:app``."""

from menuz.app import create_app

app = create_app()
