"""
WSGI entrypoint. In production, point your server (gunicorn/uwsgi) here:

    gunicorn 'wsgi:app' --bind 0.0.0.0:5000 --workers 1

Keep a single worker: the buffering store and the tick scheduler live in
process memory.
"""

from relayapp import create_app

app = create_app()
