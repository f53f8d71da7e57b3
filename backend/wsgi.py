# backend/wsgi.py
from atelier import create_app

app = create_app()
