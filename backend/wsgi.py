# backend/wsgi.py
from filmstock import create_app

app = create_app()
