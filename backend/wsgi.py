# backend/wsgi.py
from twsystem import create_app

app = create_app()
