# backend/wsgi.py
from bizmanager import create_app

app = create_app()
