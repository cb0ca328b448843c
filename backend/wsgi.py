# backend/wsgi.py
from outletpos import create_app

app = create_app()
