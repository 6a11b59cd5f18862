# backend/wsgi.py
from bingo_pos import create_app

app = create_app()
