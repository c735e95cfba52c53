# backend/wsgi.py
from kelola import create_app

app = create_app()
