# backend/wsgi.py
from supplyline import create_app

app = create_app()
