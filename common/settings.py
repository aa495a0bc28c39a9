import os
from dotenv import load_dotenv

load_dotenv()

APP_NAME = "Audit Script Engine"
APP_VER = "1.0.0"

DB_PATH = os.getenv("AUDIT_DB_PATH", os.path.join(os.getcwd(), "audit_engine.sqlite3"))
OUTPUT_DIR = os.getenv("OUTPUT_DIR", os.path.join(os.getcwd(), "output"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# optimistic read-modify-write attempts per session mutation
SESSION_WRITE_RETRIES = int(os.getenv("SESSION_WRITE_RETRIES", "4"))

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]
