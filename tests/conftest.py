import os

# Settings are read at import time; point the history store at in-memory SQLite.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.pop("COURT_FEE_SCHEDULE_PATH", None)
