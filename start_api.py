#!/usr/bin/env python3
"""
Run migrations (same process, same DATABASE_URL), then seed, then uvicorn.
Ensures tables exist before seed and app start.
"""
import logging
import os
import sys

# 1) Wait for DB (Postgres only)
from app.core.config import settings
if settings.DATABASE_URL.startswith("postgresql"):
    import wait_for_db
    wait_for_db.wait(settings.DATABASE_URL)

# 2) Run migrations using the same settings as the app
from alembic.config import Config
from alembic import command

alembic_cfg = Config(os.path.join(os.path.dirname(__file__), "alembic.ini"))
alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
command.upgrade(alembic_cfg, "head")

# 3) Seed through a Database handle created *after* migrations
logging.basicConfig(level=settings.LOG_LEVEL.upper())
from app.db.session import Database
from app.seed import run as run_seed

database = Database(settings.DATABASE_URL).connect()
seed_db = database.session()
try:
    run_seed(seed_db)
finally:
    seed_db.close()
    database.disconnect()

# 4) Start uvicorn (replace current process)
os.execv(
    sys.executable,
    [sys.executable, "-m", "uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", os.getenv("PORT", "8000")],
)
