# Overview: Shared SQLAlchemy and Alembic extension instances for the ledger app.

import os

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")

db = SQLAlchemy()
# Resolved from the package so `flask db` works from any working directory;
# batch mode lets ALTERs run on SQLite
migrate = Migrate(directory=MIGRATIONS_DIR, render_as_batch=True)
