# db.py
# Role: Database bootstrap for the FastAPI finance tracker.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Also ensures the on-disk database directory exists for the default SQLite file.

"""
Database setup for the finance tracker.

- Connection URL comes from app.config.DATABASE_URL
  (default: SQLite database at <project_root>/database/finance.db)
- Ensures the 'database' folder exists when the default file is used.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from app.config import DATABASE_URL, DEFAULT_DB_PATH

if DATABASE_URL == f"sqlite:///{DEFAULT_DB_PATH}":
    os.makedirs(os.path.dirname(DEFAULT_DB_PATH), exist_ok=True)  # ensure folder exists

# For SQLite, we need check_same_thread=False for FastAPI (threaded request handling)
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
)

# Standard session factory used via dependency injection (see app/deps.py:get_db)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base class for ORM models
Base = declarative_base()
