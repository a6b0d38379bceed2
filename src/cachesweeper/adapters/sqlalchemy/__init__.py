"""SQLAlchemy adapter for cachesweeper.

Usage:
    from sqlalchemy.orm import sessionmaker
    from cachesweeper.adapters.sqlalchemy import SQLAlchemyChangeSource

    SessionLocal = sessionmaker(engine)
    sweeper.attach(SQLAlchemyChangeSource(SessionLocal))
"""

from cachesweeper.adapters.sqlalchemy.change_source import SQLAlchemyChangeSource

__all__ = ["SQLAlchemyChangeSource"]
