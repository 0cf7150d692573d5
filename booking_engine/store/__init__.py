from booking_engine.store.database import Base, init_db, make_engine, make_session_factory

__all__ = [
    "Base",
    "init_db",
    "make_engine",
    "make_session_factory",
]
