from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import settings


def configure_sqlite(engine: Engine) -> Engine:
    """
    SQLite has no row locks, so every transaction takes the database
    write lock up front (BEGIN IMMEDIATE). Reserve calls then serialize
    the same way SELECT ... FOR UPDATE serializes them on PostgreSQL.
    """
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30

    engine = create_engine(
        url,
        connect_args=connect_args,
        pool_pre_ping=True,
        echo=echo
    )

    if url.startswith("sqlite"):
        configure_sqlite(engine)
    return engine


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()

# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Dependency for jobs/endpoints that manage their own sessions
def get_session_factory():
    return SessionLocal
