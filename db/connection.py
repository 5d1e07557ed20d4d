# db/connection.py

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, declarative_base
from urllib.parse import quote_plus
import logging

from config import DATABASE_URL, DB_HOST, DB_PORT, DB_NAME, DB_USERNAME, DB_PASSWORD

logger = logging.getLogger(__name__)


def build_database_url() -> str:
    if DATABASE_URL:
        return DATABASE_URL

    password = DB_PASSWORD
    if isinstance(password, (bytes, bytearray)):
        password = password.decode("utf-8")

    # Quote password for URL safety
    pw_quoted = quote_plus(str(password))
    return (
        f"postgresql://{DB_USERNAME}:{pw_quoted}"
        f"@{DB_HOST}:{DB_PORT}/{DB_NAME}?sslmode=disable"
    )


SQLALCHEMY_URL = build_database_url()
_is_sqlite = SQLALCHEMY_URL.startswith("sqlite")

if _is_sqlite:
    engine = create_engine(
        SQLALCHEMY_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )
else:
    logger.info(f"Database URL constructed for: {DB_USERNAME}@{DB_HOST}:{DB_PORT}/{DB_NAME}")
    engine = create_engine(
        SQLALCHEMY_URL,
        echo=False,  # Set to True for SQL debugging
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Validate connections before use
        pool_recycle=3600,   # Recycle connections every hour
        connect_args={
            "application_name": "HR_Attendance",
            "connect_timeout": 10,
        },
    )

    @event.listens_for(engine, "connect")
    def set_connection_settings(dbapi_connection, connection_record):
        """Configure connection settings"""
        try:
            with dbapi_connection.cursor() as cursor:
                cursor.execute("SET timezone TO 'UTC'")
                dbapi_connection.commit()
        except Exception as e:
            logger.warning(f"Could not set timezone: {e}")


# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Base class for models
Base = declarative_base()


def get_db():
    """
    Database dependency with proper error handling
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def check_database_connection() -> bool:
    """
    Check if database connection is working
    """
    try:
        with SessionLocal() as db:
            test_value = db.execute(text("SELECT 1")).scalar()
        if test_value == 1:
            logger.info("✅ Database connection successful")
            return True
        logger.error("❌ Database query returned unexpected result")
        return False
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False
