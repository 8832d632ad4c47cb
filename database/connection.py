from sqlalchemy import create_engine
from contextlib import contextmanager
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
CURRENT_DIR = Path(os.path.dirname(os.path.abspath(__file__))).parent
load_dotenv((CURRENT_DIR / '.env').as_posix())

# Create base class for models
Base = declarative_base()

# Database configuration
DB_TYPE = os.getenv('DB_TYPE', 'sqlite')  # 'sqlite' or 'postgresql'
DB_ECHO = os.getenv('DB_ECHO', 'False') == 'True'  # Set to True for SQL logging
DATABASE_URL = os.getenv('DATABASE_URL')  # Full URL overrides DB_TYPE

if not DATABASE_URL and DB_TYPE == 'postgresql':
    DB_USER = os.getenv('DB_USER', 'postgres')
    DB_PASSWORD = os.getenv('DB_PASSWORD', '')
    DB_HOST = os.getenv('DB_HOST', 'localhost')
    DB_PORT = os.getenv('DB_PORT', '5432')
    DB_NAME = os.getenv('DB_NAME', 'school_records')

    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
elif not DATABASE_URL:
    db_path = Path(os.getenv('DB_PATH', CURRENT_DIR / 'school_records.db'))
    DATABASE_URL = f"sqlite:///{db_path}"

if DATABASE_URL.startswith('sqlite'):
    engine = create_engine(
        DATABASE_URL,
        echo=DB_ECHO,
        connect_args={"check_same_thread": False},  # Needed for SQLite with multiple threads
        poolclass=StaticPool
    )
else:
    engine = create_engine(
        DATABASE_URL,
        echo=DB_ECHO,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20
    )

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

@contextmanager
def get_db_session():
    """
    Get a database session. Use as context manager:

    with get_db_session() as session:
        # do work
        session.commit()
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

def get_db():
    """Get a database session (for non-context manager usage)"""
    return SessionLocal()
