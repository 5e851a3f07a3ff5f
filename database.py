from pathlib import Path
from sqlmodel import SQLModel, create_engine, Session
from config import settings

def connect_args_for(url: str) -> dict:
    """Driver options that cap how long a single write may block."""
    if url.startswith("sqlite"):
        # timeout is SQLite's wait on a locked database
        return {"check_same_thread": False, "timeout": settings.INSERT_TIMEOUT}
    if url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={int(settings.INSERT_TIMEOUT * 1000)}"}
    return {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args_for(settings.DATABASE_URL))

def create_db_and_tables():
    if settings.DATABASE_URL.startswith("sqlite:///"):
        Path(settings.DATABASE_URL.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
    # Import models so their tables are registered on the metadata
    import apps.auth.models  # noqa: F401
    import apps.garage.models  # noqa: F401
    SQLModel.metadata.create_all(engine)

def get_session():
    with Session(engine) as session:
        yield session
