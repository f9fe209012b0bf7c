"""
=============================================================================
DATABASE.PY — Configuración de la Base de Datos
=============================================================================
Conexión, sesiones y clase base de los modelos.

En DESARROLLO: SQLite (un archivo .db local)
En PRODUCCIÓN: PostgreSQL (variable de entorno DATABASE_URL)

Las dos restricciones únicas que importan (days.date y
day_habits(day_id, habit_id, user_id)) las hace cumplir la BD,
no el proceso: por eso aquí no hay locks.
"""

import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

# ─────────────────────────────────────────────────────────────────────────────
# CONEXIÓN
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./habitos.db")

# SQLAlchemy + psycopg (v3) necesita "postgresql+psycopg://"
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)

SQL_ECHO = os.getenv("SQL_ECHO", "0") == "1"


# ─────────────────────────────────────────────────────────────────────────────
# ENGINE
# ─────────────────────────────────────────────────────────────────────────────

def enable_sqlite_foreign_keys(engine):
    """SQLite no aplica las FOREIGN KEY si no se lo pides en cada conexión"""
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str, **kwargs):
    """
    Crea un engine para la URL dada.

    Para SQLite:
      - check_same_thread=False → FastAPI atiende peticiones en varios hilos
      - foreign_keys=ON → las marcas no pueden apuntar a hábitos inexistentes
    """
    engine_args = dict(kwargs)
    if url.startswith("sqlite"):
        engine_args.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, echo=SQL_ECHO, **engine_args)
    if url.startswith("sqlite"):
        enable_sqlite_foreign_keys(engine)
    return engine


engine = build_engine(DATABASE_URL)

# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────
# Una sesión por petición. SessionLocal es la "fábrica".

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────

Base = declarative_base()


def get_db():
    """
    Dependencia de FastAPI: abre una sesión y la cierra al terminar.

      @app.get("/algo")
      def mi_endpoint(db: Session = Depends(get_db)):
          ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Crea todas las tablas si no existen.
    Se llama una vez al arrancar la aplicación (lifespan).
    """
    # importar los modelos registra sus tablas en Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
