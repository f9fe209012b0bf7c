"""
=============================================================================
MAIN.PY — La API de Hábitos
=============================================================================
Endpoints:
  0. HEALTH   → ¿Está viva la API?
  1. HABITS   → Crear y listar hábitos
  2. DAY      → Hábitos posibles y completados en una fecha
  3. TOGGLE   → Marcar / desmarcar un hábito
  4. SUMMARY  → Resumen histórico día a día

Errores:
  - Datos mal formados → 400 con el detalle por campo
  - Hábito desconocido al marcar → 404
  - Cualquier otra cosa → 500 con el error real en JSON
"""

import os
import logging
import traceback
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Annotated
from uuid import UUID

from fastapi import FastAPI, Depends, Path, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db, init_db
from schemas import (
    HabitCreate, HabitResponse, UserQuery, DayQuery, ToggleQuery, DayResponse, SummaryEntry
)
import tracker

APP_NAME = "Habitos API"
APP_VERSION = "1.0.0"

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("habitos.api")


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (Arranque y apagado)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Al arrancar crea las tablas que falten."""
    logger.info(f"🚀 Arrancando {APP_NAME}...")
    init_db()
    logger.info("✅ Base de datos inicializada")

    yield

    logger.info("👋 Apagado completo")


# ─────────────────────────────────────────────────────────────────────────────
# APLICACIÓN FASTAPI
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=APP_NAME,
    description="Hábitos diarios por días de la semana, marcas por día y resumen histórico",
    version=APP_VERSION,
    lifespan=lifespan,
)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# MANEJADORES DE ERRORES
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Campos que faltan, tipos incorrectos, días fuera de 0-6, ids que no son UUID → 400"""
    logger.info(f"⚠️ Petición inválida en {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(tracker.ValidationError)
async def tracker_validation_handler(request: Request, exc: tracker.ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": [{"loc": ["body", exc.field], "msg": exc.message, "type": "value_error"}]}
    )


@app.exception_handler(tracker.NotFoundError)
async def not_found_handler(request: Request, exc: tracker.NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": "Hábito no encontrado"}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Captura errores no manejados y devuelve detalles útiles"""
    error_msg = str(exc)
    error_trace = traceback.format_exc()
    logger.error(f"❌ Error no manejado en {request.url}: {error_msg}\n{error_trace}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": error_msg,
            "type": type(exc).__name__,
            "path": str(request.url)
        }
    )


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    """Verifica que la API está viva"""
    return {
        "status": "ok",
        "app": APP_NAME,
        "version": APP_VERSION,
        "timestamp": datetime.utcnow().isoformat()
    }


# =============================================================================
# ===================== SECCIÓN 1: HABITS =====================================
# =============================================================================

@app.post("/habits", tags=["Habits"])
def create_habit(data: HabitCreate, db: Session = Depends(get_db)):
    """
    Crea un hábito para hoy en adelante.

    Body: {"title": "Beber agua", "weekDays": [1, 3, 5], "user_id": "abc"}
    Responde 200 sin cuerpo.
    """
    tracker.create_habit(db, data.title, data.week_days, data.user_id)
    return Response(status_code=status.HTTP_200_OK)


@app.get("/habits", response_model=list[HabitResponse], tags=["Habits"])
def list_habits(params: Annotated[UserQuery, Query()], db: Session = Depends(get_db)):
    """Todos los hábitos de un usuario"""
    return [HabitResponse.model_validate(h) for h in tracker.list_habits(db, params.user_id)]


# =============================================================================
# ===================== SECCIÓN 2: DAY ========================================
# =============================================================================

@app.get("/day", response_model=DayResponse, tags=["Day"])
def get_day(params: Annotated[DayQuery, Query()], db: Session = Depends(get_db)):
    """
    Hábitos de una fecha:
      possibleHabits → los que tocaban (creados antes + día de la semana)
      completedHabits → ids de los que el usuario marcó
    """
    report = tracker.day_report(db, params.date, params.user_id)
    return DayResponse(
        possible_habits=[HabitResponse.model_validate(h) for h in report["possible_habits"]],
        completed_habits=report["completed_habits"],
    )


# =============================================================================
# ===================== SECCIÓN 3: TOGGLE =====================================
# =============================================================================

@app.patch("/habits/{habit_id}/toggle/{user_id}", tags=["Habits"])
def toggle_habit(
    habit_id: UUID,
    user_id: Annotated[str, Path(min_length=1, max_length=128)],
    params: Annotated[ToggleQuery, Query()],
    db: Session = Depends(get_db)
):
    """
    Marca o desmarca el hábito para hoy (o para ?date=, mismo formato que /day).
    Llamarlo dos veces deja todo como estaba.
    """
    # mismo user_id que en el body y las queries (sin espacios alrededor)
    tracker.toggle_completion(db, str(habit_id), user_id.strip(), params.date)
    return Response(status_code=status.HTTP_200_OK)


# =============================================================================
# ===================== SECCIÓN 4: SUMMARY ====================================
# =============================================================================

@app.get("/summary", response_model=list[SummaryEntry], tags=["Summary"])
def get_summary(params: Annotated[UserQuery, Query()], db: Session = Depends(get_db)):
    """Resumen histórico: por cada día con marcas, completados vs. posibles"""
    return tracker.summary(db, params.user_id)
