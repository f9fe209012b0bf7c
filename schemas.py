"""
=============================================================================
SCHEMAS.PY — Esquemas de Validación (Pydantic)
=============================================================================
  - Models (SQLAlchemy) → definen las TABLAS de la BD
  - Schemas (Pydantic) → definen qué DATOS acepta/devuelve la API

La API habla en camelCase donde el cliente lo espera (weekDays,
possibleHabits, completedHabits): se resuelve con alias, los atributos
en Python siguen en snake_case.

Convención de nombres:
  XxxCreate → para crear algo nuevo (POST)
  XxxQuery → parámetros de consulta (GET)
  XxxResponse → lo que devuelve la API
"""

from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import (
    AliasChoices, BaseModel, Field, StrictInt, StringConstraints, field_validator
)

from tracker import local_day

WeekDay = Annotated[StrictInt, Field(ge=0, le=6)]
# 0 = domingo ... 6 = sábado. StrictInt → "1", true o 2.0 no valen

UserId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]
# el mismo user_id en todas partes: " u1 " y "u1" son el mismo usuario

CalendarDay = date
# para campos que se llaman "date" y llevan valor por defecto


def parse_local_date(value):
    """
    Fecha ISO ("2024-03-04") o fecha-hora ISO ("2024-03-04T10:30:00Z").
    Una fecha-hora se queda con su día natural local.
    """
    if isinstance(value, str) and ("T" in value or " " in value.strip()):
        return local_day(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    if isinstance(value, datetime):
        return local_day(value)
    return value


# =============================================================================
# ===================== HABITS ================================================
# =============================================================================

class HabitCreate(BaseModel):
    """Datos para crear un hábito (POST /habits)"""
    title: str = Field(min_length=1, max_length=200)
    week_days: list[WeekDay] = Field(alias="weekDays")
    user_id: UserId
    model_config = {"populate_by_name": True, "str_strip_whitespace": True}


class UserQuery(BaseModel):
    """Parámetros de GET /habits y GET /summary"""
    user_id: UserId


class HabitResponse(BaseModel):
    id: str
    title: str
    created_at: date
    user_id: str
    week_days: list[int] = Field(
        default_factory=list, alias="weekDays",
        validation_alias=AliasChoices("weekDays", "week_days")
    )
    model_config = {"from_attributes": True, "populate_by_name": True}

    @field_validator("week_days", mode="before")
    @classmethod
    def flatten_week_days(cls, value):
        # desde el ORM llegan objetos HabitWeekDay
        return [getattr(wd, "week_day", wd) for wd in value or []]


# =============================================================================
# ===================== DAY / TOGGLE ==========================================
# =============================================================================

class DayQuery(BaseModel):
    """Parámetros de GET /day (date: ver parse_local_date)"""
    date: date
    user_id: UserId

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value):
        return parse_local_date(value)


class ToggleQuery(BaseModel):
    """?date= opcional de PATCH /habits/{id}/toggle/{user_id}; sin él, hoy"""
    date: Optional[CalendarDay] = None

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value):
        return parse_local_date(value)


class DayResponse(BaseModel):
    possible_habits: list[HabitResponse] = Field(alias="possibleHabits")
    completed_habits: list[str] = Field(alias="completedHabits")
    model_config = {"populate_by_name": True}


# =============================================================================
# ===================== SUMMARY ===============================================
# =============================================================================

class SummaryEntry(BaseModel):
    """Un día con al menos una marca: completados vs. hábitos que tocaban"""
    id: str
    date: date
    completed: float
    amount: float
