"""
=============================================================================
MODELS.PY — Modelos (Tablas) de la Base de Datos
=============================================================================
Cada clase = una tabla. Cada atributo = una columna.

RELACIONES:
  Habit tiene muchos → HabitWeekDays (días de la semana en que toca)
  Day tiene muchos → DayHabits (marcas de completado, por usuario)

  HABIT ──→ week_days[]
  DAY ──→ day_habits[] ──→ habit

Un Day es COMPARTIDO entre usuarios: hay como mucho una fila por fecha.
Las marcas (DayHabit) llevan el user_id y se filtran al consultar.
"""

import uuid
from sqlalchemy import (
    Column, Integer, String, Date, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database import Base


def new_id() -> str:
    """Ids opacos en forma de UUID (la API valida esa forma al marcar)"""
    return str(uuid.uuid4())


# =============================================================================
# ===================== TABLA 1: HABITS =======================================
# =============================================================================

class Habit(Base):
    __tablename__ = "habits"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)

    created_at = Column(Date, nullable=False, index=True)
    # created_at → día natural (sin hora) en que se creó el hábito

    user_id = Column(String(128), nullable=False, index=True)

    # ── Relaciones ──
    week_days = relationship(
        "HabitWeekDay", back_populates="habit",
        cascade="all, delete-orphan", order_by="HabitWeekDay.id"
    )
    # cascade → los días de la semana viven y mueren con el hábito
    day_habits = relationship("DayHabit", back_populates="habit")

    @property
    def week_day_set(self) -> set[int]:
        """Días de la semana en que toca (sin duplicados)"""
        return {wd.week_day for wd in self.week_days}


# =============================================================================
# ===================== TABLA 2: HABIT WEEK DAYS ==============================
# =============================================================================

class HabitWeekDay(Base):
    __tablename__ = "habit_week_days"

    id = Column(Integer, primary_key=True, autoincrement=True)
    habit_id = Column(String(36), ForeignKey("habits.id", ondelete="CASCADE"), nullable=False, index=True)

    week_day = Column(Integer, nullable=False)
    # week_day → 0 = domingo, 1 = lunes, ..., 6 = sábado

    habit = relationship("Habit", back_populates="week_days")


# =============================================================================
# ===================== TABLA 3: DAYS =========================================
# =============================================================================

class Day(Base):
    __tablename__ = "days"

    id = Column(String(36), primary_key=True, default=new_id)

    date = Column(Date, nullable=False, unique=True)
    # unique=True → una sola fila por fecha, aunque dos peticiones
    # intenten crearla a la vez

    day_habits = relationship("DayHabit", back_populates="day", cascade="all, delete-orphan")


# =============================================================================
# ===================== TABLA 4: DAY HABITS ===================================
# =============================================================================

class DayHabit(Base):
    __tablename__ = "day_habits"

    id = Column(String(36), primary_key=True, default=new_id)
    day_id = Column(String(36), ForeignKey("days.id"), nullable=False)
    habit_id = Column(String(36), ForeignKey("habits.id"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)

    # ── Restricción única: una marca por día + hábito + usuario ──
    __table_args__ = (
        UniqueConstraint("day_id", "habit_id", "user_id", name="uq_day_habit_user"),
    )

    day = relationship("Day", back_populates="day_habits")
    habit = relationship("Habit", back_populates="day_habits")
