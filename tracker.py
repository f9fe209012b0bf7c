"""
=============================================================================
TRACKER.PY — Motor de Hábitos por Día
=============================================================================
Gestiona:
  - Creación de hábitos con su horario semanal
  - Elegibilidad: qué hábitos "tocan" en una fecha
  - Libro de días: una fila Day por fecha (compartida entre usuarios)
  - Toggle: marcar / desmarcar un hábito en un día
  - Resumen histórico: completados vs. hábitos que tocaban, día a día

Días de la semana: 0 = domingo, 1 = lunes, ..., 6 = sábado.
Se calculan SIEMPRE desde el día natural (nunca desde la hora), así el
resumen histórico y la consulta de un día dan exactamente lo mismo.

Concurrencia:
  No hay locks en el proceso. Dos peticiones pueden intentar crear el mismo
  Day o la misma marca a la vez; la BD rechaza la segunda (UNIQUE) y aquí
  se recupera volviendo a leer. El cliente nunca ve ese conflicto.
"""

from datetime import date, datetime
from typing import Optional
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from models import Habit, HabitWeekDay, Day, DayHabit, new_id

logger = logging.getLogger("habitos.tracker")


# =============================================================================
# ===================== ERRORES ===============================================
# =============================================================================

class TrackerError(Exception):
    """Error base del motor de hábitos"""


class ValidationError(TrackerError):
    """Un campo de entrada no es válido (nada se ha escrito en la BD)"""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFoundError(TrackerError):
    """El hábito no existe o no es del usuario"""


class ConflictError(TrackerError):
    """Choque de restricción única que no se pudo resolver releyendo"""


# =============================================================================
# ===================== FECHAS ================================================
# =============================================================================

def local_today() -> date:
    """Día natural local de hoy"""
    return date.today()


def local_day(value) -> date:
    """
    Normaliza a día natural local.
    Un datetime con zona horaria se pasa primero a la hora local.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def week_day_of(value) -> int:
    """Día de la semana con domingo = 0 (isoweekday da lunes = 1 ... domingo = 7)"""
    return local_day(value).isoweekday() % 7


# =============================================================================
# ===================== HÁBITOS ===============================================
# =============================================================================

def _validate_habit(title: str, week_days, user_id: str) -> str:
    if title is None or not str(title).strip():
        raise ValidationError("title", "El título no puede estar vacío")
    if not user_id or not str(user_id).strip():
        raise ValidationError("user_id", "El usuario no puede estar vacío")
    for wd in week_days:
        if isinstance(wd, bool) or not isinstance(wd, int) or not 0 <= wd <= 6:
            raise ValidationError("weekDays", f"Día de la semana fuera de rango: {wd!r}")
    return str(title).strip()


def create_habit(
    db: Session,
    title: str,
    week_days,
    user_id: str,
    created_on: Optional[date] = None,
) -> str:
    """
    Crea un hábito con su horario semanal.

    - created_at = hoy (día natural local), o created_on si se pasa
    - una fila HabitWeekDay por cada valor recibido (los duplicados se guardan)
    - no se comprueba si ya existe un hábito con el mismo título

    Devuelve el id del hábito nuevo.
    """
    week_days = list(week_days)
    clean_title = _validate_habit(title, week_days, user_id)

    habit_id = new_id()
    habit = Habit(
        id=habit_id,
        title=clean_title,
        created_at=local_day(created_on) if created_on is not None else local_today(),
        user_id=user_id,
        week_days=[HabitWeekDay(week_day=wd) for wd in week_days],
    )
    db.add(habit)
    db.commit()

    logger.info(f"✅ Hábito creado: '{clean_title}' ({habit_id}) para {user_id}, días {week_days}")
    return habit_id


def list_habits(db: Session, user_id: str) -> list[Habit]:
    """Hábitos del usuario, del más antiguo al más nuevo"""
    return db.query(Habit).options(selectinload(Habit.week_days)).filter(
        Habit.user_id == user_id
    ).order_by(Habit.created_at, Habit.title, Habit.id).all()


# =============================================================================
# ===================== ELEGIBILIDAD ==========================================
# =============================================================================

def is_eligible(habit: Habit, day) -> bool:
    """¿Le toca a este hábito ese día? (creado antes o ese mismo día + día de la semana)"""
    day = local_day(day)
    return habit.created_at <= day and week_day_of(day) in habit.week_day_set


def eligible_habits(db: Session, day, user_id: str) -> list[Habit]:
    """
    Hábitos del usuario que tocan en esa fecha.

    Un hábito creado justo ese día cuenta (límite inclusivo).
    Un hábito con el mismo día de la semana repetido aparece una sola vez.
    """
    day = local_day(day)
    week_day = week_day_of(day)

    return db.query(Habit).options(selectinload(Habit.week_days)).filter(
        Habit.user_id == user_id,
        Habit.created_at <= day,
        Habit.week_days.any(HabitWeekDay.week_day == week_day),
    ).order_by(Habit.created_at, Habit.title, Habit.id).all()


# =============================================================================
# ===================== LIBRO DE DÍAS =========================================
# =============================================================================

def find_day(db: Session, day: date) -> Optional[Day]:
    return db.query(Day).filter(Day.date == day).first()


def get_or_create_day(db: Session, day) -> Day:
    """
    Devuelve la fila Day de esa fecha, creándola si no existe.

    Si otra petición la crea entre nuestra lectura y nuestro INSERT,
    la BD rechaza el duplicado (days.date es UNIQUE) y se relee la suya.
    """
    day = local_day(day)
    found = find_day(db, day)
    if found is not None:
        return found

    created = Day(id=new_id(), date=day)
    db.add(created)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"🔁 Day {day} creado por otra petición, releyendo")
        found = find_day(db, day)
        if found is None:
            raise ConflictError(f"No se pudo crear ni leer el día {day}")
        return found

    logger.info(f"📅 Nuevo día en el libro: {day}")
    return created


def completed_habits(db: Session, day_id: str, user_id: str) -> list[str]:
    """Ids de los hábitos marcados por el usuario en ese día"""
    rows = db.query(DayHabit.habit_id).filter(
        DayHabit.day_id == day_id,
        DayHabit.user_id == user_id,
    ).order_by(DayHabit.habit_id).all()
    return [habit_id for (habit_id,) in rows]


def day_report(db: Session, day, user_id: str) -> dict:
    """
    Lo que se ve en GET /day: hábitos posibles y completados.
    Solo lee: si el día no tiene fila Day todavía, no hay completados.
    """
    day = local_day(day)
    possible = eligible_habits(db, day, user_id)

    found = find_day(db, day)
    completed = completed_habits(db, found.id, user_id) if found else []

    return {"possible_habits": possible, "completed_habits": completed}


# =============================================================================
# ===================== TOGGLE ================================================
# =============================================================================

def find_mark(db: Session, day_id: str, habit_id: str, user_id: str) -> Optional[DayHabit]:
    return db.query(DayHabit).filter(
        DayHabit.day_id == day_id,
        DayHabit.habit_id == habit_id,
        DayHabit.user_id == user_id,
    ).first()


def toggle_completion(db: Session, habit_id: str, user_id: str, day=None) -> bool:
    """
    Marca o desmarca un hábito para (día, hábito, usuario).

    Estados: marcado / sin marcar. Cada llamada cambia al otro estado:
      - existe la marca → se borra (False)
      - no existe → se crea (True)

    El hábito tiene que existir y ser del usuario (si no → NotFoundError).
    Que no toque ese día NO impide marcarlo: la marca se guarda igual.

    Si una petición simultánea crea la misma marca antes que nosotros,
    la BD rechaza la nuestra y se da por marcada.
    """
    habit = db.query(Habit).filter(
        Habit.id == habit_id, Habit.user_id == user_id
    ).first()
    if habit is None:
        raise NotFoundError(f"Hábito {habit_id} no encontrado para {user_id}")

    day_row = get_or_create_day(db, day if day is not None else local_today())
    day_id = day_row.id

    mark = find_mark(db, day_id, habit_id, user_id)
    if mark is not None:
        deleted = db.query(DayHabit).filter(DayHabit.id == mark.id).delete(synchronize_session=False)
        db.commit()
        if deleted:
            logger.info(f"⬜ Desmarcado {habit_id} ({user_id}) el {day_row.date}")
        else:
            logger.info(f"🔁 Marca {habit_id} ({user_id}) ya borrada por otra petición")
        return False

    db.add(DayHabit(id=new_id(), day_id=day_id, habit_id=habit_id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"🔁 Marca {habit_id} ({user_id}) ya creada por otra petición")
        return True

    logger.info(f"✅ Marcado {habit_id} ({user_id}) el {day_row.date}")
    return True


# =============================================================================
# ===================== RESUMEN HISTÓRICO =====================================
# =============================================================================

def summary(db: Session, user_id: str) -> list[dict]:
    """
    Un registro por cada día en que el usuario marcó al menos un hábito.

      completed → marcas del usuario ese día
      amount → hábitos del usuario que tocaban ese día (misma regla que
               eligible_habits, aplicada a la fecha histórica)

    Los dos van como float (listos para un porcentaje).
    Ordenado por fecha ascendente.
    """
    rows = db.query(
        Day.id, Day.date, func.count(DayHabit.id)
    ).join(
        DayHabit, DayHabit.day_id == Day.id
    ).filter(
        DayHabit.user_id == user_id
    ).group_by(Day.id, Day.date).order_by(Day.date).all()

    if not rows:
        return []

    habits = db.query(Habit).options(selectinload(Habit.week_days)).filter(
        Habit.user_id == user_id
    ).all()

    result = []
    for day_id, day_date, completed in rows:
        amount = sum(1 for habit in habits if is_eligible(habit, day_date))
        result.append({
            "id": day_id,
            "date": day_date,
            "completed": float(completed),
            "amount": float(amount),
        })
    return result
