import unittest
from datetime import date, datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tracker
from database import build_engine, get_db, init_db
from main import app
from schemas import DayQuery

MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = build_engine("sqlite://", poolclass=StaticPool)
        init_db(bind=self.engine)
        self.Session = sessionmaker(bind=self.engine, autoflush=False)

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.engine.dispose()

    def seed_habit(self, title, week_days, user_id="u1", created_on=MONDAY):
        with self.Session() as db:
            return tracker.create_habit(db, title, week_days, user_id, created_on=created_on)

    def day(self, on, user_id="u1"):
        response = self.client.get("/day", params={"date": on.isoformat(), "user_id": user_id})
        self.assertEqual(response.status_code, 200)
        return response.json()

    def toggle(self, habit_id, user_id="u1", on=None):
        params = {"date": on.isoformat()} if on else None
        return self.client.patch(f"/habits/{habit_id}/toggle/{user_id}", params=params)


class HealthTests(ApiTestCase):
    def test_health(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")


class CreateHabitApiTests(ApiTestCase):
    def test_create_returns_empty_body(self):
        response = self.client.post(
            "/habits", json={"title": "Beber agua", "weekDays": [1, 3], "user_id": "u1"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"")

        habits = self.client.get("/habits", params={"user_id": "u1"}).json()
        self.assertEqual(len(habits), 1)
        self.assertEqual(habits[0]["title"], "Beber agua")
        self.assertEqual(habits[0]["weekDays"], [1, 3])
        self.assertEqual(habits[0]["created_at"], date.today().isoformat())
        self.assertEqual(habits[0]["user_id"], "u1")

    def test_schema_violations_are_400(self):
        bad_bodies = [
            {"weekDays": [1], "user_id": "u1"},
            {"title": "Leer", "weekDays": [7], "user_id": "u1"},
            {"title": "Leer", "weekDays": [-1], "user_id": "u1"},
            {"title": "Leer", "weekDays": "lunes", "user_id": "u1"},
            {"title": "Leer", "weekDays": [1]},
            {"title": "   ", "weekDays": [1], "user_id": "u1"},
            {"title": "Leer", "weekDays": ["1"], "user_id": "u1"},
            {"title": "Leer", "weekDays": [True], "user_id": "u1"},
            {"title": "Leer", "weekDays": [2.0], "user_id": "u1"},
            {"title": "Leer", "weekDays": [1], "user_id": "   "},
        ]
        for body in bad_bodies:
            with self.subTest(body=body):
                response = self.client.post("/habits", json=body)
                self.assertEqual(response.status_code, 400)
                self.assertIn("detail", response.json())
        self.assertEqual(self.client.get("/habits", params={"user_id": "u1"}).json(), [])


class DayApiTests(ApiTestCase):
    def test_drink_water_flow(self):
        today = date.today()
        self.client.post(
            "/habits",
            json={"title": "Drink water", "weekDays": [tracker.week_day_of(today)], "user_id": "u1"},
        )
        habit_id = self.client.get("/habits", params={"user_id": "u1"}).json()[0]["id"]

        body = self.day(today)
        self.assertEqual([h["id"] for h in body["possibleHabits"]], [habit_id])
        self.assertEqual(body["completedHabits"], [])
        self.assertEqual(self.day(today + timedelta(days=1))["possibleHabits"], [])

        self.assertEqual(self.toggle(habit_id).status_code, 200)
        self.assertEqual(self.day(today)["completedHabits"], [habit_id])

        self.assertEqual(self.toggle(habit_id).status_code, 200)
        self.assertEqual(self.day(today)["completedHabits"], [])

    def test_completed_habits_are_per_user(self):
        mine = self.seed_habit("Leer", [1])
        theirs = self.seed_habit("Leer", [1], user_id="u2")
        self.toggle(mine, "u1", MONDAY)
        self.toggle(theirs, "u2", MONDAY)

        self.assertEqual(self.day(MONDAY, "u1")["completedHabits"], [mine])
        self.assertEqual(self.day(MONDAY, "u2")["completedHabits"], [theirs])

    def test_missing_parameters_are_400(self):
        self.assertEqual(self.client.get("/day", params={"date": "2024-03-04"}).status_code, 400)
        self.assertEqual(self.client.get("/day", params={"user_id": "u1"}).status_code, 400)
        self.assertEqual(
            self.client.get("/day", params={"date": "ayer", "user_id": "u1"}).status_code, 400
        )

    def test_date_time_is_reduced_to_calendar_day(self):
        self.assertEqual(DayQuery(date="2024-03-04T18:45:00", user_id="u1").date, MONDAY)
        self.assertEqual(DayQuery(date="2024-03-04", user_id="u1").date, MONDAY)


class ToggleApiTests(ApiTestCase):
    def test_non_uuid_id_is_400(self):
        self.assertEqual(self.toggle("no-es-un-uuid").status_code, 400)

    def test_unknown_habit_is_404(self):
        response = self.toggle("9b2d5c1e-3f4a-4b6c-8d7e-0f1a2b3c4d5e")
        self.assertEqual(response.status_code, 404)

    def test_toggle_on_past_date(self):
        habit_id = self.seed_habit("Leer", [1])
        response = self.toggle(habit_id, on=MONDAY)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"")
        self.assertEqual(self.day(MONDAY)["completedHabits"], [habit_id])

    def test_ineligible_mark_is_reported(self):
        habit_id = self.seed_habit("Leer", [1])
        self.toggle(habit_id, on=TUESDAY)

        body = self.day(TUESDAY)
        self.assertEqual(body["possibleHabits"], [])
        self.assertEqual(body["completedHabits"], [habit_id])

    def test_sequential_toggles_follow_parity(self):
        habit_id = self.seed_habit("Leer", [1])
        for _ in range(5):
            self.assertEqual(self.toggle(habit_id, on=MONDAY).status_code, 200)
        self.assertEqual(self.day(MONDAY)["completedHabits"], [habit_id])

        self.assertEqual(self.toggle(habit_id, on=MONDAY).status_code, 200)
        self.assertEqual(self.day(MONDAY)["completedHabits"], [])

    def test_toggle_date_accepts_same_forms_as_day(self):
        habit_id = self.seed_habit("Leer", [1])

        response = self.client.patch(
            f"/habits/{habit_id}/toggle/u1", params={"date": "2024-03-04T10:00:00.000"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.day(MONDAY)["completedHabits"], [habit_id])

        utc_value = "2024-03-04T03:00:00.000Z"
        local = tracker.local_day(datetime(2024, 3, 4, 3, 0, tzinfo=timezone.utc))
        response = self.client.patch(f"/habits/{habit_id}/toggle/u1", params={"date": utc_value})
        self.assertEqual(response.status_code, 200)
        body = self.client.get("/day", params={"date": utc_value, "user_id": "u1"}).json()
        self.assertEqual(
            body["completedHabits"], [] if local == MONDAY else [habit_id]
        )

    def test_bad_toggle_date_is_400(self):
        habit_id = self.seed_habit("Leer", [1])
        response = self.client.patch(f"/habits/{habit_id}/toggle/u1", params={"date": "ayer"})
        self.assertEqual(response.status_code, 400)


class UserIdWhitespaceTests(ApiTestCase):
    def test_padded_user_id_is_the_same_user_everywhere(self):
        self.client.post(
            "/habits", json={"title": "Leer", "weekDays": list(range(7)), "user_id": " u1 "}
        )
        padded = " u1 "

        habits = self.client.get("/habits", params={"user_id": padded}).json()
        self.assertEqual(len(habits), 1)
        self.assertEqual(habits[0]["user_id"], "u1")
        habit_id = habits[0]["id"]

        today = date.today()
        self.assertEqual(self.day(today, padded)["possibleHabits"][0]["id"], habit_id)

        self.assertEqual(self.client.patch(f"/habits/{habit_id}/toggle/%20u1%20").status_code, 200)
        self.assertEqual(self.day(today, padded)["completedHabits"], [habit_id])
        self.assertEqual(self.day(today, "u1")["completedHabits"], [habit_id])

        rows = self.client.get("/summary", params={"user_id": padded}).json()
        self.assertEqual([(r["completed"], r["amount"]) for r in rows], [(1.0, 1.0)])


class SummaryApiTests(ApiTestCase):
    def test_summary_for_user(self):
        a = self.seed_habit("A", [1, 2])
        self.seed_habit("B", [1])
        other = self.seed_habit("Otro", [2], user_id="u2")
        self.toggle(a, on=MONDAY)
        self.toggle(a, on=TUESDAY)
        self.toggle(other, "u2", TUESDAY)

        response = self.client.get("/summary", params={"user_id": "u1"})
        self.assertEqual(response.status_code, 200)
        rows = response.json()
        self.assertEqual(
            [(r["date"], r["completed"], r["amount"]) for r in rows],
            [("2024-03-04", 1.0, 2.0), ("2024-03-05", 1.0, 1.0)],
        )
        self.assertTrue(all(isinstance(r["id"], str) for r in rows))

    def test_summary_requires_user(self):
        self.assertEqual(self.client.get("/summary").status_code, 400)


if __name__ == "__main__":
    unittest.main()
