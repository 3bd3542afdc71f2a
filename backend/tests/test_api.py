"""
Tests for the HTTP API — routes wired through main.py with a seeded in-memory store.
"""

import os
import sys
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from main import app
from core.store import InMemoryRecordStore, seed_demo_data

HEADER = "PrimerApellido;SegundoApellido;PrimerNombre;SegundoNombre;NombreDelGrado"


@pytest.fixture
def client():
    with TestClient(app) as c:
        app.state.store = seed_demo_data(InMemoryRecordStore())
        yield c


def _grades(student_id, **period_one):
    return {"student_id": student_id, "periods": {"1": period_one}}


class TestMeta:
    """Tests for health and config endpoints."""

    def test_health(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"

    def test_config(self, client):
        assert client.get("/api/config").json()["passing_grade"] == 6.0


class TestSettingsRoutes:
    """Tests for /api/settings."""

    def test_read(self, client):
        body = client.get("/api/settings").json()
        assert body["period_count"] == 3
        assert body["period_weights"] == {"1": 30.0, "2": 30.0, "3": 40.0}

    def test_update(self, client):
        r = client.put("/api/settings", json={"period_count": 2, "period_weights": {"1": 40, "2": 60}})
        assert r.status_code == 200
        assert client.get("/api/settings").json()["period_count"] == 2

    def test_weights_must_sum_to_100(self, client):
        r = client.put("/api/settings", json={"period_count": 2, "period_weights": {"1": 40, "2": 50}})
        assert r.status_code == 422
        assert r.json()["error"] == "validation_error"
        assert client.get("/api/settings").json()["period_count"] == 3

    def test_distribute(self, client):
        assert client.get("/api/settings/distribute/3").json()["period_weights"] == {"1": 34, "2": 33, "3": 33}
        assert client.get("/api/settings/distribute/0").status_code == 422


class TestCalculationRoutes:
    """Tests for /api/grades calculators."""

    def test_period(self, client):
        r = client.post("/api/grades/calculate/period", json={
            "period_data": {"tasks": [8, 10], "workshops": [], "attitude": 7, "exam": 6},
            "task_activity_count": 2,
            "workshop_activity_count": 1,
        })
        body = r.json()
        assert body["definitive"] == pytest.approx(5.6)
        assert body["performance"] == "BAJO"

    def test_summary_with_stored_settings(self, client):
        flat = lambda v: {"tasks": [v], "workshops": [v], "attitude": v, "exam": v}
        r = client.post("/api/grades/calculate/summary", json={
            "record": {"student_id": "x", "periods": {"1": flat(8.0), "2": flat(9.0), "3": flat(6.5)}},
            "activity_counts": {"1": [1, 1], "2": [1, 1], "3": [1, 1]},
        })
        assert r.json()["weighted_final"] == pytest.approx(7.7)
        assert r.json()["performance"] == "BASICO"

    def test_summary_rejects_bad_settings(self, client):
        r = client.post("/api/grades/calculate/summary", json={
            "record": {"student_id": "x"},
            "settings": {"period_count": 2, "period_weights": {"1": 10, "2": 10}},
        })
        assert r.status_code == 422

    def test_thresholds(self, client):
        assert len(client.get("/api/grades/thresholds").json()["thresholds"]) == 4


class TestGradebookRoutes:
    """Tests for /api/grades/gradebooks."""

    def test_save_and_read_period(self, client):
        r = client.put("/api/grades/gradebooks/crs-math_gl-6a", json={
            "records": [_grades("stu-1", tasks=[8], workshops=[10], attitude=7, exam=6)],
        })
        assert r.json() == {"saved_rows": 1}

        body = client.get("/api/grades/gradebooks/crs-math_gl-6a", params={"view": "1"}).json()
        rows = {row["student_id"]: row for row in body["rows"]}
        assert set(rows) == {"stu-1", "stu-2"}
        assert rows["stu-1"]["definitive"] == pytest.approx(7.4)
        assert rows["stu-1"]["grades"]["tasks"] == [8.0]

    def test_summary_view(self, client):
        body = client.get("/api/grades/gradebooks/crs-math_gl-7b", params={"view": "summary"}).json()
        assert body["view"] == "summary"
        assert {row["student_id"] for row in body["rows"]} == {"stu-3", "stu-4"}

    def test_period_out_of_range(self, client):
        r = client.get("/api/grades/gradebooks/crs-math_gl-6a", params={"view": "7"})
        assert r.status_code == 422

    def test_unknown_course(self, client):
        r = client.get("/api/grades/gradebooks/crs-nope_gl-6a")
        assert r.status_code == 404
        assert r.json()["error"] == "not_found"

    def test_malformed_id(self, client):
        assert client.get("/api/grades/gradebooks/nounderscore").status_code == 422

    def test_out_of_range_grade(self, client):
        r = client.put("/api/grades/gradebooks/crs-math_gl-6a", json={"records": [_grades("stu-1", exam=11)]})
        assert r.status_code == 422

    def test_student_from_other_grade(self, client):
        r = client.put("/api/grades/gradebooks/crs-math_gl-6a", json={"records": [_grades("stu-3", exam=9)]})
        assert r.status_code == 422

    def test_periods_outside_settings(self, client):
        r = client.put("/api/grades/gradebooks/crs-math_gl-6a", json={"records": [
            {"student_id": "stu-1", "periods": {"99": {"exam": 8}, "0": {"exam": 7}}},
        ]})
        assert r.status_code == 422
        assert r.json()["error"] == "validation_error"
        assert app.state.store.get_grades("crs-math") == []

    def test_activity_add_and_delete(self, client):
        r = client.post("/api/grades/gradebooks/crs-math_gl-6a/activities", json={
            "period": 1, "kind": "tasks", "activity": {"id": "act-t2", "name": "Quiz", "date": "2024-05-02"},
        })
        assert [a["id"] for a in r.json()["task_activities"]["1"]] == ["act-t1", "act-t2"]

        r = client.delete("/api/grades/gradebooks/crs-math_gl-7b/activities/tasks/1/act-t1")
        assert [a["id"] for a in r.json()["task_activities"]["1"]] == ["act-t2"]

        r = client.delete("/api/grades/gradebooks/crs-math_gl-7b/activities/tasks/1/act-t1")
        assert r.status_code == 404

    def test_submit_to_director(self, client):
        client.put("/api/grades/gradebooks/crs-math_gl-6a", json={"records": [_grades("stu-1", tasks=[4.5])]})
        r = client.post("/api/grades/gradebooks/crs-math_gl-6a/submit/1")
        assert r.json()["submitted"] == 2

        report = client.get("/api/reports/gl-6a/stu-1/1").json()["report"]
        assert report["submitted_reports"]["sub-math"]["insufficient_activities"] == "• Taller de fracciones (4.5)"


class TestAssignmentRoutes:
    """Tests for /api/assignments."""

    def test_teacher_assignments(self, client):
        subjects = client.get("/api/assignments/teacher/usr-teacher-1").json()["subjects"]
        assert [s["subject"]["name"] for s in subjects] == ["Matemáticas"]
        assert [a["id"] for a in subjects[0]["assignments"]] == ["crs-math_gl-6a", "crs-math_gl-7b"]

    def test_detail(self, client):
        body = client.get("/api/assignments/crs-sci_gl-6a").json()
        assert body["original_id"] == "crs-sci"
        assert body["task_activities"]["1"][0]["name"] == "Actividad 1"


class TestStudentRoutes:
    """Tests for /api/students."""

    def test_import_with_target_grade(self, client):
        content = "\n".join([HEADER, "Pérez;;Juan;;cualquiera", "Díaz;;Eva;;"]).encode("utf-8")
        r = client.post(
            "/api/students/import",
            files={"file": ("alumnos.csv", content, "text/csv")},
            data={"grade_level_id": "gl-7b"},
        )
        body = r.json()
        assert body["inserted"] == 2
        assert body["summary"] == "2 imported"
        names = {s["name"] for s in client.get("/api/students", params={"grade_level_id": "gl-7b"}).json()["students"]}
        assert {"Juan Pérez", "Eva Díaz"} <= names

    def test_import_rejects_other_types(self, client):
        r = client.post("/api/students/import", files={"file": ("notas.xlsx", b"x", "application/octet-stream")})
        assert r.status_code == 400

    def test_import_empty_file(self, client):
        r = client.post("/api/students/import", files={"file": ("a.csv", HEADER.encode("utf-8"), "text/csv")})
        assert r.status_code == 422

    def test_import_sample(self, client):
        body = client.post("/api/students/import/sample/students").json()
        assert body["inserted"] == 7

    def test_export(self, client):
        r = client.get("/api/students/export", params={"grade_level_id": "gl-6a"})
        assert r.status_code == 200
        assert r.content.startswith(b"\xef\xbb\xbf")
        lines = r.content.decode("utf-8-sig").splitlines()
        assert lines[0] == HEADER
        assert "García;;Ana;;6-A" in lines


class TestReportRoutes:
    """Tests for /api/reports."""

    def test_submit_and_read(self, client):
        submission = {
            "student_id": "stu-3", "grade_level_id": "gl-7b", "period": 2, "subject_id": "sub-math",
            "report_data": {"teacher_observation": "Muy bien"},
        }
        r = client.post("/api/reports/submit", json=[submission])
        assert r.json()["submitted"] == 1

        body = client.get("/api/reports/gl-7b/stu-3/2").json()
        assert body["report"]["submitted_reports"]["sub-math"]["teacher_observation"] == "Muy bien"
        assert [s["subject"]["name"] for s in body["subjects"]] == ["Matemáticas"]

    def test_director_observation(self, client):
        r = client.put("/api/reports/gl-6a/stu-2/1/observation", json={"observation": "Promovido"})
        assert r.json()["director_general_observation"] == "Promovido"
        report = client.get("/api/reports/gl-6a/stu-2/1").json()["report"]
        assert report["director_general_observation"] == "Promovido"

    def test_empty_report(self, client):
        report = client.get("/api/reports/gl-6a/stu-1/3").json()["report"]
        assert report["id"] is None
        assert report["submitted_reports"] == {}

    def test_observation_keeps_grade_level(self, client):
        client.post("/api/reports/submit", json=[{
            "student_id": "stu-1", "grade_level_id": "gl-6a", "period": 1, "subject_id": "sub-math",
            "report_data": {},
        }])
        r = client.put("/api/reports/gl-7b/stu-1/1/observation", json={"observation": "Promovido"})
        assert r.json()["grade_level_id"] == "gl-6a"

    def test_directed_grade_level(self, client):
        body = client.get("/api/reports/director/usr-teacher-1").json()
        assert body["grade_level"]["id"] == "gl-6a"
        assert [s["id"] for s in body["students"]] == ["stu-1", "stu-2"]

    def test_not_a_director(self, client):
        r = client.get("/api/reports/director/usr-nobody")
        assert r.status_code == 404
        assert r.json()["error"] == "not_found"
