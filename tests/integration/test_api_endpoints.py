"""API endpoint integration tests.

Tests the FastAPI endpoints for daily time record operations.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import text

pytestmark = pytest.mark.asyncio


def scan(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute)


async def calculate(client: AsyncClient, employee_id, work_date: str) -> dict:
    response = await client.post(
        f"/api/v1/employees/{employee_id}/dtr/calculate",
        json={"work_date": work_date},
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Health endpoint should return 200."""
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["timestamp"] == "2024-01-20T12:00:00"

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"
        assert response.json()["missing_tables"] == []

    async def test_readiness_reports_missing_tables(self, client: AsyncClient, session):
        await session.execute(text("DROP TABLE holiday"))
        await session.commit()

        response = await client.get("/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "not_ready", "missing_tables": ["holiday"]}

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestCalculation:
    """Test calculation endpoints."""

    async def test_calculate_day(self, client, session, scheduled_employee, add_scans):
        await add_scans(scheduled_employee, (scan(15, 8, 10), "in"), (scan(15, 17, 30), "out"))
        await session.commit()

        data = await calculate(client, scheduled_employee.employee_id, "2024-01-15")

        assert data["work_date"] == "2024-01-15"
        assert data["status"] == "present"
        assert data["late_minutes"] == 10
        assert data["total_work_minutes"] == 500
        assert data["total_break_minutes"] == 60
        assert data["overtime_minutes"] == 30
        assert data["overtime_approved"] is False
        assert data["needs_review"] is False
        assert data["first_in"] == "2024-01-15T08:10:00"
        assert data["computed_at"] == "2024-01-20T12:00:00"
        assert [p["punch_type"] for p in data["punches"]] == ["in", "out"]

    async def test_recalculate_keeps_record_id(self, client, scheduled_employee):
        first = await calculate(client, scheduled_employee.employee_id, "2024-01-15")
        second = await calculate(client, scheduled_employee.employee_id, "2024-01-15")

        assert first["daily_time_record_id"] == second["daily_time_record_id"]

    async def test_calculate_unknown_employee(self, client):
        response = await client.post(
            f"/api/v1/employees/{uuid4()}/dtr/calculate",
            json={"work_date": "2024-01-15"},
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Employee not found"

    async def test_calculate_range(self, client, scheduled_employee):
        response = await client.post(
            f"/api/v1/employees/{scheduled_employee.employee_id}/dtr/calculate-range",
            json={"date_from": "2024-01-13", "date_to": "2024-01-15"},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["count"] == 3
        assert [item["status"] for item in data["items"]] == ["rest_day", "rest_day", "absent"]

    async def test_calculate_range_reversed(self, client, scheduled_employee):
        response = await client.post(
            f"/api/v1/employees/{scheduled_employee.employee_id}/dtr/calculate-range",
            json={"date_from": "2024-01-15", "date_to": "2024-01-13"},
        )

        assert response.status_code == 422

    async def test_calculate_range_too_long(self, client, scheduled_employee):
        response = await client.post(
            f"/api/v1/employees/{scheduled_employee.employee_id}/dtr/calculate-range",
            json={"date_from": "2024-01-01", "date_to": "2024-03-31"},
        )

        assert response.status_code == 422

    async def test_malformed_schedule(
        self, client, session, employee, make_schedule, assign_schedule, overwrite_time_configuration
    ):
        malformed = await make_schedule("malformed", {"start_time": "08:00", "end_time": "17:00"})
        await assign_schedule(employee, malformed)
        await overwrite_time_configuration(malformed, {"start_time": "08:00"})
        await session.commit()

        response = await client.post(
            f"/api/v1/employees/{employee.employee_id}/dtr/calculate",
            json={"work_date": "2024-01-15"},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_SCHEDULE"


class TestRecordQueries:
    """Test record listing and detail."""

    async def test_list_filters(self, client, session, scheduled_employee, add_scans):
        await add_scans(scheduled_employee, (scan(16, 8, 0), "in"))
        await session.commit()
        await calculate(client, scheduled_employee.employee_id, "2024-01-15")
        await calculate(client, scheduled_employee.employee_id, "2024-01-16")

        response = await client.get("/api/v1/dtr", params={"needs_review": "true"})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["work_date"] == "2024-01-16"
        assert data["items"][0]["review_reason"] == "Missing time-out"

        response = await client.get(
            "/api/v1/dtr",
            params={"employee_id": str(scheduled_employee.employee_id), "status": "absent"},
        )
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["work_date"] == "2024-01-15"

    async def test_list_is_newest_first_and_paginated(self, client, scheduled_employee):
        for day in ("2024-01-15", "2024-01-16", "2024-01-17"):
            await calculate(client, scheduled_employee.employee_id, day)

        response = await client.get("/api/v1/dtr", params={"page": 1, "page_size": 2})
        data = response.json()

        assert data["total"] == 3
        assert [item["work_date"] for item in data["items"]] == ["2024-01-17", "2024-01-16"]

    async def test_list_rejects_unknown_status(self, client):
        response = await client.get("/api/v1/dtr", params={"status": "vacation"})

        assert response.status_code == 422

    async def test_get_record(self, client, scheduled_employee):
        created = await calculate(client, scheduled_employee.employee_id, "2024-01-15")

        response = await client.get(f"/api/v1/dtr/{created['daily_time_record_id']}")

        assert response.status_code == 200
        assert response.json()["status"] == "absent"
        assert response.json()["punches"] == []

    async def test_get_record_not_found(self, client):
        response = await client.get(f"/api/v1/dtr/{uuid4()}")

        assert response.status_code == 404


class TestReviewWorkflow:
    """Test overtime approval, remarks and review resolution."""

    async def test_approve_overtime(self, client, session, scheduled_employee, add_scans):
        await add_scans(scheduled_employee, (scan(13, 10, 0), "in"), (scan(13, 14, 0), "out"))
        await session.commit()
        record = await calculate(client, scheduled_employee.employee_id, "2024-01-13")

        response = await client.post(f"/api/v1/dtr/{record['daily_time_record_id']}/approve-overtime")

        assert response.status_code == 200, response.text
        assert response.json()["data"]["overtime_approved"] is True

    async def test_approve_overtime_without_overtime(self, client, scheduled_employee):
        record = await calculate(client, scheduled_employee.employee_id, "2024-01-15")

        response = await client.post(f"/api/v1/dtr/{record['daily_time_record_id']}/approve-overtime")

        assert response.status_code == 422
        assert response.json()["detail"] == "No overtime to approve for this record."

    async def test_update_remarks(self, client, scheduled_employee):
        record = await calculate(client, scheduled_employee.employee_id, "2024-01-15")

        response = await client.patch(
            f"/api/v1/dtr/{record['daily_time_record_id']}/remarks",
            json={"remarks": "Approved leave"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["remarks"] == "Approved leave"

    async def test_resolve_with_schedule_end(self, client, session, scheduled_employee, add_scans):
        await add_scans(scheduled_employee, (scan(16, 8, 0), "in"))
        await session.commit()
        record = await calculate(client, scheduled_employee.employee_id, "2024-01-16")
        assert record["needs_review"] is True

        response = await client.post(
            f"/api/v1/dtr/{record['daily_time_record_id']}/resolve-review",
            json={"resolution_type": "use_schedule_end", "resolved_by": "Alice", "remarks": "Badge left at desk"},
        )

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["needs_review"] is False
        assert data["last_out"] == "2024-01-16T17:00:00"
        assert data["total_work_minutes"] == 480
        assert data["remarks"] == "[Resolved by Alice on Jan 20, 2024 12:00pm] Badge left at desk"

    async def test_resolve_manual_time_out_requires_time(self, client, session, scheduled_employee, add_scans):
        await add_scans(scheduled_employee, (scan(16, 8, 0), "in"))
        await session.commit()
        record = await calculate(client, scheduled_employee.employee_id, "2024-01-16")

        response = await client.post(
            f"/api/v1/dtr/{record['daily_time_record_id']}/resolve-review",
            json={"resolution_type": "manual_time_out"},
        )

        assert response.status_code == 422

    async def test_resolve_unflagged_record(self, client, scheduled_employee):
        record = await calculate(client, scheduled_employee.employee_id, "2024-01-15")

        response = await client.post(
            f"/api/v1/dtr/{record['daily_time_record_id']}/resolve-review",
            json={"resolution_type": "no_change"},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "This record does not need review."


class TestSummaries:
    """Test period summary endpoints."""

    async def test_employee_dtr(self, client, session, scheduled_employee, add_scans):
        await add_scans(scheduled_employee, (scan(15, 8, 0), "in"), (scan(15, 17, 0), "out"))
        await session.commit()
        for day in ("2024-01-15", "2024-01-16"):
            await calculate(client, scheduled_employee.employee_id, day)

        response = await client.get(
            f"/api/v1/employees/{scheduled_employee.employee_id}/dtr",
            params={"date_from": "2024-01-15", "date_to": "2024-01-21"},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        attendance = data["summary"]["attendance"]
        assert attendance["present_days"] == 1
        assert attendance["absent_days"] == 1
        assert Decimal(str(attendance["attendance_rate"])) == Decimal("50")
        assert data["summary"]["period"]["total_days"] == 7
        assert [row["day_of_week"] for row in data["daily"]] == ["Monday", "Tuesday"]
        assert data["daily"][0]["first_in"] == "08:00"

    async def test_employee_summary(self, client, scheduled_employee):
        await calculate(client, scheduled_employee.employee_id, "2024-01-15")

        response = await client.get(
            f"/api/v1/employees/{scheduled_employee.employee_id}/dtr/summary",
            params={"date_from": "2024-01-15", "date_to": "2024-01-15"},
        )

        assert response.status_code == 200
        assert response.json()["attendance"]["absent_days"] == 1

    async def test_summary_rejects_reversed_period(self, client, scheduled_employee):
        response = await client.get(
            f"/api/v1/employees/{scheduled_employee.employee_id}/dtr/summary",
            params={"date_from": "2024-01-21", "date_to": "2024-01-15"},
        )

        assert response.status_code == 422

    async def test_department_summary(self, client, department, scheduled_employee):
        await calculate(client, scheduled_employee.employee_id, "2024-01-15")

        response = await client.get(
            f"/api/v1/departments/{department.department_id}/dtr/summary",
            params={"date_from": "2024-01-15", "date_to": "2024-01-21"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["department_id"] == str(department.department_id)
        assert data["employee_count"] == 1
