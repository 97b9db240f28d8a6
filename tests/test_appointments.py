"""Tests for appointment endpoints."""

import asyncio
from datetime import datetime
from uuid import UUID

import pytest
from httpx import AsyncClient

APPOINTMENTS_URL = "/api/v1/appointments"
DAY = "2030-03-04"


def at(hour: int, minute: int = 0, day: str = DAY) -> str:
    return f"{day}T{hour:02d}:{minute:02d}:00Z"


class TestCreateAppointment:
    """Tests for POST /appointments."""

    @pytest.mark.asyncio
    async def test_create_appointment(self, book, patient, therapist):
        """Creating a valid appointment returns the record with its duration."""
        response = await book(at(9), at(10), value=150.0, observations="First visit")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["patient_id"] == str(patient["id"])
        assert data["therapist_id"] == str(therapist["id"])
        assert data["status"] == "Scheduled"
        assert data["payment_status"] == "pending"
        assert data["value"] == 150.0
        assert data["duration"] == 60
        assert data["patient"]["name"] == "Ana Souza"
        assert data["therapist"]["name"] == "Dr. Carla Dias"

    @pytest.mark.asyncio
    async def test_overlapping_appointment_conflicts(self, book):
        """A booking inside an existing one is rejected with the blocking window."""
        assert (await book(at(9), at(10))).status_code == 201

        response = await book(at(9, 30), at(10, 30))

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "ConflictException"
        assert "Ana Souza" in body["message"]
        assert "09:00–10:00" in body["message"]
        assert body["details"]["start_time"].startswith("2030-03-04T09:00:00")

    @pytest.mark.asyncio
    async def test_enclosing_appointment_conflicts(self, book):
        """A booking that fully contains an existing one is rejected."""
        assert (await book(at(10), at(10, 30))).status_code == 201

        response = await book(at(9), at(11))

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_back_to_back_appointments_allowed(self, book):
        """An appointment may start exactly when the previous one ends."""
        assert (await book(at(9), at(10))).status_code == 201
        assert (await book(at(10), at(11))).status_code == 201
        assert (await book(at(8), at(9))).status_code == 201

    @pytest.mark.asyncio
    async def test_other_therapist_not_blocked(self, book, other_therapist):
        """Overlap is only checked per therapist."""
        assert (await book(at(9), at(10))).status_code == 201

        response = await book(at(9), at(10), therapist_id=str(other_therapist["id"]))

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_cancelled_appointment_frees_the_slot(self, client, book):
        """Cancelled appointments no longer block the therapist."""
        created = (await book(at(9), at(10))).json()["data"]
        await client.patch(
            f"{APPOINTMENTS_URL}/{created['id']}/status", json={"status": "Cancelled"}
        )

        response = await book(at(9), at(10))

        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_completed_appointment_still_blocks(self, client, book):
        """Completed appointments keep occupying their window."""
        created = (await book(at(9), at(10))).json()["data"]
        await client.patch(
            f"{APPOINTMENTS_URL}/{created['id']}/status", json={"status": "Completed"}
        )

        response = await book(at(9, 15), at(9, 45))

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_create_cancelled_appointment_never_conflicts(self, book):
        """Recording an inactive appointment does not need a free window."""
        assert (await book(at(9), at(10))).status_code == 201

        response = await book(at(9), at(10), status="Cancelled")

        assert response.status_code == 201
        assert response.json()["data"]["status"] == "Cancelled"

    @pytest.mark.asyncio
    async def test_unknown_patient(self, book):
        """Unknown patient returns 404."""
        response = await book(at(9), at(10), patient_id="00000000-0000-0000-0000-000000000001")

        assert response.status_code == 404
        assert response.json()["message"] == "Patient not found"

    @pytest.mark.asyncio
    async def test_unknown_therapist(self, book):
        """Unknown therapist returns 404."""
        response = await book(at(9), at(10), therapist_id="00000000-0000-0000-0000-000000000002")

        assert response.status_code == 404
        assert response.json()["message"] == "Therapist not found"

    @pytest.mark.asyncio
    async def test_end_before_start(self, book):
        """End time must come after start time."""
        response = await book(at(10), at(9))

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_zero_length_appointment(self, book):
        """An appointment ending when it starts is rejected."""
        response = await book(at(10), at(10))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_session_number_beyond_total(self, book):
        """Session number cannot exceed the series total."""
        response = await book(
            at(9), at(10), series_id="plan-1", session_number=5, total_sessions=4
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "ValidationException"
        assert body["details"][0]["field"] == "session_number"

    @pytest.mark.asyncio
    async def test_invalid_type(self, book):
        """Appointment type must be one of the known kinds."""
        response = await book(at(9), at(10), type="Massage")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_value_must_be_positive(self, book):
        """Price must be greater than zero when given."""
        response = await book(at(9), at(10), value=0)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_required_field(self, client, appointment_payload):
        """Missing fields are reported as validation errors."""
        payload = appointment_payload(at(9), at(10))
        del payload["type"]

        response = await client.post(APPOINTMENTS_URL, json=payload)

        assert response.status_code == 400
        assert response.json()["details"]

    @pytest.mark.asyncio
    async def test_concurrent_bookings_allow_only_one(self, book):
        """Two simultaneous requests for one window cannot both succeed."""
        responses = await asyncio.gather(
            book(at(14), at(15)),
            book(at(14, 30), at(15, 30)),
        )

        codes = sorted(r.status_code for r in responses)
        assert codes == [201, 409]


class TestListAppointments:
    """Tests for GET /appointments."""

    @pytest.mark.asyncio
    async def test_list_paginates(self, client, book):
        """Listing returns a page plus pagination metadata."""
        for hour in range(9, 14):
            assert (await book(at(hour), at(hour, 45))).status_code == 201

        response = await client.get(APPOINTMENTS_URL, params={"page": 2, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [item["start_time"][11:16] for item in body["data"]] == ["11:00", "12:00"]
        assert body["pagination"] == {
            "page": 2,
            "limit": 2,
            "totalCount": 5,
            "totalPages": 3,
            "hasNextPage": True,
            "hasPreviousPage": True,
        }

    @pytest.mark.asyncio
    async def test_list_empty(self, client):
        """An empty store yields no pages."""
        response = await client.get(APPOINTMENTS_URL)

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == []
        assert body["pagination"]["totalCount"] == 0
        assert body["pagination"]["totalPages"] == 0
        assert body["pagination"]["hasNextPage"] is False

    @pytest.mark.asyncio
    async def test_list_sorted_descending(self, client, book):
        """sortOrder=desc reverses the start time order."""
        await book(at(9), at(10))
        await book(at(11), at(12))

        response = await client.get(APPOINTMENTS_URL, params={"sortOrder": "desc"})

        starts = [item["start_time"][11:16] for item in response.json()["data"]]
        assert starts == ["11:00", "09:00"]

    @pytest.mark.asyncio
    async def test_list_sorted_by_patient_name(self, client, book, other_patient):
        """Listing can be ordered by patient name."""
        await book(at(9), at(10), patient_id=str(other_patient["id"]))
        await book(at(11), at(12))

        response = await client.get(APPOINTMENTS_URL, params={"sortBy": "patient_name"})

        names = [item["patient"]["name"] for item in response.json()["data"]]
        assert names == ["Ana Souza", "Bruno Lima"]

    @pytest.mark.asyncio
    async def test_list_filters(self, client, book, other_patient):
        """Filters narrow the listing by patient, status, type and date."""
        await book(at(9), at(10))
        await book(at(11), at(12), patient_id=str(other_patient["id"]), type="Session")
        await book(at(9, day="2030-03-05"), at(10, day="2030-03-05"), status="Cancelled")

        by_patient = await client.get(
            APPOINTMENTS_URL, params={"patient_id": str(other_patient["id"])}
        )
        by_status = await client.get(APPOINTMENTS_URL, params={"status": "Cancelled"})
        by_type = await client.get(APPOINTMENTS_URL, params={"type": "Session"})
        by_date = await client.get(
            APPOINTMENTS_URL,
            params={"date_from": at(0, day="2030-03-05"), "date_to": at(23, day="2030-03-05")},
        )

        assert by_patient.json()["pagination"]["totalCount"] == 1
        assert by_status.json()["data"][0]["status"] == "Cancelled"
        assert by_type.json()["data"][0]["type"] == "Session"
        assert by_date.json()["pagination"]["totalCount"] == 1

    @pytest.mark.asyncio
    async def test_list_documentation_flags(self, client, book, repository):
        """Listing reports whether SOAP notes and assessments exist."""
        first = (await book(at(9), at(10))).json()["data"]
        await book(at(11), at(12))
        repository.add_soap_note(UUID(first["id"]))
        repository.add_assessment(UUID(first["id"]))

        response = await client.get(APPOINTMENTS_URL)

        data = response.json()["data"]
        flags = [(item["has_soap_note"], item["has_assessment"]) for item in data]
        assert flags == [(True, True), (False, False)]

    @pytest.mark.asyncio
    async def test_limit_above_maximum(self, client):
        """Page size is capped."""
        response = await client.get(APPOINTMENTS_URL, params={"limit": 101})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_page_zero(self, client):
        """Pages are 1-based."""
        response = await client.get(APPOINTMENTS_URL, params={"page": 0})

        assert response.status_code == 400


class TestGetAppointment:
    """Tests for GET /appointments/{id}."""

    @pytest.mark.asyncio
    async def test_get_appointment_with_metrics(self, client, book, repository):
        """Detail view includes derived metrics."""
        created = (await book(at(9), at(9, 45))).json()["data"]
        repository.add_soap_note(UUID(created["id"]))

        response = await client.get(f"{APPOINTMENTS_URL}/{created['id']}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == created["id"]
        assert data["metrics"] == {
            "duration": 45,
            "isToday": False,
            "isPast": False,
            "isFuture": True,
            "hasDocumentation": True,
            "hasAssessments": False,
        }

    @pytest.mark.asyncio
    async def test_get_missing_appointment(self, client):
        """Unknown appointment returns 404."""
        response = await client.get(f"{APPOINTMENTS_URL}/00000000-0000-0000-0000-000000000003")

        assert response.status_code == 404
        assert response.json()["message"] == "Appointment not found"

    @pytest.mark.asyncio
    async def test_get_malformed_id(self, client):
        """Non-UUID identifiers are rejected."""
        response = await client.get(f"{APPOINTMENTS_URL}/not-a-uuid")

        assert response.status_code == 400


class TestUpdateAppointment:
    """Tests for PUT /appointments/{id}."""

    @pytest.mark.asyncio
    async def test_reschedule(self, client, book):
        """Moving an appointment recomputes its duration."""
        created = (await book(at(9), at(10))).json()["data"]

        response = await client.put(
            f"{APPOINTMENTS_URL}/{created['id']}",
            json={"start_time": at(13), "end_time": at(13, 30), "payment_status": "paid"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["start_time"].startswith("2030-03-04T13:00:00")
        assert data["duration"] == 30
        assert data["payment_status"] == "paid"
        assert data["type"] == "Evaluation"

    @pytest.mark.asyncio
    async def test_update_does_not_conflict_with_itself(self, client, book):
        """Extending an appointment over its own window is allowed."""
        created = (await book(at(9), at(10))).json()["data"]

        response = await client.put(
            f"{APPOINTMENTS_URL}/{created['id']}", json={"end_time": at(10, 30)}
        )

        assert response.status_code == 200
        assert response.json()["data"]["duration"] == 90

    @pytest.mark.asyncio
    async def test_update_into_occupied_window(self, client, book):
        """Moving onto another booking is a conflict."""
        await book(at(9), at(10))
        second = (await book(at(10), at(11))).json()["data"]

        response = await client.put(
            f"{APPOINTMENTS_URL}/{second['id']}", json={"start_time": at(9, 30)}
        )

        assert response.status_code == 409
        assert "09:00–10:00" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_update_end_before_start(self, client, book):
        """Partial updates are validated against the stored window."""
        created = (await book(at(9), at(10))).json()["data"]

        response = await client.put(
            f"{APPOINTMENTS_URL}/{created['id']}", json={"end_time": at(8)}
        )

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "end_time"

    @pytest.mark.asyncio
    async def test_update_clears_observations(self, client, book):
        """An explicit null clears optional fields."""
        created = (await book(at(9), at(10), observations="Bring exams")).json()["data"]

        response = await client.put(
            f"{APPOINTMENTS_URL}/{created['id']}", json={"observations": None}
        )

        assert response.status_code == 200
        assert response.json()["data"]["observations"] is None

    @pytest.mark.asyncio
    async def test_update_missing_appointment(self, client):
        """Updating an unknown appointment returns 404."""
        response = await client.put(
            f"{APPOINTMENTS_URL}/00000000-0000-0000-0000-000000000004",
            json={"observations": "x"},
        )

        assert response.status_code == 404


class TestUpdateStatus:
    """Tests for PATCH /appointments/{id}/status."""

    @pytest.mark.asyncio
    async def test_complete_then_close(self, client, book):
        """Scheduled appointments can be completed and then closed."""
        created = (await book(at(9), at(10))).json()["data"]
        url = f"{APPOINTMENTS_URL}/{created['id']}/status"

        completed = await client.patch(url, json={"status": "Completed", "observations": "Done"})
        closed = await client.patch(url, json={"status": "Closed"})

        assert completed.status_code == 200
        assert completed.json()["data"]["observations"] == "Done"
        assert closed.status_code == 200
        assert closed.json()["data"]["status"] == "Closed"

    @pytest.mark.asyncio
    async def test_terminal_status_cannot_change(self, client, book):
        """Cancelled appointments cannot be completed."""
        created = (await book(at(9), at(10))).json()["data"]
        url = f"{APPOINTMENTS_URL}/{created['id']}/status"
        await client.patch(url, json={"status": "Cancelled"})

        response = await client.patch(url, json={"status": "Completed"})

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Cannot change appointment status from Cancelled to Completed"
        )

    @pytest.mark.asyncio
    async def test_same_status_is_noop(self, client, book):
        """Re-sending the current status is accepted."""
        created = (await book(at(9), at(10))).json()["data"]

        response = await client.patch(
            f"{APPOINTMENTS_URL}/{created['id']}/status", json={"status": "Scheduled"}
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_status(self, client, book):
        """Status must be a known lifecycle state."""
        created = (await book(at(9), at(10))).json()["data"]

        response = await client.patch(
            f"{APPOINTMENTS_URL}/{created['id']}/status", json={"status": "Paused"}
        )

        assert response.status_code == 400


class TestCalendar:
    """Tests for GET /appointments/calendar."""

    @pytest.mark.asyncio
    async def test_day_view(self, client, book):
        """Day view returns events, busy slots and a summary."""
        first = (await book(at(9), at(10), value=100.0)).json()["data"]
        await book(at(11), at(11, 30), type="Session")
        await book(at(13), at(14), status="Cancelled")
        await client.patch(f"{APPOINTMENTS_URL}/{first['id']}/status", json={"status": "Completed"})

        response = await client.get(f"{APPOINTMENTS_URL}/calendar", params={"date": DAY})

        assert response.status_code == 200
        data = response.json()["data"]
        assert [event["start"][11:16] for event in data["events"]] == ["09:00", "11:00"]
        assert data["events"][0]["title"] == "Ana Souza"
        assert data["events"][0]["backgroundColor"] == "#10b981"
        assert data["events"][0]["borderColor"] == "#059669"
        assert data["events"][1]["backgroundColor"] == "#8b5cf6"
        assert data["events"][1]["textColor"] == "#ffffff"

        slots = data["timeSlots"]
        assert len(slots) == 14
        assert slots[0]["timeString"] == "09:00"
        assert slots[-1]["timeString"] == "15:30"
        busy = [slot["timeString"] for slot in slots if not slot["available"]]
        assert busy == ["09:00", "09:30", "11:00"]

        assert data["summary"] == {
            "totalAppointments": 2,
            "scheduledAppointments": 1,
            "completedAppointments": 1,
            "totalRevenue": 100.0,
            "busySlots": 3,
            "availableSlots": 11,
        }
        assert datetime.fromisoformat(data["dateRange"]["start"]) == datetime.fromisoformat(
            "2030-03-04T00:00:00+00:00"
        )

    @pytest.mark.asyncio
    async def test_week_view(self, client, book):
        """Week view spans Sunday to Saturday and has no time slots."""
        await book(at(9, day="2030-03-03"), at(10, day="2030-03-03"))
        await book(at(9, day="2030-03-09"), at(10, day="2030-03-09"))
        await book(at(9, day="2030-03-10"), at(10, day="2030-03-10"))

        response = await client.get(
            f"{APPOINTMENTS_URL}/calendar", params={"date": DAY, "view": "week"}
        )

        data = response.json()["data"]
        assert len(data["events"]) == 2
        assert data["timeSlots"] == []
        assert datetime.fromisoformat(data["dateRange"]["start"]).date().isoformat() == "2030-03-03"
        assert datetime.fromisoformat(data["dateRange"]["end"]).date().isoformat() == "2030-03-09"

    @pytest.mark.asyncio
    async def test_month_view(self, client, book):
        """Month view covers the whole calendar month."""
        await book(at(9, day="2030-03-01"), at(10, day="2030-03-01"))
        await book(at(9, day="2030-03-31"), at(10, day="2030-03-31"))
        await book(at(9, day="2030-04-01"), at(10, day="2030-04-01"))

        response = await client.get(
            f"{APPOINTMENTS_URL}/calendar", params={"date": DAY, "view": "month"}
        )

        data = response.json()["data"]
        assert len(data["events"]) == 2
        assert datetime.fromisoformat(data["dateRange"]["end"]).date().isoformat() == "2030-03-31"

    @pytest.mark.asyncio
    async def test_therapist_filter(self, client, book, other_therapist):
        """Calendar can be limited to one therapist."""
        await book(at(9), at(10))
        await book(at(9), at(10), therapist_id=str(other_therapist["id"]))

        response = await client.get(
            f"{APPOINTMENTS_URL}/calendar",
            params={"date": DAY, "therapist_id": str(other_therapist["id"])},
        )

        events = response.json()["data"]["events"]
        assert len(events) == 1
        assert events[0]["therapist"]["name"] == "Dr. Diego Rocha"

    @pytest.mark.asyncio
    async def test_invalid_date(self, client):
        """Unparseable dates are rejected."""
        response = await client.get(f"{APPOINTMENTS_URL}/calendar", params={"date": "next week"})

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "date"

    @pytest.mark.asyncio
    async def test_invalid_view(self, client):
        """Only day, week and month views exist."""
        response = await client.get(
            f"{APPOINTMENTS_URL}/calendar", params={"date": DAY, "view": "year"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_defaults_to_today(self, client):
        """Without a date the calendar shows today."""
        response = await client.get(f"{APPOINTMENTS_URL}/calendar")

        assert response.status_code == 200
        assert len(response.json()["data"]["timeSlots"]) == 14


class TestSeries:
    """Tests for GET /appointments/series/{series_id}."""

    @pytest.mark.asyncio
    async def test_series_in_session_order(self, client, book):
        """Series sessions are listed by session number."""
        second = await book(
            at(9, day="2030-03-11"),
            at(10, day="2030-03-11"),
            series_id="plan-7",
            session_number=2,
            total_sessions=3,
            type="Session",
        )
        first = await book(
            at(9), at(10), series_id="plan-7", session_number=1, total_sessions=3, type="Session"
        )
        await book(at(11), at(12), series_id="other-plan", session_number=1)
        assert second.status_code == first.status_code == 201
        await client.patch(
            f"{APPOINTMENTS_URL}/{first.json()['data']['id']}/status",
            json={"status": "Completed"},
        )

        response = await client.get(f"{APPOINTMENTS_URL}/series/plan-7")

        assert response.status_code == 200
        body = response.json()
        assert [item["session_number"] for item in body["data"]] == [1, 2]
        assert body["summary"] == {
            "seriesId": "plan-7",
            "totalSessions": 3,
            "appointmentCount": 2,
            "scheduledSessions": 1,
            "completedSessions": 1,
        }

    @pytest.mark.asyncio
    async def test_unknown_series_is_empty(self, client: AsyncClient):
        """A series without appointments lists nothing."""
        response = await client.get(f"{APPOINTMENTS_URL}/series/missing")

        assert response.status_code == 200
        assert response.json()["data"] == []
        assert response.json()["summary"]["appointmentCount"] == 0
