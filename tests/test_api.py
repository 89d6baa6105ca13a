from uuid import uuid4

from conftest import TODAY, auth_headers, days_from_today

ADMIN = auth_headers("admin", "admin-1")


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Welcome to ClinicQueue API"}


async def test_only_admins_register_doctors(client):
    payload = {"name": "Dr. Kiran Patel", "specialty": "Pediatrics", "morning_start_time": "9:30 AM"}

    response = await client.post("/api/v1/doctors/", json=payload, headers=auth_headers("assistant"))
    assert response.status_code == 403

    response = await client.post("/api/v1/doctors/", json=payload, headers=ADMIN)
    assert response.status_code == 200
    doctor_id = response.json()["id"]

    config = (await client.get(f"/api/v1/doctors/{doctor_id}/session-config")).json()
    assert config["morning"] == {"start_time": "09:30", "end_time": "13:00"}


async def test_doctor_list_follows_visibility(client, make_doctor):
    own = await make_doctor(name="Dr. A")
    await make_doctor(name="Dr. B")

    assert len((await client.get("/api/v1/doctors/", headers=ADMIN)).json()) == 2

    doctor_view = await client.get("/api/v1/doctors/", headers=auth_headers("doctor", "u-a", doctor_id=own.id))
    assert [d["id"] for d in doctor_view.json()] == [str(own.id)]

    unassigned = await client.get("/api/v1/doctors/", headers=auth_headers("assistant", "u-x"))
    assert unassigned.json() == []

    assert (await client.get("/api/v1/doctors/")).status_code == 401
    bad = await client.get("/api/v1/doctors/", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


async def test_booking_and_capacity(client, make_doctor):
    doctor = await make_doctor()
    day = days_from_today(3)
    payload = {
        "doctor_id": str(doctor.id),
        "appointment_date": day.isoformat(),
        "session": "morning",
        "patient": {"name": "Anita Sharma", "phone": "9876543210"},
        "family_members": [{"name": "Ravi Sharma", "phone": "9876543210"}],
    }

    response = await client.post("/api/v1/appointments/", json=payload)
    assert response.status_code == 200
    booked = response.json()["appointments"]
    assert [a["token"] for a in booked] == ["#1", "#2"]
    assert [a["appointment_time"] for a in booked] == ["09:00", "09:20"]

    capacity = await client.get(
        f"/api/v1/doctors/{doctor.id}/capacity", params={"day": day.isoformat(), "session": "morning"}
    )
    assert capacity.json()["total_slots"] == 12
    assert capacity.json()["available_slots"] == 10

    slots = await client.get(f"/api/v1/doctors/{doctor.id}/slots", params={"day": day.isoformat(), "session": "morning"})
    assert slots.json()["free_slots"][0] == "09:40"


async def test_booking_validation_and_emergency_roles(client, make_doctor):
    doctor = await make_doctor()
    payload = {
        "doctor_id": str(doctor.id),
        "appointment_date": TODAY.isoformat(),
        "session": "evening",
        "patient": {"name": "  ", "phone": "9876543210"},
    }
    assert (await client.post("/api/v1/appointments/", json=payload)).status_code == 422

    payload["patient"]["name"] = "Anita Sharma"
    denied = await client.post("/api/v1/appointments/", json=payload)
    assert denied.status_code == 422
    assert denied.json()["detail"] == "Booking for the evening session opens at 11:00"

    payload["is_emergency"] = True
    assert (await client.post("/api/v1/appointments/", json=payload)).status_code == 403
    response = await client.post("/api/v1/appointments/", json=payload, headers=auth_headers("assistant", "u-2"))
    assert response.status_code == 200


async def test_sessions_reflect_leave_overrides(client, make_doctor):
    doctor = await make_doctor()
    day = days_from_today(4)
    headers = auth_headers("doctor", "u-a", doctor_id=doctor.id)

    response = await client.post(
        f"/api/v1/doctors/{doctor.id}/overrides",
        json={"override_date": day.isoformat(), "start_time": "09:00", "end_time": "12:00", "reason": "Surgery"},
        headers=headers,
    )
    assert response.status_code == 200
    override_id = response.json()["id"]

    sessions = (await client.get(f"/api/v1/doctors/{doctor.id}/sessions", params={"day": day.isoformat()})).json()
    allowed = {s["session"]: s["allowed"] for s in sessions["sessions"]}
    assert allowed == {"morning": False, "evening": True}

    deleted = await client.delete(f"/api/v1/doctors/{doctor.id}/overrides/{override_id}", headers=headers)
    assert deleted.status_code == 200
    sessions = (await client.get(f"/api/v1/doctors/{doctor.id}/sessions", params={"day": day.isoformat()})).json()
    assert all(s["allowed"] for s in sessions["sessions"])


async def test_invalid_override_range_is_rejected(client, make_doctor):
    doctor = await make_doctor()
    response = await client.post(
        f"/api/v1/doctors/{doctor.id}/overrides",
        json={"override_date": TODAY.isoformat(), "start_time": "12:00", "end_time": "09:00"},
        headers=ADMIN,
    )
    assert response.status_code == 422


async def test_queue_reorder_flow(client, make_doctor, make_appointment):
    doctor = await make_doctor()
    a = await make_appointment(doctor, 1, "09:00")
    b = await make_appointment(doctor, 2, "09:20")
    c = await make_appointment(doctor, 3, "09:40")
    headers = auth_headers("assistant", "u-2", assigned=[doctor.id])

    queue = (await client.get(f"/api/v1/queue/{doctor.id}", headers=headers)).json()
    assert [item["token"] for item in queue["queue"]] == ["#1", "#2", "#3"]
    assert queue["version"] == 0

    body = {"source_id": str(c.id), "target_id": str(a.id), "version": 0}
    response = await client.post(f"/api/v1/queue/{doctor.id}/reorder", json=body, headers=headers)
    assert response.status_code == 200
    assert [item["appointment_id"] for item in response.json()["queue"]] == [str(c.id), str(a.id), str(b.id)]
    assert response.json()["version"] == 1

    stale = await client.post(f"/api/v1/queue/{doctor.id}/reorder", json=body, headers=headers)
    assert stale.status_code == 409

    board = (await client.get(f"/api/v1/queue/{doctor.id}/board", headers=headers)).json()
    assert board["version"] == 1
    assert board["queue"][0]["token"] == "#3"


async def test_stale_reset_order_is_a_conflict(client, make_doctor, make_appointment):
    doctor = await make_doctor()
    await make_appointment(doctor, 1, "09:00")
    headers = auth_headers("assistant", "u-2", assigned=[doctor.id])

    first = await client.post(f"/api/v1/queue/{doctor.id}/reset-order", json={"version": 0}, headers=headers)
    assert first.status_code == 200
    assert first.json()["version"] == 1

    stale = await client.post(f"/api/v1/queue/{doctor.id}/reset-order", json={"version": 0}, headers=headers)
    assert stale.status_code == 409


async def test_board_follows_queue_actions(client, make_doctor, make_appointment):
    doctor = await make_doctor()
    a = await make_appointment(doctor, 1, "09:00")
    b = await make_appointment(doctor, 2, "09:20")
    c = await make_appointment(doctor, 3, "09:40")
    headers = auth_headers("assistant", "u-2", assigned=[doctor.id])
    board_url = f"/api/v1/queue/{doctor.id}/board"

    async def board_tokens():
        board = (await client.get(board_url, headers=headers)).json()
        return [(item["token"], item["status"]) for item in board["queue"]]

    assert len(await board_tokens()) == 3

    await client.post(f"/api/v1/queue/appointments/{b.id}/check-in", headers=headers)
    assert await board_tokens() == [("#1", "waiting"), ("#2", "checked_in"), ("#3", "waiting")]

    await client.post(f"/api/v1/queue/appointments/{a.id}/complete", headers=headers)
    assert [token for token, _ in await board_tokens()] == ["#2", "#3"]

    await client.patch(f"/api/v1/appointments/{c.id}/status", json={"status": "cancelled"}, headers=headers)
    assert [token for token, _ in await board_tokens()] == ["#2"]


async def test_queue_is_hidden_from_other_doctors(client, make_doctor):
    doctor = await make_doctor()
    other = auth_headers("doctor", "u-b", doctor_id=uuid4())

    assert (await client.get(f"/api/v1/queue/{doctor.id}", headers=other)).status_code == 403
    assert (await client.get(f"/api/v1/queue/{doctor.id}", headers=auth_headers("patient", "p-1"))).status_code == 403


async def test_skip_check_in_and_call_next(client, make_doctor, make_appointment):
    doctor = await make_doctor()
    a = await make_appointment(doctor, 1, "09:00")
    b = await make_appointment(doctor, 2, "09:20")
    headers = auth_headers("doctor", "u-a", doctor_id=doctor.id)

    skipped = await client.post(f"/api/v1/queue/{doctor.id}/skip/{a.id}", headers=headers)
    assert [item["appointment_id"] for item in skipped.json()["queue"]] == [str(b.id)]
    restored = await client.post(f"/api/v1/queue/{doctor.id}/restore-skipped", headers=headers)
    assert len(restored.json()["queue"]) == 2

    checked = await client.post(f"/api/v1/queue/appointments/{b.id}/check-in", headers=headers)
    assert checked.status_code == 200
    assert checked.json()["checked_in_at"] is not None

    head = await client.post(f"/api/v1/queue/{doctor.id}/call-next", json={}, headers=headers)
    assert head.json()["id"] == str(a.id)

    head = await client.post(
        f"/api/v1/queue/{doctor.id}/call-next", json={"current_appointment_id": str(a.id)}, headers=headers
    )
    assert head.json()["id"] == str(b.id)

    stats = (await client.get(f"/api/v1/queue/{doctor.id}/stats", headers=headers)).json()
    assert stats["completed"] == 1
    assert stats["total"] == 1


async def test_status_update_and_break(client, make_doctor, make_appointment):
    doctor = await make_doctor()
    appointment = await make_appointment(doctor, 1, "09:00")
    headers = auth_headers("admin", "admin-1")

    response = await client.patch(
        f"/api/v1/appointments/{appointment.id}/status", json={"status": "no_show"}, headers=headers
    )
    assert response.json()["status"] == "no_show"
    again = await client.patch(
        f"/api/v1/appointments/{appointment.id}/status", json={"status": "confirmed"}, headers=headers
    )
    assert again.status_code == 409

    bad = await client.put(
        f"/api/v1/doctors/{doctor.id}/break",
        json={"break_start": "2026-03-10T07:00:00Z", "break_end": "2026-03-10T06:00:00Z"},
        headers=headers,
    )
    assert bad.status_code == 400

    on_break = await client.put(
        f"/api/v1/doctors/{doctor.id}/break",
        json={"break_start": "2026-03-10T01:30:00Z", "break_end": "2026-03-10T02:00:00Z"},
        headers=headers,
    )
    assert on_break.json()["is_on_break"] is True

    cleared = await client.delete(f"/api/v1/doctors/{doctor.id}/break", headers=headers)
    assert cleared.json()["is_on_break"] is False


async def test_missing_doctor_is_not_found(client):
    response = await client.get(f"/api/v1/doctors/{uuid4()}/session-config")
    assert response.status_code == 404
