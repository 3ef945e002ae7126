# tests/test_sessions_api.py
from datetime import timedelta
from http import HTTPStatus

from app.services import mentorship_repository as repo
from tests.factories import (
    ADA,
    ALAN,
    FIXED_NOW,
    GRACE,
    LINUS,
    contact,
    feedback,
    headers_for,
    iso,
    mentor,
    participant,
    prep,
    session_record,
    staff,
    student,
    team,
)

KEN = contact("recKen", "Ken Thompson", "ken@student.org")
BOREALIS = team("recTeamBorealis", "Team Borealis", members=(KEN,))


def _seed_two_teams(baseql):
    baseql.sessions = [
        session_record("recAurora"),
        session_record(
            "recBorealis",
            participants=[participant(LINUS)],
            team_record=BOREALIS,
        ),
    ]


def _session_ids(body):
    return [s["id"] for group in body["groups"] for s in group["sessions"]]


# -- identity -----------------------------------------------------------------


def test_sessions_require_identity_headers(client):
    resp = client.get("/sessions")
    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_unknown_user_type_is_rejected(client):
    resp = client.get("/sessions", headers={"X-User-Email": "x@y.org", "X-User-Type": "admin"})
    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert "unknown user type" in resp.json()["detail"].lower()


# -- list ---------------------------------------------------------------------


def test_students_only_see_their_team_sessions(client, baseql):
    _seed_two_teams(baseql)

    resp = client.get("/sessions", headers=headers_for(student()))

    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert body["total"] == 1
    assert body["groups"][0]["key"] == "all"
    assert _session_ids(body) == ["recAurora"]
    assert body["capabilities"]["canCreate"] is False


def test_mentors_only_see_sessions_they_mentor(client, baseql):
    _seed_two_teams(baseql)

    body = client.get("/sessions", headers=headers_for(mentor())).json()

    assert _session_ids(body) == ["recAurora"]


def test_staff_see_everything(client, baseql):
    _seed_two_teams(baseql)

    body = client.get("/sessions", headers=headers_for(staff())).json()

    assert body["total"] == 2
    assert sorted(_session_ids(body)) == ["recAurora", "recBorealis"]
    assert body["capabilities"]["canCreate"] is True
    assert "emailStatus" in body["capabilities"]["visibleColumns"]


def test_feedback_is_redacted_for_non_staff(client, baseql):
    baseql.sessions = [
        session_record(
            "recPast",
            start=FIXED_NOW - timedelta(days=2),
            status="Completed",
            feedback_records=[
                feedback("fbMentor", "Mentor", ADA, rating=4, privateNotes="Team seemed stuck"),
                feedback("fbAlan", "Mentee", ALAN, rating=5),
            ],
        )
    ]

    def _feedback(user):
        body = client.get("/sessions", headers=headers_for(user)).json()
        items = body["groups"][0]["sessions"][0]["feedback"]
        return {f["id"]: f for f in items}

    as_grace = _feedback(student())
    assert as_grace["fbMentor"]["privateNotes"] is None
    assert as_grace["fbAlan"]["rating"] is None

    as_alan = _feedback(student(email=ALAN["email"], contact_id="recAlan"))
    assert as_alan["fbAlan"]["rating"] == 5

    as_staff = _feedback(staff())
    assert as_staff["fbMentor"]["privateNotes"] == "Team seemed stuck"
    assert as_staff["fbAlan"]["rating"] == 5


def test_list_filter_and_grouping(client, baseql):
    baseql.sessions = [
        session_record("recNext", start=FIXED_NOW + timedelta(days=1)),
        session_record("recCancelled", start=FIXED_NOW + timedelta(days=3), status="Cancelled"),
        session_record("recDone", start=FIXED_NOW - timedelta(days=3), status="Completed"),
    ]

    resp = client.get(
        "/sessions",
        params={"filter": "cancelled", "groupBy": "status"},
        headers=headers_for(staff()),
    )

    body = resp.json()
    assert body["total"] == 3
    assert body["count"] == 1
    assert [g["key"] for g in body["groups"]] == ["Cancelled"]
    assert body["stats"]["total"] == 3
    assert body["stats"]["cancelled"] == 1


def test_list_rejects_unknown_sort(client):
    resp = client.get("/sessions", params={"sort": "length"}, headers=headers_for(staff()))
    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_list_502_when_data_provider_is_down(client, baseql):
    baseql.unavailable = True

    resp = client.get("/sessions", headers=headers_for(staff()))

    assert resp.status_code == HTTPStatus.BAD_GATEWAY
    assert "data provider" in resp.json()["detail"].lower()


# -- detail -------------------------------------------------------------------


def test_session_detail_for_student(client, baseql):
    baseql.sessions = [session_record("recAurora")]

    resp = client.get("/sessions/recAurora", headers=headers_for(student()))

    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert body["session"]["id"] == "recAurora"
    assert body["phase"] == "upcoming"
    assert body["defaultTab"] == "preparation"
    # Wednesday 2025-03-12 15:00 UTC
    assert body["displayDate"] == "Wed, Mar 12, 2025"
    assert body["displayTime"] == "11:00 AM ET"
    assert body["timeInfo"]["minutesUntilStart"] == 2 * 24 * 60
    assert body["timeInfo"]["isStartingSoon"] is False
    assert body["mentors"][0]["contact"]["fullName"] == "Ada Lovelace"
    assert body["mentors"][0]["isLead"] is True
    assert body["eligibility"]["prepEligible"] is True
    assert body["eligibility"]["meetingLinkLocked"] is True
    assert body["seriesPosition"] is None


def test_session_detail_for_staff_after_the_session(client, baseql):
    baseql.sessions = [session_record("recPast", start=FIXED_NOW - timedelta(days=1))]

    body = client.get("/sessions/recPast", headers=headers_for(staff())).json()

    assert body["eligibility"]["feedbackEligible"] is True
    assert body["eligibility"]["needsFeedback"] is True
    assert body["capabilities"]["canAddFeedback"] is True
    assert body["defaultTab"] == "overview"


def test_session_detail_for_student_after_an_unclosed_session(client, baseql):
    baseql.sessions = [session_record("recPast", start=FIXED_NOW - timedelta(days=1), status="Scheduled")]

    body = client.get("/sessions/recPast", headers=headers_for(student())).json()

    assert body["phase"] is None
    assert body["timeInfo"]["isOverdue"] is True
    assert body["defaultTab"] == "feedback"
    assert body["eligibility"]["prepEligible"] is False
    assert body["eligibility"]["feedbackEligible"] is True


def test_session_detail_forbidden_for_other_teams(client, baseql):
    _seed_two_teams(baseql)

    resp = client.get("/sessions/recBorealis", headers=headers_for(student()))

    assert resp.status_code == HTTPStatus.FORBIDDEN


def test_session_detail_404(client):
    resp = client.get("/sessions/recMissing", headers=headers_for(staff()))
    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_session_detail_reports_series_position(client, baseql):
    baseql.sessions = [
        session_record(f"recS{n}", start=FIXED_NOW + timedelta(days=7 * n + 1), seriesId="ser-1")
        for n in range(3)
    ]

    body = client.get("/sessions/recS1", headers=headers_for(staff())).json()

    assert body["seriesPosition"] == {"position": 2, "total": 3}


# -- update -------------------------------------------------------------------


def test_only_staff_update_sessions(client, baseql):
    baseql.sessions = [session_record("recAurora")]

    resp = client.patch("/sessions/recAurora", json={"agenda": "Demo day"}, headers=headers_for(mentor()))
    assert resp.status_code == HTTPStatus.FORBIDDEN
    assert baseql.calls_to(repo.UPDATE_SESSION_MUTATION) == []

    resp = client.patch("/sessions/recAurora", json={"agenda": "Demo day"}, headers=headers_for(staff()))
    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["agenda"] == "Demo day"
    assert baseql.calls_to(repo.UPDATE_SESSION_MUTATION) == [{"id": "recAurora", "agenda": "Demo day"}]


def test_update_validation(client, baseql):
    baseql.sessions = [session_record("recAurora")]
    headers = headers_for(staff())

    assert client.patch("/sessions/recAurora", json={}, headers=headers).status_code == HTTPStatus.BAD_REQUEST
    assert (
        client.patch("/sessions/recAurora", json={"status": "Postponed"}, headers=headers).status_code
        == HTTPStatus.UNPROCESSABLE_ENTITY
    )
    assert (
        client.patch("/sessions/recMissing", json={"agenda": "x"}, headers=headers).status_code
        == HTTPStatus.NOT_FOUND
    )


# -- prep ---------------------------------------------------------------------


def test_student_submits_prep(client, baseql):
    baseql.sessions = [session_record("recAurora")]

    resp = client.post(
        "/sessions/recAurora/prep",
        json={"questions": "How do we validate pricing?"},
        headers=headers_for(student()),
    )

    assert resp.status_code == HTTPStatus.CREATED
    assert resp.json()["id"] == "recPrepNew"
    variables = baseql.calls_to(repo.CREATE_PREP_MUTATION)[0]
    assert variables["respondant"] == ["recGrace"]


def test_prep_cannot_be_submitted_twice(client, baseql):
    baseql.sessions = [session_record("recAurora", prep_records=[prep("p1", GRACE)])]

    resp = client.post(
        "/sessions/recAurora/prep",
        json={"questions": "Again?"},
        headers=headers_for(student()),
    )

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert resp.json()["detail"] == "Preparation already submitted."


def test_prep_rules(client, baseql):
    baseql.sessions = [
        session_record("recAurora"),
        session_record("recStarted", start=FIXED_NOW - timedelta(minutes=10)),
        session_record("recNoPrep", requirePrep=False),
    ]
    body = {"agendaItems": "Demo"}

    assert (
        client.post("/sessions/recAurora/prep", json=body, headers=headers_for(mentor())).status_code
        == HTTPStatus.FORBIDDEN
    )
    outsider = student(email=KEN["email"], contact_id="recKen")
    assert (
        client.post("/sessions/recAurora/prep", json=body, headers=headers_for(outsider)).status_code
        == HTTPStatus.FORBIDDEN
    )
    for session_id in ("recStarted", "recNoPrep"):
        resp = client.post(f"/sessions/{session_id}/prep", json=body, headers=headers_for(student()))
        assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert (
        client.post("/sessions/recAurora/prep", json={"questions": " "}, headers=headers_for(student())).status_code
        == HTTPStatus.UNPROCESSABLE_ENTITY
    )


# -- feedback -----------------------------------------------------------------


def test_student_feedback_is_stored_as_mentee(client, baseql):
    baseql.sessions = [session_record("recPast", start=FIXED_NOW - timedelta(days=1))]

    resp = client.post(
        "/sessions/recPast/feedback",
        json={"rating": 5, "whatWentWell": "Clear next steps"},
        headers=headers_for(student()),
    )

    assert resp.status_code == HTTPStatus.CREATED
    assert resp.json()["role"] == "Mentee"
    variables = baseql.calls_to(repo.CREATE_FEEDBACK_MUTATION)[0]
    assert variables["role"] == "Mentee"
    assert variables["respondant"] == ["recGrace"]


def test_mentor_feedback_is_stored_as_mentor(client, baseql):
    baseql.sessions = [session_record("recPast", start=FIXED_NOW - timedelta(days=1))]

    resp = client.post("/sessions/recPast/feedback", json={"rating": 4}, headers=headers_for(mentor()))

    assert resp.status_code == HTTPStatus.CREATED
    assert baseql.calls_to(repo.CREATE_FEEDBACK_MUTATION)[0]["role"] == "Mentor"


def test_feedback_opens_once_the_session_has_started(client, baseql):
    baseql.sessions = [session_record("recLive", start=FIXED_NOW - timedelta(minutes=20))]

    resp = client.post("/sessions/recLive/feedback", json={"rating": 4}, headers=headers_for(mentor()))

    assert resp.status_code == HTTPStatus.CREATED
    description = client.app.openapi()["paths"]["/sessions/{session_id}/feedback"]["post"]["description"]
    assert "has started" in description


def test_feedback_not_allowed_before_the_session_or_twice(client, baseql):
    baseql.sessions = [
        session_record("recAurora"),
        session_record(
            "recPast",
            start=FIXED_NOW - timedelta(days=1),
            feedback_records=[feedback("fb1", "Mentor", ADA)],
        ),
    ]

    assert (
        client.post("/sessions/recAurora/feedback", json={"rating": 5}, headers=headers_for(student())).status_code
        == HTTPStatus.FORBIDDEN
    )
    assert (
        client.post("/sessions/recPast/feedback", json={"rating": 5}, headers=headers_for(mentor())).status_code
        == HTTPStatus.FORBIDDEN
    )
    assert (
        client.post("/sessions/recPast/feedback", json={"rating": 9}, headers=headers_for(student())).status_code
        == HTTPStatus.UNPROCESSABLE_ENTITY
    )


# -- recurring series ---------------------------------------------------------


def _series_payload(start):
    return {
        "scheduledStart": iso(start),
        "recurrence": {"frequency": "weekly", "occurrences": 3},
        "sessionConfig": {
            "sessionType": "Team Check-in",
            "teamId": "recTeamAurora",
            "mentors": [
                {"contactId": "recAda", "role": "Lead Mentor"},
                {"contactId": "recLinus", "role": "Supporting Mentor"},
            ],
        },
    }


def test_preview_recurrence(client):
    resp = client.post(
        "/sessions/recurring/preview",
        json={"scheduledStart": "2025-03-11T17:00:00Z", "recurrence": {"frequency": "weekly", "occurrences": 3}},
        headers=headers_for(staff()),
    )

    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert body["count"] == 3
    assert body["rrule"] == "FREQ=WEEKLY;COUNT=3"
    assert body["description"] == "Weekly for 3 sessions"
    assert body["occurrences"][-1].startswith("2025-03-25T17:00:00")


def test_preview_recurrence_on_selected_weekdays(client):
    resp = client.post(
        "/sessions/recurring/preview",
        json={
            "scheduledStart": "2025-03-11T17:00:00Z",
            "recurrence": {"frequency": "weekly", "occurrences": 4, "daysOfWeek": [1, 3]},
        },
        headers=headers_for(staff()),
    )

    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert [o[:10] for o in body["occurrences"]] == ["2025-03-12", "2025-03-17", "2025-03-19", "2025-03-24"]
    assert body["rrule"] == "FREQ=WEEKLY;COUNT=4;BYDAY=MO,WE"
    assert body["description"] == "Weekly on Mon, Wed for 4 sessions"


def test_preview_rejects_bad_patterns_and_non_staff(client):
    bad = {"scheduledStart": "2025-03-11T17:00:00Z", "recurrence": {"frequency": "daily", "occurrences": 3}}
    assert (
        client.post("/sessions/recurring/preview", json=bad, headers=headers_for(staff())).status_code
        == HTTPStatus.BAD_REQUEST
    )
    assert (
        client.post("/sessions/recurring/preview", json=bad, headers=headers_for(student())).status_code
        == HTTPStatus.FORBIDDEN
    )


def test_create_recurring_series(client, baseql):
    resp = client.post(
        "/sessions/recurring",
        json=_series_payload(FIXED_NOW + timedelta(days=1)),
        headers=headers_for(staff()),
    )

    assert resp.status_code == HTTPStatus.CREATED
    body = resp.json()
    assert body["count"] == 3
    assert body["failed"] == 0
    assert [s["id"] for s in body["sessions"]] == ["recNew01", "recNew02", "recNew03"]

    inserts = baseql.calls_to(repo.CREATE_SESSION_MUTATION)
    assert {v["seriesId"] for v in inserts} == {body["seriesId"]}
    assert inserts[0]["rrule"] == "FREQ=WEEKLY;COUNT=3"
    assert all("rrule" not in v for v in inserts[1:])
    # Two mentors linked to each of the three sessions.
    assert len(baseql.calls_to(repo.CREATE_PARTICIPANT_MUTATION)) == 6


def test_create_recurring_requires_future_start_and_staff(client, baseql):
    past = client.post(
        "/sessions/recurring",
        json=_series_payload(FIXED_NOW - timedelta(hours=1)),
        headers=headers_for(staff()),
    )
    assert past.status_code == HTTPStatus.BAD_REQUEST
    assert "future" in past.json()["detail"]

    as_mentor = client.post(
        "/sessions/recurring",
        json=_series_payload(FIXED_NOW + timedelta(days=1)),
        headers=headers_for(mentor()),
    )
    assert as_mentor.status_code == HTTPStatus.FORBIDDEN
    assert baseql.calls_to(repo.CREATE_SESSION_MUTATION) == []


def _seed_series(baseql):
    baseql.sessions = [
        session_record(
            f"recS{n}",
            start=FIXED_NOW + timedelta(days=7 * n + 1),
            seriesId="ser-1",
            rrule="FREQ=WEEKLY;COUNT=3" if n == 0 else None,
        )
        for n in range(3)
    ]


def test_read_series(client, baseql):
    _seed_series(baseql)

    resp = client.get("/sessions/series/ser-1", headers=headers_for(student()))

    assert resp.status_code == HTTPStatus.OK
    body = resp.json()
    assert body["count"] == 3
    assert body["upcomingCount"] == 3
    assert body["firstSessionId"] == "recS0"
    assert body["rrule"] == "FREQ=WEEKLY;COUNT=3"


def test_read_series_hidden_from_outsiders(client, baseql):
    _seed_series(baseql)
    outsider = student(email=KEN["email"], contact_id="recKen")

    assert client.get("/sessions/series/ser-1", headers=headers_for(outsider)).status_code == HTTPStatus.NOT_FOUND
    assert client.get("/sessions/series/ser-404", headers=headers_for(staff())).status_code == HTTPStatus.NOT_FOUND


def test_update_future_sessions_of_series(client, baseql):
    _seed_series(baseql)
    payload = {"sessionId": "recS1", "scope": "future", "updates": {"agenda": "Bring demos"}}

    assert (
        client.patch("/sessions/series/ser-1", json=payload, headers=headers_for(mentor())).status_code
        == HTTPStatus.FORBIDDEN
    )

    resp = client.patch("/sessions/series/ser-1", json=payload, headers=headers_for(staff()))

    assert resp.status_code == HTTPStatus.OK
    assert resp.json() == {"seriesId": "ser-1", "scope": "future", "affectedCount": 2}
    assert [v["id"] for v in baseql.calls_to(repo.UPDATE_SESSION_MUTATION)] == ["recS1", "recS2"]


def test_rescheduling_a_series_keeps_its_spacing(client, baseql):
    _seed_series(baseql)
    payload = {"sessionId": "recS0", "scope": "all", "updates": {"scheduledStart": "2025-03-11T16:00:00Z"}}

    resp = client.patch("/sessions/series/ser-1", json=payload, headers=headers_for(staff()))

    assert resp.status_code == HTTPStatus.OK
    assert [v["scheduledStart"] for v in baseql.calls_to(repo.UPDATE_SESSION_MUTATION)] == [
        "2025-03-11T16:00:00Z",
        "2025-03-18T16:00:00Z",
        "2025-03-25T16:00:00Z",
    ]


def test_rescheduling_a_series_from_an_unscheduled_session_is_400(client, baseql):
    _seed_series(baseql)
    baseql.sessions[1]["scheduledStart"] = None
    payload = {"sessionId": "recS1", "scope": "future", "updates": {"scheduledStart": "2025-03-20T16:00:00Z"}}

    resp = client.patch("/sessions/series/ser-1", json=payload, headers=headers_for(staff()))

    assert resp.status_code == HTTPStatus.BAD_REQUEST
    assert baseql.calls_to(repo.UPDATE_SESSION_MUTATION) == []


def test_update_series_with_foreign_session_is_404(client, baseql):
    _seed_series(baseql)
    payload = {"sessionId": "recOther", "scope": "all", "updates": {"agenda": "x"}}

    resp = client.patch("/sessions/series/ser-1", json=payload, headers=headers_for(staff()))

    assert resp.status_code == HTTPStatus.NOT_FOUND


def test_delete_whole_series(client, baseql):
    _seed_series(baseql)

    resp = client.delete(
        "/sessions/series/ser-1",
        params={"session_id": "recS2", "scope": "all"},
        headers=headers_for(staff()),
    )

    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["affectedCount"] == 3
    assert baseql.sessions == []


def test_delete_counts_only_successful_deletes(client, baseql):
    _seed_series(baseql)
    baseql.failing_ids = {"recS1"}

    resp = client.delete(
        "/sessions/series/ser-1",
        params={"session_id": "recS0", "scope": "all"},
        headers=headers_for(staff()),
    )

    assert resp.json()["affectedCount"] == 2
    assert [s["id"] for s in baseql.sessions] == ["recS1"]
