"""
API contract tests

These tests verify:
1. Success and error envelopes have a stable shape
2. HTTP status codes match the error taxonomy
3. Role and ownership guards hold at the HTTP boundary
4. File routes redirect or stream with the right headers
"""
from datetime import timedelta

import pytest

from exam_tester.errors import ErrorCode
from exam_tester.routes.file_responses import content_disposition
from exam_tester.security.auth import create_access_token

from .conftest import PDF_BYTES, auth_headers


def _assert_error(response, status_code: int, code: str = None):
    assert response.status_code == status_code
    data = response.json()
    assert data["success"] is False
    assert "error" in data and "message" in data and "code" in data
    if code is not None:
        assert data["code"] == code
    return data


def _exam_form(title="Algebra I", duration="90"):
    return {"title": title, "duration": duration}


def _exam_file(data=PDF_BYTES, name="algebra.pdf", content_type="application/pdf"):
    return {"examPdf": (name, data, content_type)}


# =============================================================================
# Health and authentication
# =============================================================================

class TestHealth:

    @pytest.mark.parametrize("path", ["/health", "/api/health"])
    async def test_health(self, client, path):
        response = await client.get(path)

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuthentication:

    async def test_missing_token(self, client):
        data = _assert_error(await client.get("/api/exams"), 401, ErrorCode.AUTH_REQUIRED)
        assert data["message"] == "Not authorized, no token"

    async def test_garbage_token(self, client):
        response = await client.get("/api/exams", headers={"Authorization": "Bearer not.a.jwt"})
        _assert_error(response, 401, ErrorCode.AUTH_INVALID)

    async def test_expired_token(self, client, student):
        token = create_access_token(student, expires_delta=timedelta(seconds=-10))
        response = await client.get("/api/exams", headers={"Authorization": f"Bearer {token}"})
        _assert_error(response, 401, ErrorCode.AUTH_EXPIRED)

    async def test_wrong_role_is_forbidden(self, client, student):
        response = await client.post(
            "/api/exams", data=_exam_form(), files=_exam_file(), headers=auth_headers(student)
        )
        _assert_error(response, 403, ErrorCode.ROLE_REQUIRED)


# =============================================================================
# Exams
# =============================================================================

class TestExamEndpoints:

    async def test_create_exam(self, client, teacher):
        response = await client.post(
            "/api/exams", data=_exam_form(title="  Algebra I  "), files=_exam_file(),
            headers=auth_headers(teacher)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        exam = body["data"]["exam"]
        assert exam["title"] == "Algebra I"
        assert exam["duration"] == 90
        assert exam["isActive"] is True
        assert exam["createdBy"]["email"] == teacher.email
        assert len(exam["examFileId"]) == 32

    @pytest.mark.parametrize("form,field", [
        (_exam_form(title=""), "title"),
        (_exam_form(title="x" * 101), "title"),
        (_exam_form(duration="0"), "duration"),
        (_exam_form(duration="301"), "duration"),
        (_exam_form(duration="ninety"), "duration"),
    ])
    async def test_create_exam_validation(self, client, teacher, form, field):
        response = await client.post(
            "/api/exams", data=form, files=_exam_file(), headers=auth_headers(teacher)
        )

        data = _assert_error(response, 400, ErrorCode.VALIDATION_ERROR)
        assert data["message"] == "Validation failed"
        assert field in [e["field"] for e in data["details"]["errors"]]

    async def test_create_exam_requires_file(self, client, teacher):
        response = await client.post("/api/exams", data=_exam_form(), headers=auth_headers(teacher))
        _assert_error(response, 400)

    async def test_create_exam_rejects_file_type(self, client, teacher):
        response = await client.post(
            "/api/exams", data=_exam_form(), files=_exam_file(b"hi", "notes.txt", "text/plain"),
            headers=auth_headers(teacher)
        )
        _assert_error(response, 400, ErrorCode.UNSUPPORTED_FILE_TYPE)

    async def test_listing_is_filtered_by_role(self, client, teacher, other_teacher, student, admin, make_exam):
        await make_exam(teacher, title="T1 active")
        await make_exam(teacher, title="T1 cancelled", is_active=False)
        await make_exam(other_teacher, title="T2 active")

        async def titles(user):
            response = await client.get("/api/exams", headers=auth_headers(user))
            assert response.status_code == 200
            return sorted(e["title"] for e in response.json()["data"]["exams"])

        assert await titles(student) == ["T1 active", "T2 active"]
        assert await titles(teacher) == ["T1 active", "T1 cancelled"]
        assert await titles(admin) == ["T1 active", "T1 cancelled", "T2 active"]

    async def test_listing_is_newest_first(self, client, teacher, make_exam):
        for title in ("first", "second", "third"):
            await make_exam(teacher, title=title)

        response = await client.get("/api/exams", headers=auth_headers(teacher))

        assert [e["title"] for e in response.json()["data"]["exams"]] == ["third", "second", "first"]

    async def test_get_exam(self, client, teacher, student, make_exam):
        exam = await make_exam(teacher, title="Biology")

        response = await client.get(f"/api/exams/{exam.id}", headers=auth_headers(student))

        assert response.status_code == 200
        assert response.json()["data"]["exam"]["title"] == "Biology"

    async def test_get_missing_exam(self, client, student):
        response = await client.get("/api/exams/999", headers=auth_headers(student))
        _assert_error(response, 404, ErrorCode.EXAM_NOT_FOUND)

    async def test_non_integer_id_is_a_validation_error(self, client, student):
        response = await client.get("/api/exams/abc", headers=auth_headers(student))
        data = _assert_error(response, 400, ErrorCode.VALIDATION_ERROR)
        assert data["errors"]

    async def test_cancel_and_activate(self, client, teacher, make_exam):
        exam = await make_exam(teacher)
        headers = auth_headers(teacher)

        response = await client.put(f"/api/exams/{exam.id}/cancel", headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["cancelledExam"]["status"] == "inactive"

        again = await client.put(f"/api/exams/{exam.id}/cancel", headers=headers)
        data = _assert_error(again, 400, ErrorCode.INVALID_STATE)
        assert data["message"] == "Exam is already cancelled"

        response = await client.put(f"/api/exams/{exam.id}/activate", headers=headers)
        assert response.json()["data"]["activatedExam"]["status"] == "active"

        again = await client.put(f"/api/exams/{exam.id}/activate", headers=headers)
        _assert_error(again, 400, ErrorCode.INVALID_STATE)

    async def test_only_creator_may_toggle(self, client, teacher, other_teacher, make_exam):
        exam = await make_exam(teacher)

        response = await client.put(f"/api/exams/{exam.id}/cancel", headers=auth_headers(other_teacher))

        _assert_error(response, 403, ErrorCode.OWNERSHIP_VIOLATION)


# =============================================================================
# Exam files
# =============================================================================

class TestExamFileEndpoint:

    async def test_streams_active_exam(self, client, teacher, make_exam):
        exam = await make_exam(teacher)

        response = await client.get(f"/api/exams/file/{exam.file_ref}")

        assert response.status_code == 200
        assert response.content == PDF_BYTES
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == 'inline; filename="paper.pdf"'
        assert response.headers["cache-control"] == "public, max-age=3600"
        assert response.headers["content-length"] == str(len(PDF_BYTES))

    async def test_external_url_redirects(self, client):
        response = await client.get("/api/exams/file/https://cdn.example.com/old/exam.pdf")

        assert response.status_code == 307
        assert response.headers["location"] == "https://cdn.example.com/old/exam.pdf"

    async def test_legacy_exam_redirects(self, client, teacher, make_exam):
        exam = await make_exam(teacher, legacy_file_url="https://cdn.example.com/legacy.pdf")

        response = await client.get(f"/api/exams/file/{exam.file_ref}")

        assert response.status_code == 307
        assert response.headers["location"] == "https://cdn.example.com/legacy.pdf"

    async def test_invalid_reference(self, client):
        data = _assert_error(await client.get("/api/exams/file/xyz"), 400, ErrorCode.INVALID_REFERENCE)
        assert data["message"] == "Invalid file ID format"

    async def test_unknown_key(self, client):
        _assert_error(await client.get(f"/api/exams/file/{'a' * 32}"), 404)

    async def test_inactive_exam(self, client, teacher, make_exam):
        exam = await make_exam(teacher, is_active=False)
        _assert_error(await client.get(f"/api/exams/file/{exam.file_ref}"), 403, ErrorCode.EXAM_INACTIVE)

    async def test_uploaded_file_is_served_back(self, client, teacher):
        created = await client.post(
            "/api/exams", data=_exam_form(), files=_exam_file(b"\x89PNG scan", "scan.png", "image/png"),
            headers=auth_headers(teacher)
        )
        file_id = created.json()["data"]["exam"]["examFileId"]

        response = await client.get(f"/api/exams/file/{file_id}")

        assert response.content == b"\x89PNG scan"
        assert response.headers["content-type"] == "image/png"


# =============================================================================
# Exam attempts
# =============================================================================

class TestAttemptEndpoints:

    async def test_attempt_flow(self, client, teacher, student, make_exam):
        exam = await make_exam(teacher, duration=20)
        headers = auth_headers(student)

        response = await client.get(f"/api/exam-attempts/{exam.id}", headers=headers)
        assert response.json() == {"success": True, "data": {"attempt": None}}

        response = await client.post("/api/exam-attempts/start", json={"examId": exam.id}, headers=headers)
        assert response.status_code == 200
        attempt = response.json()["data"]["attempt"]
        assert attempt["status"] == "started"
        assert attempt["timeRemaining"] == 1200

        response = await client.put(
            f"/api/exam-attempts/{attempt['id']}/time", json={"timeRemaining": 900}, headers=headers
        )
        assert response.json()["data"]["attempt"] == {"id": attempt["id"], "timeRemaining": 900, "status": "started"}

        response = await client.get(f"/api/exam-attempts/{exam.id}", headers=headers)
        status_view = response.json()["data"]["attempt"]
        assert 0 < status_view["timeRemaining"] <= 900
        assert status_view["isCompleted"] is False

        response = await client.put(f"/api/exam-attempts/{attempt['id']}/pause", headers=headers)
        assert response.json()["data"]["attempt"]["status"] == "paused"

        response = await client.put(f"/api/exam-attempts/{attempt['id']}/complete", headers=headers)
        assert response.json()["message"] == "Exam attempt marked as completed"

        response = await client.post("/api/exam-attempts/start", json={"examId": exam.id}, headers=headers)
        _assert_error(response, 400, ErrorCode.ALREADY_COMPLETED)

    async def test_start_requires_exam_id(self, client, student):
        response = await client.post("/api/exam-attempts/start", json={}, headers=auth_headers(student))

        data = _assert_error(response, 400, ErrorCode.VALIDATION_ERROR)
        assert data["message"] == "Validation failed"
        assert any("examId" in e["loc"] for e in data["errors"])

    async def test_time_must_be_numeric(self, client, teacher, student, make_exam):
        exam = await make_exam(teacher)
        headers = auth_headers(student)
        started = await client.post("/api/exam-attempts/start", json={"examId": exam.id}, headers=headers)
        attempt_id = started.json()["data"]["attempt"]["id"]

        response = await client.put(
            f"/api/exam-attempts/{attempt_id}/time", json={"timeRemaining": "soon"}, headers=headers
        )

        _assert_error(response, 400, ErrorCode.VALIDATION_ERROR)

    @pytest.mark.parametrize("action", ["time", "pause"])
    async def test_oversized_time_is_a_validation_error(self, client, teacher, student, make_exam, action):
        exam = await make_exam(teacher)
        headers = auth_headers(student)
        started = await client.post("/api/exam-attempts/start", json={"examId": exam.id}, headers=headers)
        attempt_id = started.json()["data"]["attempt"]["id"]

        response = await client.put(
            f"/api/exam-attempts/{attempt_id}/{action}", json={"timeRemaining": 1e20}, headers=headers
        )

        data = _assert_error(response, 400, ErrorCode.VALIDATION_ERROR)
        assert any("timeRemaining" in e["loc"] for e in data["errors"])

    async def test_teachers_cannot_start(self, client, teacher, make_exam):
        exam = await make_exam(teacher)
        response = await client.post("/api/exam-attempts/start", json={"examId": exam.id}, headers=auth_headers(teacher))
        _assert_error(response, 403)

    async def test_foreign_attempt_is_not_found(self, client, teacher, student, other_student, make_exam):
        exam = await make_exam(teacher)
        started = await client.post("/api/exam-attempts/start", json={"examId": exam.id}, headers=auth_headers(student))
        attempt_id = started.json()["data"]["attempt"]["id"]

        response = await client.put(f"/api/exam-attempts/{attempt_id}/complete", headers=auth_headers(other_student))

        _assert_error(response, 404, ErrorCode.ATTEMPT_NOT_FOUND)


# =============================================================================
# Submissions
# =============================================================================

class TestSubmissionEndpoints:

    async def _submit(self, client, user, exam_id, data=b"%PDF answers", name="answers.pdf", content_type="application/pdf"):
        return await client.post(
            "/api/submissions",
            data={"examId": str(exam_id)},
            files={"answerFile": (name, data, content_type)},
            headers=auth_headers(user),
        )

    async def test_submit_once(self, client, teacher, student, make_exam):
        exam = await make_exam(teacher)

        response = await self._submit(client, student, exam.id)
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Answer submitted successfully"
        assert body["data"]["submission"]["exam"]["id"] == exam.id

        again = await self._submit(client, student, exam.id)
        data = _assert_error(again, 400)
        assert data["message"] == "You have already submitted answers for this exam"

    async def test_submission_blocks_attempt(self, client, teacher, student, make_exam):
        exam = await make_exam(teacher)
        await self._submit(client, student, exam.id)

        response = await client.post("/api/exam-attempts/start", json={"examId": exam.id}, headers=auth_headers(student))

        _assert_error(response, 400, ErrorCode.ALREADY_SUBMITTED)

    async def test_submit_requires_exam_id(self, client, student):
        response = await client.post(
            "/api/submissions", files={"answerFile": ("a.pdf", b"x", "application/pdf")},
            headers=auth_headers(student)
        )
        _assert_error(response, 400, ErrorCode.VALIDATION_ERROR)

    async def test_submit_to_missing_exam(self, client, student):
        _assert_error(await self._submit(client, student, 777), 404)

    async def test_submit_rejects_file_type(self, client, teacher, student, make_exam):
        exam = await make_exam(teacher)
        response = await self._submit(client, student, exam.id, b"x", "a.exe", "application/x-msdownload")
        _assert_error(response, 400, ErrorCode.UNSUPPORTED_FILE_TYPE)

    async def test_teacher_lists_exam_submissions(self, client, teacher, other_teacher, student, make_exam):
        exam = await make_exam(teacher, title="History")
        await self._submit(client, student, exam.id)

        response = await client.get(f"/api/submissions/{exam.id}", headers=auth_headers(teacher))
        data = response.json()["data"]
        assert data["exam"]["title"] == "History"
        assert [s["student"]["id"] for s in data["submissions"]] == [student.id]

        response = await client.get(f"/api/submissions/{exam.id}", headers=auth_headers(other_teacher))
        _assert_error(response, 403)

    async def test_list_all_by_role(self, client, teacher, other_teacher, student, admin, make_exam):
        exam = await make_exam(teacher)
        await self._submit(client, student, exam.id)

        for user, expected in ((admin, 1), (teacher, 1), (other_teacher, 0)):
            response = await client.get("/api/submissions", headers=auth_headers(user))
            assert len(response.json()["data"]["submissions"]) == expected

        response = await client.get("/api/submissions", headers=auth_headers(student))
        _assert_error(response, 403)

    async def test_download_answer(self, client, teacher, student, other_student, make_exam):
        exam = await make_exam(teacher)
        created = await self._submit(client, student, exam.id, b"%PDF mine", "answers.pdf")
        submission_id = created.json()["data"]["submission"]["id"]

        response = await client.get(f"/api/submissions/{submission_id}/file", headers=auth_headers(teacher))
        assert response.status_code == 200
        assert response.content == b"%PDF mine"
        assert response.headers["content-disposition"] == 'attachment; filename="answers.pdf"'
        assert response.headers["cache-control"] == "private, no-store"

        response = await client.get(f"/api/submissions/{submission_id}/file", headers=auth_headers(other_student))
        _assert_error(response, 403)


class TestContentDisposition:

    def test_plain_name(self):
        assert content_disposition("paper.pdf") == 'inline; filename="paper.pdf"'

    def test_non_ascii_name_gets_utf8_variant(self):
        value = content_disposition("répons.pdf", disposition="attachment")
        assert value == "attachment; filename=\"rpons.pdf\"; filename*=UTF-8''r%C3%A9pons.pdf"

    def test_quotes_and_newlines_are_dropped(self):
        value = content_disposition('a"b\r\nc.pdf')
        assert value.startswith('inline; filename="abc.pdf"')
        assert "\n" not in value
