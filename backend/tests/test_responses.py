"""Tests for the respondent flow (start, answer, complete, read back) and owner-side response views."""

import csv
import io
import uuid
from urllib.parse import parse_qs, urlsplit

import pytest
from botocore.exceptions import NoCredentialsError
from sqlalchemy import func, select

from app.core.config import settings
from app.models.answer import Answer
from app.models.conditional_logic import ConditionalLogic, ConditionalRule
from app.models.form import Form
from app.models.form_response import FormResponse
from app.models.question import Question
from app.services import responses as responses_service
from app.services import storage as storage_service
from app.services.responses import submit_answer, validate_answer

RESPONSES_URL = "/api/v1/responses"
NONEXISTENT_UUID = str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _branching_form(db, user, is_published=True):
    """Q1 (no logic), Q2 (shown when Q1 == "yes"), Q3 (no logic)."""
    form = Form(user_id=user.id, title="Branching", is_published=is_published)
    db.add(form)
    db.flush()
    q1 = Question(form_id=form.id, title="Q1", type="short_text", order=0)
    q2 = Question(form_id=form.id, title="Q2", type="short_text", order=1)
    q3 = Question(form_id=form.id, title="Q3", type="short_text", order=2)
    db.add_all([q1, q2, q3])
    db.flush()
    q2.conditional_logic = ConditionalLogic(
        enabled=True,
        rules=[ConditionalRule(target_question_id=q1.id, operator="equals", value="yes")],
    )
    db.commit()
    db.refresh(form)
    return form, q1, q2, q3


def _start(client, form):
    resp = client.post(f"{RESPONSES_URL}/start/{form.id}")
    assert resp.status_code == 201
    return resp.json()


def _answer(client, response_id, question, value=None, file_url=None):
    return client.post(
        f"{RESPONSES_URL}/{response_id}/answers",
        json={"question_id": str(question.id), "value": value, "file_url": file_url},
    )


# ---------------------------------------------------------------------------
# POST /responses/start/{form_id}
# ---------------------------------------------------------------------------


class TestStartResponse:
    def test_start_returns_handle_and_first_question(self, client, db, user):
        form, q1, _, _ = _branching_form(db, user)
        data = _start(client, form)

        assert data["response"]["respondent_id"]
        assert data["form"]["question_count"] == 3
        assert [q["title"] for q in data["form"]["questions"]] == ["Q1", "Q2", "Q3"]
        assert data["form"]["first_question"]["id"] == str(q1.id)

        stored = db.get(FormResponse, uuid.UUID(data["response"]["id"]))
        assert stored.is_completed is False
        assert stored.completed_at is None

    def test_each_start_gets_a_fresh_respondent_id(self, client, db, user):
        form, *_ = _branching_form(db, user)
        first = _start(client, form)["response"]["respondent_id"]
        second = _start(client, form)["response"]["respondent_id"]
        assert first != second

    def test_unpublished_form_not_found(self, client, db, user):
        form, *_ = _branching_form(db, user, is_published=False)
        resp = client.post(f"{RESPONSES_URL}/start/{form.id}")
        assert resp.status_code == 404

    def test_missing_form_not_found(self, client):
        resp = client.post(f"{RESPONSES_URL}/start/{NONEXISTENT_UUID}")
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# POST /responses/{id}/answers
# ---------------------------------------------------------------------------


class TestSubmitAnswer:
    def test_branch_skipped_then_complete(self, client, db, user):
        form, q1, q2, q3 = _branching_form(db, user)
        response_id = _start(client, form)["response"]["id"]

        resp = _answer(client, response_id, q1, "no")
        assert resp.status_code == 200
        data = resp.json()
        assert data["next_question"]["id"] == str(q3.id)
        assert data["is_last_question"] is False

        data = _answer(client, response_id, q3, "x").json()
        assert data["next_question"] is None
        assert data["is_last_question"] is True

        db.expire_all()
        stored = db.get(FormResponse, uuid.UUID(response_id))
        assert stored.is_completed is True
        assert stored.completed_at is not None

    def test_branch_taken(self, client, db, user):
        form, q1, q2, q3 = _branching_form(db, user)
        response_id = _start(client, form)["response"]["id"]

        assert _answer(client, response_id, q1, "yes").json()["next_question"]["id"] == str(q2.id)
        assert _answer(client, response_id, q2, "v").json()["next_question"]["id"] == str(q3.id)
        assert _answer(client, response_id, q3, "x").json()["is_last_question"] is True

    def test_resubmission_overwrites_single_answer(self, client, db, user):
        form, q1, *_ = _branching_form(db, user)
        response_id = _start(client, form)["response"]["id"]

        for value in ("first", "second", "third"):
            assert _answer(client, response_id, q1, value).status_code == 200

        answers = db.execute(select(Answer).where(Answer.response_id == uuid.UUID(response_id))).scalars().all()
        assert len(answers) == 1
        assert answers[0].value == "third"

    def test_completion_timestamp_set_once(self, client, db, user):
        form, q1, q2, q3 = _branching_form(db, user)
        response_id = _start(client, form)["response"]["id"]
        _answer(client, response_id, q3, "x")

        db.expire_all()
        completed_at = db.get(FormResponse, uuid.UUID(response_id)).completed_at

        _answer(client, response_id, q3, "y")
        db.expire_all()
        stored = db.get(FormResponse, uuid.UUID(response_id))
        assert stored.is_completed is True
        assert stored.completed_at == completed_at
        assert stored.completed_at.replace(tzinfo=None) >= stored.started_at.replace(tzinfo=None)

    def test_file_answer(self, client, db, user):
        form = Form(user_id=user.id, title="Uploads", is_published=True)
        db.add(form)
        db.flush()
        upload = Question(form_id=form.id, title="CV", type="file_upload", is_required=True, order=0)
        db.add(upload)
        db.commit()

        response_id = _start(client, form)["response"]["id"]
        resp = _answer(client, response_id, upload, file_url="https://files.example.com/uploads/cv.pdf")
        assert resp.status_code == 200
        assert resp.json()["answer"]["file_url"] == "https://files.example.com/uploads/cv.pdf"

    def test_unknown_response_not_found(self, client, db, user):
        _, q1, *_ = _branching_form(db, user)
        resp = _answer(client, NONEXISTENT_UUID, q1, "yes")
        assert resp.status_code == 404

    def test_question_from_another_form_not_found(self, client, db, user):
        form, *_ = _branching_form(db, user)
        _, foreign, *_ = _branching_form(db, user)
        response_id = _start(client, form)["response"]["id"]
        resp = _answer(client, response_id, foreign, "yes")
        assert resp.status_code == 404

    def test_invalid_answer_rejected(self, client, db, user):
        form = Form(user_id=user.id, title="Numbers", is_published=True)
        db.add(form)
        db.flush()
        age = Question(
            form_id=form.id,
            title="Age",
            type="number",
            is_required=True,
            order=0,
            validation={"min": 18, "max": 99, "pattern": None},
        )
        db.add(age)
        db.commit()

        response_id = _start(client, form)["response"]["id"]
        resp = _answer(client, response_id, age, "12")
        assert resp.status_code == 422
        assert "at least 18" in resp.json()["detail"]
        assert db.execute(select(func.count()).select_from(Answer)).scalar_one() == 0

    def test_service_reports_next_question(self, db, user):
        form, q1, q2, q3 = _branching_form(db, user)
        response = FormResponse(form_id=form.id, respondent_id="token")
        db.add(response)
        db.commit()

        submitted = submit_answer(db, response.id, q1.id, "yes")
        assert submitted.next_question.id == q2.id
        assert submitted.is_last_question is False

    def test_concurrent_first_answer_is_overwritten(self, db, user, monkeypatch):
        form, q1, q2, q3 = _branching_form(db, user)
        response = FormResponse(form_id=form.id, respondent_id="token")
        db.add(response)
        db.commit()

        real_get_answer = responses_service._get_answer
        calls = []

        def racing_get_answer(session, response_id, question_id):
            # The first lookup misses, then another request stores its answer.
            if not calls:
                calls.append(question_id)
                session.add(Answer(response_id=response_id, question_id=question_id, value="no"))
                session.commit()
                return None
            return real_get_answer(session, response_id, question_id)

        monkeypatch.setattr(responses_service, "_get_answer", racing_get_answer)

        submitted = submit_answer(db, response.id, q1.id, "yes")
        assert submitted.answer.value == "yes"

        stored = db.execute(select(Answer).where(Answer.response_id == response.id)).scalars().all()
        assert len(stored) == 1
        assert stored[0].value == "yes"


# ---------------------------------------------------------------------------
# validate_answer
# ---------------------------------------------------------------------------


class TestValidateAnswer:
    def _question(self, type_="short_text", **kwargs):
        return Question(title="Field", type=type_, order=0, is_required=kwargs.pop("is_required", False), **kwargs)

    def test_required_missing(self):
        assert validate_answer(self._question(is_required=True), None, None) == ["Question 'Field' is required"]

    def test_optional_blank_ok(self):
        assert validate_answer(self._question(), "", None) == []

    def test_required_satisfied_by_file(self):
        question = self._question("file_upload", is_required=True)
        assert validate_answer(question, None, "https://files.example.com/a.png") == []

    def test_number_not_numeric(self):
        assert validate_answer(self._question("number"), "ten", None)

    def test_number_must_be_finite(self):
        question = self._question("number", validation={"min": 1, "max": 10})
        assert validate_answer(question, "nan", None) == ["Question 'Field': answer must be a number"]
        assert validate_answer(question, "inf", None) == ["Question 'Field': answer must be a number"]

    def test_rating_bounds(self):
        question = self._question("rating", validation={"min": 1, "max": 5})
        assert validate_answer(question, "3", None) == []
        assert validate_answer(question, "6", None)

    def test_text_length(self):
        question = self._question("short_text", validation={"min": 2, "max": 4})
        assert validate_answer(question, "abc", None) == []
        assert validate_answer(question, "a", None)
        assert validate_answer(question, "abcde", None)

    def test_pattern_must_fully_match(self):
        question = self._question(validation={"pattern": r"\d{3}"})
        assert validate_answer(question, "123", None) == []
        assert validate_answer(question, "1234", None)

    def test_email(self):
        question = self._question("email")
        assert validate_answer(question, "someone@example.com", None) == []
        assert validate_answer(question, "not-an-email", None)

    def test_choice_must_be_an_option(self):
        question = self._question("dropdown", options=["red", "blue"])
        assert validate_answer(question, "blue", None) == []
        assert validate_answer(question, "green", None)

    def test_checkboxes_not_restricted_to_single_option(self):
        question = self._question("checkboxes", options=["a", "b"])
        assert validate_answer(question, "a,b", None) == []


# ---------------------------------------------------------------------------
# GET /responses/{id}
# ---------------------------------------------------------------------------


class TestGetResponse:
    def test_get_with_matching_respondent(self, client, db, user):
        form, q1, q2, q3 = _branching_form(db, user)
        handle = _start(client, form)["response"]
        _answer(client, handle["id"], q1, "yes")
        _answer(client, handle["id"], q2, "because")

        resp = client.get(f"{RESPONSES_URL}/{handle['id']}", params={"respondent_id": handle["respondent_id"]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["form_title"] == "Branching"
        assert data["is_completed"] is False
        assert [(a["question_title"], a["value"]) for a in data["answers"]] == [("Q1", "yes"), ("Q2", "because")]
        assert data["answers"][0]["question_type"] == "short_text"

    def test_missing_respondent_id_is_bad_request(self, client, db, user):
        form, *_ = _branching_form(db, user)
        handle = _start(client, form)["response"]
        resp = client.get(f"{RESPONSES_URL}/{handle['id']}")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Respondent ID is required"

    def test_wrong_respondent_id_not_found(self, client, db, user):
        form, *_ = _branching_form(db, user)
        handle = _start(client, form)["response"]
        resp = client.get(f"{RESPONSES_URL}/{handle['id']}", params={"respondent_id": "guess"})
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# POST /responses/upload-url
# ---------------------------------------------------------------------------


class TestUploadUrl:
    @pytest.fixture(autouse=True)
    def s3_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "S3_BUCKET", "answers-bucket")
        monkeypatch.setattr(settings, "S3_REGION", "eu-west-1")
        monkeypatch.setattr(settings, "S3_ENDPOINT_URL", None)
        monkeypatch.setattr(settings, "S3_ACCESS_KEY_ID", "AKIDEXAMPLE")
        monkeypatch.setattr(settings, "S3_SECRET_ACCESS_KEY", "secret-example")
        monkeypatch.setattr(settings, "STORAGE_BASE_URL", "https://files.example.com/")

    def test_upload_url(self, client):
        resp = client.post(
            f"{RESPONSES_URL}/upload-url",
            json={"file_name": "Resume.PDF", "content_type": "application/pdf"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["file_url"].startswith("https://files.example.com/uploads/")
        assert data["file_url"].endswith(".pdf")
        assert data["expires_in"] == settings.UPLOAD_URL_EXPIRES_SECONDS

        key = urlsplit(data["file_url"]).path
        upload = urlsplit(data["upload_url"])
        query = parse_qs(upload.query)
        assert "answers-bucket" in upload.netloc + upload.path
        assert upload.path.endswith(key)
        assert query["X-Amz-Expires"] == [str(settings.UPLOAD_URL_EXPIRES_SECONDS)]
        assert query["X-Amz-Signature"]
        assert "AKIDEXAMPLE" in query["X-Amz-Credential"][0]

    def test_content_type_cannot_inject_query_parameters(self, client):
        resp = client.post(
            f"{RESPONSES_URL}/upload-url",
            json={"file_name": "a b.txt", "content_type": "text/plain; charset=utf-8&x=1"},
        )
        assert resp.status_code == 200
        query = parse_qs(urlsplit(resp.json()["upload_url"]).query)
        assert "x" not in query
        assert "content_type" not in query

    def test_presign_failure_is_unavailable(self, client, monkeypatch):
        class _NoCredentialsClient:
            def generate_presigned_url(self, *args, **kwargs):
                raise NoCredentialsError()

        monkeypatch.setattr(storage_service, "get_s3_client", lambda: _NoCredentialsClient())
        resp = client.post(
            f"{RESPONSES_URL}/upload-url",
            json={"file_name": "photo.png", "content_type": "image/png"},
        )
        assert resp.status_code == 503

    def test_upload_url_requires_file_name(self, client):
        resp = client.post(f"{RESPONSES_URL}/upload-url", json={"file_name": "", "content_type": "image/png"})
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Owner views: GET /forms/{id}/responses, /responses/count, /responses/download
# ---------------------------------------------------------------------------


class TestOwnerResponseViews:
    def _filled_form(self, client, db, user):
        form, q1, q2, q3 = _branching_form(db, user)
        response_id = _start(client, form)["response"]["id"]
        _answer(client, response_id, q1, "no")
        _answer(client, response_id, q3, "done")
        _start(client, form)
        return form

    def test_list_grouped_by_question_title(self, client, db, auth_headers, user):
        form = self._filled_form(client, db, user)
        resp = client.get(f"/api/v1/forms/{form.id}/responses", headers=auth_headers)
        assert resp.status_code == 200
        responses = resp.json()["responses"]
        assert len(responses) == 2
        completed = next(r for r in responses if r["is_completed"])
        assert completed["answers"] == {
            "Q1": {"value": "no", "type": "short_text", "file_url": None},
            "Q3": {"value": "done", "type": "short_text", "file_url": None},
        }

    def test_count(self, client, db, auth_headers, user):
        form = self._filled_form(client, db, user)
        resp = client.get(f"/api/v1/forms/{form.id}/responses/count", headers=auth_headers)
        assert resp.json() == {"count": 2}

    def test_download_csv(self, client, db, auth_headers, user):
        form = self._filled_form(client, db, user)
        resp = client.get(f"/api/v1/forms/{form.id}/responses/download", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")

        rows = list(csv.reader(io.StringIO(resp.text)))
        assert rows[0] == ["response_id", "respondent_id", "Q1: Q1", "Q2: Q2", "Q3: Q3", "completed_at"]
        assert len(rows) == 3
        answered = [row for row in rows[1:] if row[2]]
        assert answered[0][2:5] == ["no", "", "done"]

    def test_responses_are_owner_scoped(self, client, db, auth_headers, other_user):
        form, *_ = _branching_form(db, other_user)
        resp = client.get(f"/api/v1/forms/{form.id}/responses", headers=auth_headers)
        assert resp.status_code == 404
