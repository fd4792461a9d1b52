"""Tests for GET /forms/{id}/analytics — visits, completion rate, per-question drop-off."""

from app.models.answer import Answer
from app.models.form import Form
from app.models.form_response import FormResponse
from app.models.form_visit import FormVisit
from app.models.question import Question
from app.services.analytics import get_form_analytics


def _form_with_questions(db, user, count=3):
    form = Form(user_id=user.id, title="Funnel", is_published=True)
    db.add(form)
    db.flush()
    questions = []
    for order in range(count):
        question = Question(form_id=form.id, title=f"Step {order + 1}", type="short_text", order=order)
        db.add(question)
        questions.append(question)
    db.commit()
    return form, questions


def _response(db, form, answered, completed=False):
    response = FormResponse(form_id=form.id, respondent_id=f"r-{len(answered)}-{completed}", is_completed=completed)
    db.add(response)
    db.flush()
    for question in answered:
        db.add(Answer(response_id=response.id, question_id=question.id, value="ok"))
    db.commit()
    return response


class TestFormAnalytics:
    def test_completion_rate_and_dropoff(self, client, db, auth_headers, user):
        form, (q1, q2, q3) = _form_with_questions(db, user)
        for _ in range(10):
            db.add(FormVisit(form_id=form.id))
        db.commit()

        _response(db, form, [q1, q2, q3], completed=True)
        _response(db, form, [q1, q2, q3], completed=True)
        _response(db, form, [q1, q2])
        _response(db, form, [q1])

        resp = client.get(f"/api/v1/forms/{form.id}/analytics", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["visits"] == 10
        assert data["responses"] == 4
        assert data["completed_responses"] == 2
        assert data["completion_rate"] == 50.0

        steps = [(q["title"], q["responses"], q["dropoff_rate"]) for q in data["questions"]]
        assert steps == [("Step 1", 4, 0.0), ("Step 2", 3, 25.0), ("Step 3", 2, 50.0)]

    def test_rates_round_to_two_decimals(self, db, user):
        form, (q1, q2) = _form_with_questions(db, user, count=2)
        _response(db, form, [q1, q2], completed=True)
        _response(db, form, [q1])
        _response(db, form, [q1])

        analytics = get_form_analytics(db, form.id)
        assert analytics.completion_rate == 33.33
        assert analytics.questions[1].dropoff_rate == 66.67

    def test_empty_form_reports_zero(self, db, user):
        form, _ = _form_with_questions(db, user)
        analytics = get_form_analytics(db, form.id)
        assert analytics.visits == 0
        assert analytics.completion_rate == 0
        assert all(q.responses == 0 and q.dropoff_rate == 0 for q in analytics.questions)

    def test_analytics_owner_scoped(self, client, db, auth_headers, other_user):
        form, _ = _form_with_questions(db, other_user)
        resp = client.get(f"/api/v1/forms/{form.id}/analytics", headers=auth_headers)
        assert resp.status_code == 404
