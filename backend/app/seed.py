"""Seed the database with a demo user and a published branching form."""

from app.core.database import SessionLocal
from app.models import ConditionalLogic, ConditionalRule, Form, FormSettings, Question, Theme
from app.services.auth import create_user, get_user_by_email

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo-password"

SEED_QUESTIONS = [
    {
        "title": "Have you used our product before?",
        "type": "multiple_choice",
        "is_required": True,
        "options": ["yes", "no"],
    },
    {
        "title": "How would you rate it?",
        "type": "rating",
        "is_required": True,
        "validation": {"min": 1, "max": 5, "pattern": None},
        # Only shown to returning users
        "show_if": ("equals", "yes"),
    },
    {
        "title": "What brought you here today?",
        "type": "paragraph",
        "validation": {"min": None, "max": 1000, "pattern": None},
    },
    {
        "title": "Your email",
        "type": "email",
    },
]


def seed_demo_form() -> Form:
    """Insert the demo user (if missing) and a published sample form. Returns the form."""
    db = SessionLocal()
    try:
        user = get_user_by_email(db, DEMO_EMAIL)
        if user is None:
            user = create_user(db, email=DEMO_EMAIL, password=DEMO_PASSWORD, name="Demo User")

        form = Form(
            user_id=user.id,
            title="Customer Feedback",
            description="A short survey with one branching question.",
            is_published=True,
            theme=Theme(),
            settings=FormSettings(),
        )
        db.add(form)
        db.flush()

        first: Question | None = None
        for order, data in enumerate(SEED_QUESTIONS):
            question = Question(
                form_id=form.id,
                title=data["title"],
                type=data["type"],
                is_required=data.get("is_required", False),
                options=data.get("options"),
                validation=data.get("validation"),
                order=order,
            )
            if "show_if" in data and first is not None:
                operator, value = data["show_if"]
                question.conditional_logic = ConditionalLogic(
                    enabled=True,
                    rules=[ConditionalRule(target_question_id=first.id, operator=operator, value=value)],
                )
            db.add(question)
            db.flush()
            if first is None:
                first = question

        db.commit()
        db.refresh(form)
        return form
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    form = seed_demo_form()
    print(f"Seeded form: {form.title} (id={form.id})")
    print(f"Log in as {DEMO_EMAIL} / {DEMO_PASSWORD}")
