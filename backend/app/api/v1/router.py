from fastapi import APIRouter

from app.api.v1.endpoints import auth, forms, questions, responses

api_v1_router = APIRouter()

api_v1_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_v1_router.include_router(forms.router, prefix="/forms", tags=["forms"])
api_v1_router.include_router(questions.router, prefix="/forms", tags=["questions"])
api_v1_router.include_router(responses.router, prefix="/responses", tags=["responses"])
