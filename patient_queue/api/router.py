from fastapi import APIRouter

from patient_queue.api.routes import queue

api_router = APIRouter()

api_router.include_router(queue.router)
