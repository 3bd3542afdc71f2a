"""
EduGrade — School Grade Management
FastAPI backend entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import ALLOWED_ORIGINS, LOG_LEVEL, SCHOOL_NAME, SEED_DEMO_DATA, STORE_BACKEND
from core.errors import GradebookError
from core.grading import PASSING_GRADE
from core.store import create_store, seed_demo_data
from routes.assignments import router as assignments_router
from routes.grades import router as grades_router
from routes.reports import router as reports_router
from routes.settings import router as settings_router
from routes.students import router as students_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = create_store(STORE_BACKEND)
    if SEED_DEMO_DATA:
        seed_demo_data(store)
    app.state.store = store
    logger.info("EduGrade API started for %s", SCHOOL_NAME)
    yield
    logger.info("EduGrade API shutting down")


app = FastAPI(
    title="EduGrade API",
    description=(
        "Period grades, weighted finals and consolidated director reports "
        "for school courses."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# CORS — allow the React dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GradebookError)
async def gradebook_error_handler(request: Request, exc: GradebookError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.kind})


# Register route modules
app.include_router(settings_router, prefix="/api/settings", tags=["Settings"])
app.include_router(grades_router, prefix="/api/grades", tags=["Grades"])
app.include_router(assignments_router, prefix="/api/assignments", tags=["Assignments"])
app.include_router(students_router, prefix="/api/students", tags=["Students"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "ok",
        "school_name": SCHOOL_NAME,
        "store_backend": STORE_BACKEND,
    }


@app.get("/api/config")
async def get_config():
    """Return server configuration to the frontend."""
    return {
        "school_name": SCHOOL_NAME,
        "passing_grade": PASSING_GRADE,
    }
