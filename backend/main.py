import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from trial_eligibility.core.config import settings
from trial_eligibility.core.logging_setup import setup_logging
from trial_eligibility.api.errors import ApiError, api_error_handler
from trial_eligibility.api.routes import eligibility, trials, patients
from trial_eligibility.services.clinical_trials_api import clinical_trials_service

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting %s...", settings.PROJECT_NAME)
    yield
    # Shutdown
    await clinical_trials_service.close()
    logger.info("Shutdown complete.")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Clinical trial eligibility analysis for SMART-on-FHIR and demo patients",
    version="0.1.0",
    lifespan=lifespan
)

app.add_exception_handler(ApiError, api_error_handler)

# Configure CORS
allowed_origins = [
    settings.FRONTEND_URL,
    "http://localhost:3000",
]
# Add any additional origins from ALLOWED_ORIGINS env var
if settings.ALLOWED_ORIGINS:
    allowed_origins.extend([o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    eligibility.router,
    prefix=settings.API_PREFIX,
    tags=["Eligibility"]
)

app.include_router(
    trials.router,
    prefix=settings.API_PREFIX,
    tags=["Trials"]
)

app.include_router(
    patients.router,
    prefix=settings.API_PREFIX,
    tags=["Patients"]
)


@app.get("/")
async def root():
    return {
        "name": settings.PROJECT_NAME,
        "version": "0.1.0",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
