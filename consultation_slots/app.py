from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from consultation_slots.config import settings
from consultation_slots.logging_config import setup_structured_logging, get_logger
from consultation_slots.routers import availability


setup_structured_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Logs the schedule the engine was configured with."""
    window = settings.operating_window
    logger.info(
        "availability_service_started",
        environment=settings.ENVIRONMENT,
        home_timezone=settings.HOME_TIMEZONE,
        window=f"{window.start_hour:02d}:00-{window.end_hour:02d}:00",
        granularity_minutes=window.granularity_minutes,
        consultation_kinds=sorted(settings.consultation_kinds),
        demo_data=settings.USE_DEMO_DATA,
    )
    yield


app = FastAPI(title="Consultation Availability", lifespan=lifespan)

# CORS Middleware Setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(availability.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
