from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from database.mongodb import db
from config import get_settings
from routes import counters, notifications, directives, maintenance, subscriptions, equipment
import logging

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the app"""
    await db.connect(settings.mongo_url, settings.db_name)
    logger.info(f"Compliance engine started ({settings.environment})")
    yield
    await db.disconnect()
    logger.info("Compliance engine stopped")

app = FastAPI(
    title="Maintenance Compliance API",
    description="Recurring maintenance obligations, directive compliance and alerts",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(counters.router)
app.include_router(notifications.router)
app.include_router(directives.router)
app.include_router(maintenance.router)
app.include_router(subscriptions.router)
app.include_router(equipment.router)

@app.get("/")
async def root():
    return {
        "message": "Maintenance Compliance API",
        "version": "1.0.0",
        "status": "running"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}
