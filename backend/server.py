"""
Property Document Tracker - Main Server

Entry point. Routes are organized in /routes/, stage logic in /services/.
"""

from fastapi import FastAPI, APIRouter
from dotenv import load_dotenv
load_dotenv()  # Load .env file before any os.environ calls
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from contextlib import asynccontextmanager
import logging

from routes import auth, stages
from services.document_store import DocumentStore
from services.document_tracker import DocumentTracker
from services.status_writer import StatusWriteService
from services.tracker_config import MONGO_URL, DB_NAME, CORS_ORIGINS, get_tracker_settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

mongo_client = None
status_writer = None


# ==================== LIFESPAN ====================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global mongo_client, status_writer

    logger.info("Starting Property Document Tracker...")

    mongo_client = AsyncIOMotorClient(MONGO_URL)
    db = mongo_client[DB_NAME]

    store = DocumentStore(db)
    status_writer = StatusWriteService(store)
    stages.set_dependencies(DocumentTracker(store, status_writer), status_writer)

    await store.create_indexes()

    logger.info("Property Document Tracker started (db=%s)", DB_NAME)

    yield

    logger.info("Shutting down Property Document Tracker...")
    flushed = await status_writer.flush_pending()
    if flushed:
        logger.info("Flushed %d pending note writes", flushed)
    mongo_client.close()


# ==================== APP SETUP ====================
app = FastAPI(
    title="Property Document Tracker",
    description="Stage-gated document tracking for property transactions",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(stages.router)


@api_router.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": "property-document-tracker",
        "settings": get_tracker_settings()
    }


app.include_router(api_router)
