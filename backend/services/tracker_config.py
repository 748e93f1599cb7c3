"""
Property Document Tracker - Configuration

All runtime settings for the document tracker. Values are read once from the
environment at import time; the server entry point loads `.env` before this
module is imported.

Write latency policy:
- N/A toggles are persisted immediately
- NOTE_DEBOUNCE_SECONDS: coalescing window for free-text note edits, per document type
"""

import os


# =============================================================================
# DATABASE
# =============================================================================

MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "property_docs")

# Collection names
DOCUMENTS_COLLECTION = "property_documents"
STATUS_COLLECTION = "property_document_status"
FINANCIAL_COLLECTION = "stage_financial_status"


# =============================================================================
# WRITE-BACK POLICY
# =============================================================================

NOTE_DEBOUNCE_SECONDS = float(os.environ.get("NOTE_DEBOUNCE_SECONDS", "1.0"))


# =============================================================================
# AUTH
# =============================================================================

JWT_SECRET = os.environ.get("JWT_SECRET", "property-docs-dev-secret-change-before-deploying")
JWT_ALGORITHM = "HS256"
JWT_TTL_SECONDS = int(os.environ.get("JWT_TTL_SECONDS", "86400"))

# Single operator account until SSO is wired in
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin")


# =============================================================================
# HTTP / WORKFLOW DEFAULTS
# =============================================================================

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
DEFAULT_PIPELINE = os.environ.get("DEFAULT_PIPELINE", "direct_addition")


def get_tracker_settings() -> dict:
    """Snapshot of the effective settings (secrets excluded), for the health endpoint."""
    return {
        "db_name": DB_NAME,
        "note_debounce_seconds": NOTE_DEBOUNCE_SECONDS,
        "default_pipeline": DEFAULT_PIPELINE,
        "jwt_ttl_seconds": JWT_TTL_SECONDS,
    }
