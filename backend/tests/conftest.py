"""Pytest fixtures for LoadVoice backend tests.

Every test runs against a fresh in-memory storage backend with all provider
keys removed, so the transcription and LLM clients run in simulated mode.
"""

import pytest
from fastapi.testclient import TestClient

from loadvoice.db import InMemoryDB, set_db
from loadvoice.main import app


PROVIDER_ENV_VARS = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "LOADVOICE_API_KEY",
    "ASSEMBLYAI_API_KEY",
    "GROQ_API_KEY",
    "OPENAI_API_KEY",
]


@pytest.fixture(autouse=True)
def db(monkeypatch):
    """Install an empty InMemoryDB and strip provider credentials.

    Returns:
        InMemoryDB: The backend every ``get_db()`` call returns for this test.
    """
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    backend = InMemoryDB()
    set_db(backend)
    yield backend
    set_db(None)


@pytest.fixture
def client():
    """Create a test client for the FastAPI application.

    Returns:
        TestClient: A test client instance for making requests to the API.
    """
    return TestClient(app)


@pytest.fixture
def sample_load_data():
    """Minimal valid load creation payload.

    Returns:
        dict: Load fields accepted by ``POST /api/loads``.
    """
    return {
        "pickup_city": "Dallas",
        "pickup_state": "TX",
        "delivery_city": "Atlanta",
        "delivery_state": "GA",
        "commodity": "Paper goods",
        "equipment_type": "dry_van",
        "weight_pounds": 42000,
    }


@pytest.fixture
def priced_load_data(sample_load_data):
    """Load payload carrying everything needed to reach needs_carrier.

    Returns:
        dict: Load fields with rate and dates filled in.
    """
    return {
        **sample_load_data,
        "rate_to_shipper": 2400.0,
        "pickup_date": "2026-10-18",
        "delivery_date": "2026-10-20",
    }


@pytest.fixture
def uploaded_call(db):
    """A call whose audio is stored and which is ready to transcribe.

    Returns:
        dict: The stored call row.
    """
    call = db.create_call({"customer_name": "Summit Logistics", "sales_rep": "Dana", "file_name": "call.mp3"})
    url = db.upload_audio(call["id"], "call.mp3", b"ID3audio", "audio/mpeg")
    return db.update_call(call["id"], {"status": "uploaded", "file_url": url})
