"""Environment driven settings for the appointment service."""
from __future__ import annotations
import logging
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./appointments.db")

# "1" wires in-memory directories and store instead of the SQL store and HTTP directory
OFFLINE_MODE = os.getenv("OFFLINE_MODE", "0") == "1"

# Comma separated party ids available to the in-memory directories in OFFLINE_MODE
OFFLINE_PROVIDER_IDS = [p.strip() for p in os.getenv("OFFLINE_PROVIDER_IDS", "demo-provider").split(",") if p.strip()]
OFFLINE_REQUESTER_IDS = [p.strip() for p in os.getenv("OFFLINE_REQUESTER_IDS", "demo-requester").split(",") if p.strip()]

DIRECTORY_BASE_URL = os.getenv("DIRECTORY_BASE_URL", "http://localhost:8080/fhir")
DIRECTORY_TOKEN_URL = os.getenv("DIRECTORY_TOKEN_URL", f"{DIRECTORY_BASE_URL}/oauth2/token")
DIRECTORY_CLIENT_ID = os.getenv("DIRECTORY_CLIENT_ID")
DIRECTORY_CLIENT_SECRET = os.getenv("DIRECTORY_CLIENT_SECRET")
DIRECTORY_TIMEOUT = float(os.getenv("DIRECTORY_TIMEOUT", "15"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Reduce verbosity of third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
