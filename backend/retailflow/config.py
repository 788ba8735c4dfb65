# backend/retailflow/config.py
from __future__ import annotations
import os


class Config:
    # Base URL of the remote business API (the console's source of truth)
    API_BASE_URL = os.environ.get(
        "RETAILFLOW_API_URL",
        "http://127.0.0.1:5000/api",
    )
    # Bearer token issued by the auth collaborator; None until login
    API_TOKEN = os.environ.get("RETAILFLOW_API_TOKEN")

    REQUEST_TIMEOUT = float(os.environ.get("RETAILFLOW_REQUEST_TIMEOUT", "30"))

    LOG_LEVEL = os.environ.get("RETAILFLOW_LOG_LEVEL", "WARNING")

    # Token accepted by the sandbox remote API
    SANDBOX_TOKEN = os.environ.get("RETAILFLOW_SANDBOX_TOKEN", "sandbox-token")

    # Optional JSON snapshot (from `flask sandbox seed-demo --output`) loaded at startup
    SANDBOX_DATA_FILE = os.environ.get("RETAILFLOW_SANDBOX_DATA")
