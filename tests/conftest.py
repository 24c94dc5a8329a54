"""Shared pytest configuration: path setup for backend imports."""

import os
import sys
from pathlib import Path

import pytest

# Backend modules are flat and import each other by bare name
_BACKEND = Path(__file__).resolve().parent.parent / "acceso" / "backend"
sys.path.insert(0, str(_BACKEND))

os.environ.setdefault("APP_ENV", "test")


@pytest.fixture
def client():
    import flask_main

    flask_main.app.config["TESTING"] = True
    flask_main.app.extensions["rate_limiter"].reset()
    with flask_main.app.test_client() as test_client:
        yield test_client


@pytest.fixture
def no_delay(monkeypatch):
    import authnz_service

    monkeypatch.setattr(authnz_service, "add_random_delay", lambda *args, **kwargs: None)
