# app/cli.py
import os
from pathlib import Path

import uvicorn
from alembic.config import main as alembic_main

ALEMBIC_INI = str(Path(__file__).resolve().parent.parent / "alembic.ini")


def dev() -> None:
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)


def start() -> None:
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port)


def migrate() -> None:
    alembic_main(["-c", ALEMBIC_INI, "upgrade", "head"])


def pytest() -> None:
    import pytest
    # Run the backend test suite, stop after first failure
    pytest.main(["-x", str(Path(__file__).resolve().parent.parent / "tests")])
