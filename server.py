"""
Firefly Grove - cross-branch memory sharing API
FastAPI server with PostgreSQL (or SQLite) backend
"""

import os

import uvicorn

from app.main import app  # noqa: F401


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
        proxy_headers=True,
    )
