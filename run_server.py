"""Convenience launcher: python run_server.py

Runs the API from the repository root so ``backend.voicemail`` resolves.
HOST and PORT override the bind address.
"""
import os

from backend.voicemail.main import app  # type: ignore

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
