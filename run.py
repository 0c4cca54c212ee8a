"""Local development entry point.

Usage:
    python run.py

Serves the JSON API and the Socket.IO board channel on the same port.
"""

import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from taskboard import create_app
from taskboard.extensions import socketio

app = create_app()

if __name__ == "__main__":
    socketio.run(
        app,
        debug=app.debug,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 5001)),
        allow_unsafe_werkzeug=True,
    )
