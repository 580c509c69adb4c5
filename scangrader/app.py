#!/usr/bin/env python3
"""
scangrader - Scanned Paper Grading Server
=========================================
Run: python3 -m scangrader.app
Then POST a template and a scan stack to /api/grading/start.
"""

import logging

from flask import Flask
from flask_cors import CORS

from .config import DEBUG, HOST, PORT
from .routes import register_routes


def create_app(ocr_service=None, ai_client=None, detector=None) -> Flask:
    app = Flask(__name__)
    CORS(app)
    register_routes(app, ocr_service=ocr_service, ai_client=ai_client, detector=detector)
    return app


def main():
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print()
    print("+" + "=" * 50 + "+")
    print("|  scangrader - Scanned Paper Grading              |")
    print("+" + "=" * 50 + "+")
    print(f"|  Listening on http://{HOST}:{PORT}".ljust(51) + "|")
    print("|  Press Ctrl+C to stop                            |")
    print("+" + "=" * 50 + "+")
    print()

    create_app().run(host=HOST, port=PORT, debug=DEBUG)


if __name__ == '__main__':
    main()
