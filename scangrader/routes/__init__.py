"""
scangrader API Routes
=====================

All API route blueprints for the scangrader application.

Usage:
    from scangrader.routes import register_routes
    register_routes(app)
"""
from .settings_routes import settings_bp
from .grading_routes import grading_bp, init_grading_routes


def register_routes(app, ocr_service=None, ai_client=None, detector=None):
    """Register all route blueprints with the Flask app."""

    # Service instances override the ones built from config
    if ocr_service is not None or ai_client is not None or detector is not None:
        init_grading_routes(ocr_service, ai_client, detector)

    app.register_blueprint(settings_bp)
    app.register_blueprint(grading_bp)


__all__ = [
    'register_routes',
    'settings_bp',
    'grading_bp',
    'init_grading_routes'
]
