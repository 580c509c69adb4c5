"""
scangrader Package
==================

Grades scanned paper answer sheets against a question-region template.

Structure:
- services/: anchor detection, session tracking, scoring, OCR/AI adapters
- routes/: Flask API blueprints
- models.py: grading records
- template_io.py: template import/export
- config.py: Configuration management
- cli.py: command-line grading run
"""

from .config import config, Config

__version__ = "1.0.0"

__all__ = ['config', 'Config']
