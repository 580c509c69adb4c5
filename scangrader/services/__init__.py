"""
scangrader Services
===================

Grading logic for scanned answer sheets.

Services:
- anchor_detector: QR anchor location and identity payload
- transform: template-to-page scale/offset transform
- session_tracker: groups scanned pages into student papers
- objective_batch / objective_scoring: batched OCR + rule-based scoring
- subjective_grading / ai_grading: OCR + AI grading of free-response answers
- ocr_client: OCR job API adapters
- raster_service: PDF/image pages to raster images
- pipeline: per-page orchestration of a grading run
"""

# Services are imported directly when needed to avoid circular imports
# Example: from scangrader.services.pipeline import GradingPipeline

__all__ = [
    'anchor_detector',
    'transform',
    'session_tracker',
    'objective_batch',
    'objective_scoring',
    'subjective_grading',
    'ai_grading',
    'ocr_client',
    'raster_service',
    'pipeline',
]
