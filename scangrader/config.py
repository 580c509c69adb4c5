"""
Configuration management for scangrader.
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# OCR service (async job API)
OCR_ENGINE = os.getenv("OCR_ENGINE", "http")  # http | tesseract
OCR_SERVICE_URL = os.getenv("OCR_SERVICE_URL", "http://localhost:8150")
OCR_API_TOKEN = os.getenv("OCR_API_TOKEN", "")
OCR_REQUEST_TIMEOUT = float(os.getenv("OCR_REQUEST_TIMEOUT", "30"))

# OCR polling. Objective batches use the "doc" scene, single crops use "lens".
OBJECTIVE_OCR_ATTEMPTS = 20
OBJECTIVE_OCR_INTERVAL = 0.8
SUBJECTIVE_OCR_ATTEMPTS = 15
SUBJECTIVE_OCR_INTERVAL = 0.6

# AI grading
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
AI_GRADING_MODEL = os.getenv("AI_GRADING_MODEL", "gpt-4o")
AI_TEXT_MODEL = os.getenv("AI_TEXT_MODEL", "gpt-4o-mini")
AI_BASE_URL = os.getenv("AI_BASE_URL", "")

# Grading run
SUBJECTIVE_CONCURRENCY = int(os.getenv("SUBJECTIVE_CONCURRENCY", "3"))
OBJECTIVE_BATCH_SIZE = int(os.getenv("OBJECTIVE_BATCH_SIZE", "12"))
RENDER_SCALE = float(os.getenv("RENDER_SCALE", "2.0"))

# Objective scoring defaults (overridable per run)
MULTI_CHOICE_MODE = os.getenv("MULTI_CHOICE_MODE", "all_or_nothing")
FILL_NUMERIC_TOLERANCE = float(os.getenv("FILL_NUMERIC_TOLERANCE", "0"))
FILL_IGNORE_UNITS = _env_bool("FILL_IGNORE_UNITS")

# Server configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
DEBUG = _env_bool("DEBUG")

SUPPORTED_SCAN_TYPES = ['.pdf', '.png', '.jpg', '.jpeg', '.bmp', '.tif', '.tiff']


class Config:
    """Application configuration class."""

    def __init__(self):
        self.ocr_engine = OCR_ENGINE
        self.ocr_service_url = OCR_SERVICE_URL
        self.ocr_api_token = OCR_API_TOKEN
        self.ai_grading_model = AI_GRADING_MODEL
        self.ai_text_model = AI_TEXT_MODEL
        self.ai_base_url = AI_BASE_URL
        self.subjective_concurrency = SUBJECTIVE_CONCURRENCY
        self.objective_batch_size = OBJECTIVE_BATCH_SIZE
        self.render_scale = RENDER_SCALE
        self.multi_choice_mode = MULTI_CHOICE_MODE
        self.fill_numeric_tolerance = FILL_NUMERIC_TOLERANCE
        self.fill_ignore_units = FILL_IGNORE_UNITS

    def to_dict(self):
        return {
            "ocr_engine": self.ocr_engine,
            "ocr_service_url": self.ocr_service_url,
            "ai_grading_model": self.ai_grading_model,
            "ai_text_model": self.ai_text_model,
            "ai_base_url": self.ai_base_url,
            "subjective_concurrency": self.subjective_concurrency,
            "objective_batch_size": self.objective_batch_size,
            "render_scale": self.render_scale,
            "multi_choice_mode": self.multi_choice_mode,
            "fill_numeric_tolerance": self.fill_numeric_tolerance,
            "fill_ignore_units": self.fill_ignore_units,
        }

    def update(self, data: dict):
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)


# Global config instance
config = Config()
