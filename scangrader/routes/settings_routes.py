"""
Settings API routes for scangrader.
Reads and updates the run defaults held by the global config object.
Changes apply to the next grading run.
"""
import logging

from flask import Blueprint, request, jsonify

from ..config import config

logger = logging.getLogger(__name__)

settings_bp = Blueprint('settings', __name__)


@settings_bp.route('/api/config')
def get_config():
    return jsonify(config.to_dict())


@settings_bp.route('/api/config', methods=['POST'])
def update_config():
    """Update run defaults. Only keys returned by GET /api/config are accepted."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object"}), 400

    allowed = config.to_dict()
    unknown = sorted(k for k in data if k not in allowed)
    if unknown:
        return jsonify({"error": f"Unknown settings: {', '.join(unknown)}"}), 400

    config.update(data)
    logger.info("Config updated: %s", ", ".join(sorted(data)))
    return jsonify(config.to_dict())
