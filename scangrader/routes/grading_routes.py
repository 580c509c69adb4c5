"""
Grading API routes for scangrader.
Handles starting a grading run on an uploaded scan stack, polling its status,
stopping it, and validating template files.

A run executes on a background thread; there is one run at a time.
"""
import logging
import threading

from flask import Blueprint, request, jsonify

from ..config import config
from ..models import MultiChoiceMode, ObjectiveScoringSettings
from ..services.ai_grading import AIGradingClient
from ..services.anchor_detector import AnchorDetector
from ..services.ocr_client import build_ocr_service
from ..services.pipeline import GradingPipeline, GradingRun
from ..services.raster_service import RasterError, count_pages, render_pages
from ..template_io import TemplateError, load_template, template_to_data

logger = logging.getLogger(__name__)

grading_bp = Blueprint('grading', __name__)

# Shared run state, read by /api/grading/status
grading_state = {
    "is_running": False,
    "stop_requested": False,
    "complete": False,
    "progress": 0,
    "total": 0,
    "log": [],
    "error": None,
    "papers": [],
}
grading_thread = None

# Service overrides set by init_grading_routes (tests, embedding apps)
_services = {"ocr_service": None, "ai_client": None, "detector": None}


def init_grading_routes(ocr_service=None, ai_client=None, detector=None):
    """Initialize grading routes with service instances instead of building them from config."""
    _services["ocr_service"] = ocr_service
    _services["ai_client"] = ai_client
    _services["detector"] = detector


def reset_state():
    grading_state.update({
        "is_running": False,
        "stop_requested": False,
        "complete": False,
        "progress": 0,
        "total": 0,
        "log": [],
        "error": None,
        "papers": [],
    })


def _settings_from_form(form) -> ObjectiveScoringSettings:
    mode = form.get('multiChoiceMode') or config.multi_choice_mode
    tolerance = form.get('fillNumericTolerance')
    ignore_units = form.get('fillIgnoreUnits')
    return ObjectiveScoringSettings(
        multi_choice_mode=MultiChoiceMode(mode),
        fill_numeric_tolerance=float(tolerance) if tolerance not in (None, '') else config.fill_numeric_tolerance,
        fill_ignore_units=(ignore_units.lower() in ('1', 'true', 'yes', 'on')
                           if ignore_units is not None else config.fill_ignore_units),
        fill_synonyms_text=form.get('fillSynonyms', ''),
    )


def run_grading_thread(template, scan_data, filename, settings):
    """Grade every page of the uploaded stack, updating grading_state as it goes."""
    run = GradingRun(
        template=template,
        ocr_service=_services["ocr_service"] or build_ocr_service(config),
        ai_client=_services["ai_client"] or AIGradingClient(
            model=config.ai_grading_model,
            text_model=config.ai_text_model,
            base_url=config.ai_base_url,
        ),
        settings=settings,
        detector=_services["detector"] or AnchorDetector(),
        concurrency=config.subjective_concurrency,
        batch_size=config.objective_batch_size,
        on_paper_complete=lambda paper: grading_state["log"].append(
            f"Paper {paper.identity.student_id}: {paper.total_score} points ({paper.status.value})"
        ),
    )
    pipeline = GradingPipeline(run)
    grading_state["papers"] = pipeline.papers

    def on_page(source_index, assignment):
        grading_state["progress"] = source_index
        grading_state["log"].append(
            f"[{source_index}/{grading_state['total']}] {assignment.paper.identity.student_id} "
            f"page {assignment.template_page_index}"
        )

    try:
        pipeline.run_pages(
            render_pages(scan_data, filename, scale=config.render_scale),
            should_stop=lambda: grading_state.get("stop_requested", False),
            on_page=on_page,
        )
        if grading_state.get("stop_requested"):
            grading_state["log"].append(f"Stopped - {grading_state['progress']}/{grading_state['total']} pages graded")
        else:
            grading_state["log"].append("Grading complete")
    except Exception as e:
        logger.exception("Grading run failed")
        grading_state["error"] = str(e)
        grading_state["log"].append(f"Error: {e}")
    finally:
        grading_state["is_running"] = False
        grading_state["complete"] = True


@grading_bp.route('/api/grading/start', methods=['POST'])
def start_grading():
    """Start grading an uploaded scan stack against an uploaded template."""
    global grading_thread

    if grading_state["is_running"]:
        return jsonify({"error": "Grading already in progress"}), 409
    if 'template' not in request.files:
        return jsonify({"error": "No template file provided"}), 400
    if 'scans' not in request.files:
        return jsonify({"error": "No scans file provided"}), 400

    try:
        template = load_template(request.files['template'].read())
    except TemplateError as e:
        return jsonify({"error": f"Invalid template: {e}"}), 400

    try:
        settings = _settings_from_form(request.form)
    except ValueError as e:
        return jsonify({"error": f"Invalid scoring settings: {e}"}), 400

    scans = request.files['scans']
    scan_data = scans.read()
    try:
        total = count_pages(scan_data, scans.filename)
    except RasterError as e:
        return jsonify({"error": str(e)}), 400

    reset_state()
    grading_state["is_running"] = True
    grading_state["total"] = total
    grading_state["log"].append(f"Grading {total} pages from {scans.filename}")

    grading_thread = threading.Thread(
        target=run_grading_thread,
        args=(template, scan_data, scans.filename, settings),
        daemon=True,
    )
    grading_thread.start()

    return jsonify({"status": "started", "total_pages": total})


@grading_bp.route('/api/grading/status')
def get_status():
    """Get current grading status, including every paper seen so far."""
    papers = list(grading_state["papers"])
    return jsonify({
        "is_running": grading_state["is_running"],
        "complete": grading_state["complete"],
        "progress": grading_state["progress"],
        "total": grading_state["total"],
        "log": grading_state["log"],
        "error": grading_state["error"],
        "papers": [p.to_dict() for p in papers],
    })


@grading_bp.route('/api/grading/stop', methods=['POST'])
def stop_grading():
    """Stop after the page currently being graded."""
    if grading_state["is_running"]:
        grading_state["stop_requested"] = True
        grading_state["log"].append("Stop requested... finishing current page...")
        return jsonify({"stopped": True, "message": "Stop requested, finishing current page..."})

    return jsonify({"stopped": False, "message": "Grading not running"})


@grading_bp.route('/api/templates/validate', methods=['POST'])
def validate_template():
    """Parse a template and return it in normalized export form."""
    try:
        template = load_template(request.get_data())
    except TemplateError as e:
        return jsonify({"valid": False, "error": str(e)}), 400
    return jsonify({"valid": True, "template": template_to_data(template)})
