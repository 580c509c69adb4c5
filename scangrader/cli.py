"""
Command-line grading run.

Usage:
    scangrader --template exam.json --scans stack.pdf --output results.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import config
from .models import MultiChoiceMode, ObjectiveScoringSettings
from .services.ai_grading import AIGradingClient
from .services.ocr_client import build_ocr_service
from .services.pipeline import GradingPipeline, GradingRun
from .services.raster_service import RasterError, render_pages
from .template_io import TemplateError, load_template

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Grade a stack of scanned answer sheets against a template")
    parser.add_argument("--template", required=True, help="Template JSON exported from the editor")
    parser.add_argument("--scans", required=True, help="Scanned stack (PDF or image)")
    parser.add_argument("--output", help="Write results JSON here (default: stdout)")
    parser.add_argument("--multi-choice-mode", choices=[m.value for m in MultiChoiceMode],
                        default=config.multi_choice_mode, help="Multiple-choice scoring rule")
    parser.add_argument("--fill-tolerance", type=float, default=config.fill_numeric_tolerance,
                        help="Numeric tolerance for fill-in-the-blank answers")
    parser.add_argument("--ignore-units", action="store_true", default=config.fill_ignore_units,
                        help="Compare fill-in-the-blank answers by their first number only")
    parser.add_argument("--synonyms", help="File of 'alias=canonical' lines for fill-in-the-blank answers")
    parser.add_argument("--concurrency", type=int, default=config.subjective_concurrency,
                        help="Subjective grading workers")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        template = load_template(Path(args.template))
    except TemplateError as e:
        print(f"Invalid template: {e}", file=sys.stderr)
        return 2

    synonyms_text = ""
    if args.synonyms:
        synonyms_text = Path(args.synonyms).read_text(encoding="utf-8")

    settings = ObjectiveScoringSettings(
        multi_choice_mode=MultiChoiceMode(args.multi_choice_mode),
        fill_numeric_tolerance=args.fill_tolerance,
        fill_ignore_units=args.ignore_units,
        fill_synonyms_text=synonyms_text,
    )

    run = GradingRun(
        template=template,
        ocr_service=build_ocr_service(config),
        ai_client=AIGradingClient(
            model=config.ai_grading_model,
            text_model=config.ai_text_model,
            base_url=config.ai_base_url,
        ),
        settings=settings,
        concurrency=args.concurrency,
        batch_size=config.objective_batch_size,
        on_paper_complete=lambda paper: logger.info(
            "Paper %s finished: %s points (%s)", paper.identity.student_id, paper.total_score, paper.status.value
        ),
    )

    try:
        papers = GradingPipeline(run).run_pages(render_pages(args.scans, scale=config.render_scale))
    except RasterError as e:
        print(f"Could not read scans: {e}", file=sys.stderr)
        return 2

    output = json.dumps([p.to_dict() for p in papers], indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
        print(f"Wrote {len(papers)} paper(s) to {args.output}")
    else:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
