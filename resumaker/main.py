import argparse
import asyncio
import json
import logging
import os
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from pydantic import ValidationError

from .agents import JobDescriptionAnalysisAgent, ObjectiveGenerationAgent, ResponsibilityEnhancementAgent
from .core.browser_capture import rasterizer_for
from .core.config import load_settings
from .core.errors import ResumakerError, ResumeValidationError
from .core.form_controller import ResumeFormController
from .core.gemini_client import GeminiClient
from .core.resume_models import ResumeData

# --- Configuration ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
load_dotenv()


def load_resume_file(file_path: str) -> Optional[ResumeData]:
    """Safely loads a resume JSON file."""
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return ResumeData.model_validate(json.load(f))
    except FileNotFoundError:
        logging.error(f"File not found: {file_path}")
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {file_path}")
    except UnicodeDecodeError:
        logging.error(f"Encoding error reading file: {file_path}. Please ensure the file is saved with UTF-8 encoding.")
    except ValidationError as e:
        logging.error(f"{file_path} is not a valid resume: {e}")
    return None


def load_text_file(file_path: str) -> Optional[str]:
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        logging.error(f"File not found: {file_path}")
    except UnicodeDecodeError:
        logging.error(f"Encoding error reading file: {file_path}. Please ensure the file is saved with UTF-8 encoding.")
    return None


def build_controller(settings, needs_ai: bool) -> Optional[ResumeFormController]:
    rasterizer = rasterizer_for(settings.capture_backend)
    if not needs_ai:
        return ResumeFormController(capture_scale=settings.capture_scale, rasterizer=rasterizer)
    if not settings.gemini_api_key:
        logging.error("GEMINI_API_KEY environment variable not set.")
        return None

    gemini_client = GeminiClient(
        api_key=settings.gemini_api_key,
        model_name=settings.gemini_model,
        max_attempts=settings.gemini_max_attempts,
    )
    return ResumeFormController(
        objective_agent=ObjectiveGenerationAgent(gemini_client),
        analysis_agent=JobDescriptionAnalysisAgent(gemini_client),
        enhancement_agent=ResponsibilityEnhancementAgent(gemini_client),
        capture_scale=settings.capture_scale,
        rasterizer=rasterizer,
    )


async def run_export(controller: ResumeFormController, job_description: Optional[str],
                     analyze: bool, generate_objective: bool):
    if job_description is not None:
        controller.set_job_description(job_description)
    if analyze:
        logging.info("Analyzing job description...")
        suggestions = await controller.analyze_job_description()
        print("\n--- Job Description Analysis ---\n")
        print(suggestions)
        print()
    if generate_objective:
        logging.info("Generating resume objective...")
        await controller.generate_objective()
    return await controller.export_pdf()


def export_command(args) -> int:
    settings = load_settings()

    # --- 1. Load Inputs ---
    logging.info("Loading resume and job description...")
    resume = load_resume_file(args.resume)
    if resume is None:
        return 1

    job_description = None
    if args.job_description:
        job_description = load_text_file(args.job_description)
        if job_description is None:
            return 1
    if args.analyze and not job_description:
        logging.error("--analyze needs a non-empty --job-description file.")
        return 1

    # --- 2. Initialize Services ---
    controller = build_controller(settings, needs_ai=args.analyze or args.generate_objective)
    if controller is None:
        return 1

    os.makedirs(args.output_dir, exist_ok=True)

    def save(filename: str, content: bytes):
        path = os.path.join(args.output_dir, filename)
        with open(path, 'wb') as f:
            f.write(content)
        logging.info(f"Saved resume to {path}")

    controller.exporter.download = save
    controller.load_resume(resume)

    # --- 3. Run the flows and export ---
    try:
        document = asyncio.run(run_export(controller, job_description, args.analyze, args.generate_objective))
    except ResumeValidationError as e:
        logging.error("Resume failed validation:")
        for field, message in e.field_errors.items():
            logging.error(f"  {field}: {message}")
        return 1
    except ResumakerError as e:
        logging.error(str(e))
        return 1

    logging.info(f"Successfully created {document.filename} ({document.page_count} page(s))")
    return 0


def serve_command(args) -> int:
    uvicorn.run("resumaker.handler:create_app", factory=True, host=args.host, port=args.port)
    return 0


def main(argv=None) -> int:
    """
    Entry point of the resume builder CLI.
    """
    parser = argparse.ArgumentParser(description="AI-assisted Resume Builder CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Export a resume JSON file as a PDF.")
    export_parser.add_argument(
        "--resume",
        type=str,
        required=True,
        help="Path to the resume JSON file."
    )
    export_parser.add_argument(
        "--job-description",
        type=str,
        help="Path to a text file containing a job description."
    )
    export_parser.add_argument(
        "--generate-objective",
        action="store_true",
        help="Replace the objective with one written by Gemini."
    )
    export_parser.add_argument(
        "--analyze",
        action="store_true",
        help="Print Gemini's suggestions for the job description before exporting."
    )
    export_parser.add_argument(
        "--output-dir",
        type=str,
        default="output",
        help="Directory to save the generated PDF."
    )
    export_parser.set_defaults(func=export_command)

    serve_parser = subparsers.add_parser("serve", help="Run the web API.")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(func=serve_command)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
