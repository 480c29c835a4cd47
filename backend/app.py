# app.py
from __future__ import annotations
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_talisman import Talisman
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename

# --- Load env BEFORE importing config (so config sees env) ---
ENV_PATH = Path(__file__).with_name(".env")
load_dotenv(ENV_PATH)

# --- Local modules ---
from config import config_for_env, validate_required_secrets
from errors import ExtractionError, InterviewError, RateLimitedError
from interviewer import DEBUG_QUESTIONS, error_question, generate_questions
from llm_client import get_oracle
from parsers import extract_text, guess_content_type

LOG = logging.getLogger("gateway")

# --- Extensions (bound to each app in create_app) ---
cors = CORS()
talisman = Talisman()
limiter = Limiter(key_func=get_remote_address)

GENERATE_ENDPOINTS = ("generate", "generate_legacy")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def current_oracle():
    """Oracle injected via config (tests), else the lazily built provider client."""
    return current_app.config.get("ORACLE") or get_oracle(current_app.config)


# ------------------------------
# Routes
# ------------------------------
def home():
    return jsonify({"message": "Interview question gateway is running"})


def debug_questions():
    # canned answers; no oracle quota consumed
    return jsonify(DEBUG_QUESTIONS)


@limiter.limit(lambda: current_app.config["GENERATE_RATE_LIMIT"])
def generate():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        data = {}
    result = generate_questions(
        data.get("resume"),
        str(data.get("position") or "").strip(),
        data.get("company"),
        data.get("difficulty"),
        oracle=current_oracle(),
    )
    return jsonify(result.body()), result.status


def extract():
    if "file" not in request.files:
        raise ExtractionError("no file")
    f = request.files["file"]
    if f.filename == "":
        raise ExtractionError("empty filename")

    safe_name = secure_filename(f.filename)
    raw_bytes = f.read()
    content_type = guess_content_type(safe_name, f.mimetype)
    text = extract_text(safe_name, raw_bytes, content_type)
    LOG.info("[extract] extracted text length=%d for %s", len(text), safe_name)
    return jsonify({
        "filename": safe_name,
        "content_type": content_type,
        "text": text,
        "length": len(text),
    })


def handle_interview_error(e: InterviewError):
    LOG.warning("[gateway] %s: %s", e.kind, e.message)
    return jsonify(e.to_dict()), e.status


def handle_too_large(e):
    return jsonify({"error": "Request body too large", "kind": "validation"}), 413


def handle_rate_limited(e):
    err = RateLimitedError(f"Rate limit exceeded: {e.description}")
    LOG.warning("[gateway] %s from %s", err.message, get_remote_address())
    return jsonify(err.to_dict()), err.status


def handle_unexpected(e: Exception):
    if isinstance(e, HTTPException):
        return e
    LOG.exception("[gateway] unhandled error on %s", request.path)
    if request.endpoint in GENERATE_ENDPOINTS:
        data = request.get_json(force=True, silent=True)
        difficulty = data.get("difficulty") if isinstance(data, dict) else None
        return jsonify([error_question(difficulty, str(e))]), 500
    return jsonify({"error": "Internal server error", "kind": "upstream"}), 500


# ------------------------------
# App / Config
# ------------------------------
def create_app(config_object=None) -> Flask:
    cfg = config_object or config_for_env()
    validate_required_secrets(cfg)

    app = Flask(__name__)
    app.config.from_object(cfg)
    app.url_map.strict_slashes = False
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    cors.init_app(app, origins=app.config["CORS_ORIGINS"] or "*")
    talisman.init_app(
        app,
        force_https=app.config.get("FORCE_HTTPS", False),
        content_security_policy={"default-src": ["'none'"], "frame-ancestors": ["'none'"]},
        session_cookie_secure=app.config.get("FORCE_HTTPS", False),
        frame_options="DENY",
        referrer_policy="strict-origin-when-cross-origin",
    )
    limiter.init_app(app)

    app.add_url_rule("/", "home", home, methods=["GET"])
    app.add_url_rule("/debug/questions", "debug_questions", debug_questions, methods=["GET"])
    app.add_url_rule("/api/debug-questions", "debug_questions_legacy", debug_questions, methods=["GET"])
    app.add_url_rule("/generate", "generate", generate, methods=["POST"])
    app.add_url_rule("/api/gemini", "generate_legacy", generate, methods=["POST"])
    app.add_url_rule("/extract", "extract", extract, methods=["POST"])

    app.register_error_handler(InterviewError, handle_interview_error)
    app.register_error_handler(413, handle_too_large)
    app.register_error_handler(429, handle_rate_limited)
    app.register_error_handler(Exception, handle_unexpected)
    return app


# ------------------------------
# Entrypoint
# ------------------------------
if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=app.config.get("DEBUG", False))
