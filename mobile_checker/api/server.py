"""Lightweight HTTP API for the mobile coverage checker."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from mobile_checker.checker.orchestrator import Checker
from mobile_checker.common.config_loader import load_config
from mobile_checker.common.constants import DEFAULT_CONFIG_DIR, DEFAULT_DATA_DIR
from mobile_checker.common.ids import generate_run_id
from mobile_checker.common.logging import build_logger, log_event

SERVICE_NAME = "UK Mobile Coverage API"


class BulkRequest(BaseModel):
    postcodes: list[str]


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


def create_app(checker: Checker, *, max_bulk_postcodes: int = 50) -> FastAPI:
    app = FastAPI(title=SERVICE_NAME)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, _exc: RequestValidationError) -> JSONResponse:
        return error_response(400, "invalid JSON body")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "service": SERVICE_NAME, "dataset_ready": checker.dataset.is_ready()}

    @app.get("/api/mobile/bulk")
    def bulk_requires_post():
        return error_response(405, "POST required")

    @app.post("/api/mobile/bulk")
    def check_bulk(body: BulkRequest):
        if not body.postcodes or len(body.postcodes) > max_bulk_postcodes:
            return error_response(400, f"provide between 1 and {max_bulk_postcodes} postcodes")
        results = checker.check_multiple(body.postcodes)
        return {"status": "ok", "results": [result.to_dict() for result in results]}

    @app.get("/api/mobile/{postcode}")
    def check_postcode(postcode: str):
        if not postcode.strip():
            return error_response(400, "postcode required")
        result = checker.check(postcode)
        if result.error:
            return error_response(404, result.error)
        return {"status": "ok", "result": result.to_dict()}

    return app


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=5001)
    parser.add_argument("--config-dir", default=str(DEFAULT_CONFIG_DIR))
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default=str(DEFAULT_DATA_DIR))
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    data_dir = Path(args.data_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None

    logger = build_logger(generate_run_id("serve"), level=args.log_level)
    config = load_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    checker = Checker.from_config(config, data_dir)
    if not checker.dataset.is_ready():
        log_event(logger, "coverage store missing, run 'mobile-checker setup' first", stage="serve", event="DATASET_MISSING", status="warning")

    app = create_app(checker, max_bulk_postcodes=config.max_bulk_postcodes)
    log_event(logger, f"{SERVICE_NAME} listening on http://{args.host}:{args.port}", stage="serve", event="SERVE_START", status="ok")
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower().replace("warn", "warning"))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
