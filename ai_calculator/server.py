"""FastAPI server exposing the calculation pipeline."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import Config
from .errors import CalculatorError
from .models import AngleMode
from .pipeline import CalculationPipeline, build_pipeline

logger = logging.getLogger(__name__)


class EvalRequest(BaseModel):
    """Body of ``POST /api/eval``."""

    model_config = ConfigDict(populate_by_name=True)

    expression: str | None = None
    angle_mode: AngleMode | None = Field(default=None, alias="angleMode")
    local_only: bool = Field(default=False, alias="localOnly")

    @field_validator("angle_mode", mode="before")
    @classmethod
    def _parse_angle_mode(cls, value):
        if value is None:
            return None
        return AngleMode.parse(value)


def _error_response(status_code: int, message: str, normalized: str | None = None) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if normalized:
        content["normalized"] = normalized
    return JSONResponse(content, status_code=status_code)


def create_app(config: Config, pipeline: CalculationPipeline | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration
        pipeline: Calculation pipeline; built from config when omitted

    Returns:
        Configured FastAPI app
    """
    if pipeline is None:
        pipeline = build_pipeline(config)

    app = FastAPI(
        title="AI Calculator",
        description="Evaluate math expressions and natural-language math questions",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "ai-calculator",
            "normalizer": "enabled" if pipeline.remote_enabled else "disabled",
        }

    @app.post("/api/eval")
    async def evaluate(request: Request) -> JSONResponse:
        """Evaluate an expression or natural-language math question.

        Returns:
            200 ``{result, normalized?}`` on success, 400 ``{error, normalized?}``
            on bad input or a calculation failure, 500 ``{error}`` otherwise.
        """
        try:
            body = await request.json()
        except (ValueError, UnicodeDecodeError) as e:
            logger.info("Rejected request with invalid JSON: %s", e)
            return _error_response(400, "Invalid JSON payload")

        if not isinstance(body, dict):
            return _error_response(400, "Request body must be a JSON object")

        try:
            payload = EvalRequest.model_validate(body)
        except ValidationError as e:
            logger.info("Rejected invalid request: %s", e.errors()[0].get("msg"))
            return _error_response(400, f"Invalid request: {e.errors()[0].get('msg')}")

        if not payload.expression or not payload.expression.strip():
            return _error_response(400, "Missing expression")

        angle_mode = payload.angle_mode or config.calculator.default_angle_mode

        try:
            outcome = await pipeline.run(
                payload.expression,
                angle_mode,
                local_only=payload.local_only,
            )
        except CalculatorError as e:
            logger.info("Evaluation failed (%s): %s", e.code, e)
            return _error_response(400, str(e), e.normalized)
        except Exception as e:
            logger.exception("Unexpected error evaluating expression: %s", e)
            return _error_response(500, "Server error")

        content: dict[str, Any] = {"result": outcome.result.to_json()}
        if outcome.normalized:
            content["normalized"] = outcome.normalized
        return JSONResponse(content, status_code=200)

    return app
