"""Generation admission router."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models.enums import AspectRatio, FluxModel
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from services.errors import BillingError
from services.flux_client import FluxApiClient, get_flux_client
from services.generation import GenerationRequest, request_generation

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateGenerateRequest(BaseModel):
    model: FluxModel
    inputPrompt: str
    aspectRatio: AspectRatio
    isPrivate: int = 0
    locale: str = "en"


def _error(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(problems) or "Invalid request"


@router.post("")
async def create_generation(
    request: Request,
    _rate_limit: None = Depends(
        rate_limit(
            "generate",
            limit=settings.GENERATE_RATE_LIMIT,
            window_seconds=settings.GENERATE_RATE_WINDOW_SECONDS,
        )
    ),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    flux_client: FluxApiClient = Depends(get_flux_client),
):
    try:
        body = CreateGenerateRequest.model_validate(await request.json())
    except ValidationError as exc:
        return _error(_validation_message(exc))
    except ValueError:
        return _error("Request body must be valid JSON")

    try:
        job_id = await request_generation(
            auth.user_id,
            GenerationRequest(
                model=body.model,
                input_prompt=body.inputPrompt,
                aspect_ratio=body.aspectRatio,
                is_private=body.isPrivate,
                locale=body.locale,
            ),
            db,
            flux_client,
        )
    except BillingError as exc:
        return _error(exc.message, exc.status_code)
    except Exception:
        logger.exception("Generation request failed user=%s", auth.user_id)
        return _error("Generation request failed")

    return {"id": job_id}
