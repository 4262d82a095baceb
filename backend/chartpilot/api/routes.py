import logging
from typing import List
from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from chartpilot.core.errors import ChartPipelineError, ErrorKinds, get_error_response, status_for_kind
from chartpilot.core.sanitization import sanitize_filename, sanitize_for_logging
from chartpilot.core.schemas import (
    AnalyzeIntentRequest, AnalyzeIntentResponse, ChartGenerationError, InputFile,
)
from chartpilot.services.director import ChartDirector
from chartpilot.services.parser import parse_upload

logger = logging.getLogger(__name__)

router = APIRouter()


def get_director(request: Request) -> ChartDirector:
    """Director built by the composition root in main.py."""
    return request.app.state.director


def error_response(error: ChartGenerationError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for_kind(error.error.kind),
        content=error.model_dump(by_alias=True, mode="json"),
    )


@router.get("/health")
async def health_check():
    return {"status": "ok"}


async def _read_upload(upload: UploadFile, request: Request) -> InputFile:
    """
    Read one upload into an InputFile.

    Oversized files and unknown extensions are not parsed; the input
    classifier reports them.
    """
    settings = request.app.state.settings
    name = sanitize_filename(upload.filename or "")
    contents = await upload.read()
    input_file = InputFile(name=name, size=len(contents), content_type=upload.content_type)

    if len(contents) > settings.max_file_size_bytes or input_file.extension not in settings.supported_extensions_list:
        return input_file

    table = await parse_upload(upload, contents)
    return input_file.model_copy(update={"table": table})


async def _process_chart_request(request: Request, prompt: str, files: List[UploadFile]):
    director = get_director(request)
    try:
        input_files = [await _read_upload(upload, request) for upload in files if upload.filename]
    except ChartPipelineError as e:
        return error_response(director.describe_failure(e, prompt, []))

    outcome = await director.generate_chart(prompt, input_files)
    if isinstance(outcome, ChartGenerationError):
        return error_response(outcome)
    return outcome.model_dump(by_alias=True, mode="json")


@router.post("/chart/generate")
async def generate_chart(
    request: Request,
    prompt: str = Form(""),
    files: List[UploadFile] = File(default=[]),
):
    """
    Generate a chart from a prompt, uploaded files, or both.

    Rate limited per IP address (configurable).
    """
    limiter = request.app.state.limiter
    app_settings = request.app.state.settings

    # Apply rate limit using slowapi's decorator pattern
    limit_decorator = limiter.limit(f"{app_settings.rate_limit_per_minute}/minute")

    @limit_decorator
    async def _rate_limited_handler(request: Request):
        return await _process_chart_request(request, prompt, files)

    try:
        return await _rate_limited_handler(request)
    except RateLimitExceeded:
        # Formatted by the handler registered in main.py
        raise
    except Exception as e:
        logger.error(
            f"Unexpected error generating chart for prompt '{sanitize_for_logging(prompt, 100)}': {e}",
            exc_info=True
        )
        return JSONResponse(status_code=500, content=get_error_response(ErrorKinds.UNKNOWN_ERROR))


@router.post("/ai/analyze-intent")
async def analyze_intent(request: Request, body: AnalyzeIntentRequest):
    """Recommend a chart intent for an already-normalized dataset."""
    director = get_director(request)
    try:
        if body.prompt.strip():
            intent = await director.analyzer.analyze_chart_intent(body.prompt, body.data_structure)
        else:
            intent = await director.analyzer.suggest_best_visualization(body.data_structure)
    except ChartPipelineError as e:
        return error_response(director.describe_failure(e, body.prompt, []))

    return AnalyzeIntentResponse(success=True, chart_intent=intent).model_dump(by_alias=True, mode="json")


@router.get("/status")
async def system_status(request: Request):
    status = await get_director(request).get_system_status()
    return status.model_dump(by_alias=True)
