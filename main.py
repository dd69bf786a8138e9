from fastapi import FastAPI, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from io import BytesIO
from typing import AsyncIterator, Optional
import os
import json
import logging

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

# Local imports
from dtos.chat_request import ChatRequest, AgentOptions
from schemas import UploadResponse, UploadErrorResponse
from services import minio_service, UploadService, stream_response, get_mcp_server_configs
from services.uploads import (
    OCTET_STREAM, OCTET_STREAM_ALLOWED_EXTENSIONS, file_extension, is_valid_text_content, validate_file,
)
from utils import create_sse_stream, error_message, format_sse

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Thread ids with a turn currently streaming; turns are otherwise fully request-scoped
    app.state.active_threads = set()
    logger.info("Agent chat service started")
    yield
    app.state.active_threads.clear()


app = FastAPI(
    title="Agent Chat Service",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
origins = os.getenv("ALLOWED_ORIGINS", "*").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins if origins != ["*"] else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600
)


@app.get("/")
async def root():
    return {"message": "Agent chat service", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "agent-chat"}


@app.get("/health/detailed")
async def detailed_health_check():
    """Comprehensive health check for all collaborators."""
    health_status = {
        "status": "healthy",
        "service": "agent-chat",
        "checks": {}
    }

    # Check MinIO connection
    try:
        buckets = minio_service.client.list_buckets()
        health_status["checks"]["minio"] = {"status": "healthy", "buckets": len(buckets)}
    except Exception as e:
        health_status["checks"]["minio"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    # Check model provider configuration
    health_status["checks"]["model_provider"] = {
        "openai": "configured" if os.getenv("OPENAI_API_KEY") else "not_configured",
        "google": "configured" if os.getenv("GOOGLE_API_KEY") else "not_configured",
    }

    # Check tool servers
    servers = get_mcp_server_configs()
    health_status["checks"]["tool_servers"] = {"enabled": len(servers), "names": sorted(servers)}

    return health_status


async def run_turn(req: ChatRequest) -> AsyncIterator[str]:
    """Stream one turn, refusing a second concurrent turn on the same thread."""
    active_threads = app.state.active_threads
    if req.thread_id in active_threads:
        logger.warning(f"Rejected concurrent turn for thread {req.thread_id}")
        yield format_sse({"message": "A response is already being generated for this thread"}, event="error")
        return

    active_threads.add(req.thread_id)
    try:
        stream = create_sse_stream(lambda: stream_response(
            thread_id=req.thread_id,
            user_text=req.message,
            history=req.history,
            options=AgentOptions.from_request(req),
            allow_tool=req.allow_tool,
            attachments=req.attachments,
        ))
        async for frame in stream:
            yield frame
    finally:
        active_threads.discard(req.thread_id)


@app.post("/stream")
async def stream(req: ChatRequest):
    if not req.allow_tool and not req.message and not req.attachments:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message content is required")

    return StreamingResponse(run_turn(req), media_type="text/event-stream", headers=SSE_HEADERS)


@app.get("/stream")
async def stream_query(
    thread_id: str = Query(..., alias="threadId"),
    content: str = Query(""),
    history: str = Query("[]"),
    model: Optional[str] = Query(None),
    tools: Optional[str] = Query(None),
    allow_tool: Optional[str] = Query(None, alias="allowTool"),
    approve_all_tools: Optional[str] = Query(None, alias="approveAllTools"),
):
    """EventSource-friendly variant of POST /stream taking everything as query parameters."""
    try:
        parsed_history = json.loads(history)
        if not isinstance(parsed_history, list):
            raise ValueError("history must be a JSON array")
    except ValueError as e:
        # Same policy as hydration: lose history rather than fail the turn
        logger.error(f"Ignoring unreadable history for thread {thread_id}: {e}")
        parsed_history = []

    if allow_tool not in (None, "allow", "deny"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="allowTool must be 'allow' or 'deny'")

    req = ChatRequest(
        thread_id=thread_id,
        message=content,
        history=parsed_history,
        model=model,
        tools=[name for name in tools.split(",") if name] if tools else None,
        allow_tool=allow_tool,
        approve_all_tools=(approve_all_tools or "").lower() == "true",
    )
    return await stream(req)


def upload_error(message: str, field: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=UploadErrorResponse(error=message, field=field).model_dump(),
    )


@app.post("/upload", response_model=UploadResponse)
async def upload_file(file: Optional[UploadFile] = File(None)):
    """
    Upload a chat attachment.

    Images (png/jpeg) up to 5MB, PDFs up to 10MB, markdown and plain text up
    to 2MB. application/octet-stream is accepted only for .md/.markdown/.txt.
    """
    if file is None:
        return upload_error("No file provided", "file")

    filename = file.filename or ""
    content_type = file.content_type or OCTET_STREAM
    file_content = await file.read()
    file_size = len(file_content)

    validation_error = validate_file(filename, content_type, file_size)
    if validation_error:
        return upload_error(validation_error.message, validation_error.field)

    # Content inspection for text uploaded as octet-stream is opt-in
    strict_text = os.getenv("STRICT_TEXT_UPLOADS", "false").lower() == "true"
    if (
        strict_text
        and content_type == OCTET_STREAM
        and file_extension(filename) in OCTET_STREAM_ALLOWED_EXTENSIONS
        and not is_valid_text_content(file_content)
    ):
        return upload_error("File appears to be binary, not text", "content")

    try:
        attachment = UploadService.upload_attachment(
            filename=filename,
            file_data=BytesIO(file_content),
            file_size=file_size,
            content_type=content_type,
        )
    except Exception as e:
        logger.error(f"Upload error: {e}")
        return upload_error(error_message(e) or "Upload failed", "server", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return UploadResponse(**attachment.model_dump())
