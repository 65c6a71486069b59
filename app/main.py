import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, UploadFile, HTTPException, File, Depends, Header, Query, Request, BackgroundTasks
from fastapi.responses import Response, HTMLResponse
from fastapi.templating import Jinja2Templates
from pathlib import Path
from pydantic import BaseModel, Field
from typing import List, Optional
from .gradphoto import ErrorKind, GradPhotoError, Workflow, WorkflowState, get_generator
from .gradphoto.clients import PROVIDERS
from .gradphoto.codec import guess_mime_type, to_data_url
from .gradphoto.compositor import ensure_png
from .gradphoto.export import build_share_bundle, download_data_url, download_filename, mailto_link
from .gradphoto.models import SourceImage
from .gradphoto.progress import ProgressTicker
from .gradphoto.workflow import DEFAULT_CAPTION

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Settings
PROVIDER = os.getenv("GRADPHOTO_PROVIDER", "gemini")
CAPTION = os.getenv("GRADPHOTO_DEFAULT_CAPTION", DEFAULT_CAPTION)
PROGRESS_INTERVAL_MS = int(os.getenv("GRADPHOTO_PROGRESS_INTERVAL_MS", "3000"))
MODEL_CAPTION = os.getenv("GRADPHOTO_MODEL_CAPTION", "false").lower() in ("1", "true", "yes")

# Upload types that say nothing about the content; the filename decides instead.
GENERIC_CONTENT_TYPES = {None, "", "application/octet-stream", "binary/octet-stream"}

# Security Configuration
API_KEY = os.getenv("API_KEY")


def create_workflow() -> Workflow:
    return Workflow(
        generator=get_generator(PROVIDER),
        default_caption=CAPTION,
        ticker=ProgressTicker(interval=PROGRESS_INTERVAL_MS / 1000),
        model_caption=MODEL_CAPTION,
    )


workflow = create_workflow()


# Endpoints touching the workflow are async so state only changes on the event loop.
def get_workflow() -> Workflow:
    return workflow


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # No progress timer may outlive the app.
    workflow.close()


app = FastAPI(
    title="Graduation Photo Studio",
    description="Dresses a portrait in a graduation gown and captions the result",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup Templates
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def get_api_key(
    api_key_header: str = Header(None, alias="X-API-Key"),
    api_key_query: str = Query(None, alias="api_key")
):
    """
    Validate API Key from Header or Query Parameter.
    """
    if not API_KEY:
        return True # Open if no key configured (dev mode)

    key = api_key_header or api_key_query
    if key != API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API Key")
    return key


class ErrorModel(BaseModel):
    kind: str
    message: str


class StatusResponse(BaseModel):
    """Current state of the photo session."""
    state: str
    caption: str
    filename: Optional[str] = None
    progress_message: Optional[str] = None
    error: Optional[ErrorModel] = None
    has_result: bool = False


class CaptionRequest(BaseModel):
    """Request body for caption edits."""
    text: str = Field(default="", description="Caption burned into the photo; lines split on \\n")

    model_config = {
        "json_schema_extra": {
            "example": {"text": "Class of 2025\nCongratulations!"}
        }
    }


class ShareFile(BaseModel):
    name: str
    mime_type: str
    size: int
    data_url: str


class ShareResponse(BaseModel):
    title: str
    text: str
    files: List[ShareFile]


def status_response(wf: Workflow) -> StatusResponse:
    status = wf.status()
    error = None
    if status.error is not None:
        error = ErrorModel(kind=status.error.kind.value, message=status.error.message)
    return StatusResponse(
        state=status.state.value,
        caption=status.caption,
        filename=status.filename,
        progress_message=status.progress_message,
        error=error,
        has_result=status.has_result,
    )


def require_result(wf: Workflow):
    if wf.state != WorkflowState.RESULT or wf.final_image is None:
        raise HTTPException(status_code=404, detail="No generated photo available")
    return wf.final_image


@app.get("/", response_class=HTMLResponse)
async def read_root(request: Request, wf: Workflow = Depends(get_workflow)):
    """
    Serve the Home Page UI.
    """
    return templates.TemplateResponse(request, "index.html", {"status": status_response(wf)})


@app.get("/status", response_model=StatusResponse)
async def get_status(wf: Workflow = Depends(get_workflow)):
    """
    Current workflow state, rotating progress message and error, if any.
    """
    return status_response(wf)


@app.post("/photo", response_model=StatusResponse)
async def upload_photo(
    file: UploadFile = File(...),
    auth: str = Depends(get_api_key),
    wf: Workflow = Depends(get_workflow)
):
    """
    Select the photo to dress up. Replaces any previous photo or result.
    """
    filename = file.filename or "image"
    declared = file.content_type
    if declared in GENERIC_CONTENT_TYPES:
        declared = None
    mime_type = guess_mime_type(filename, declared)
    if not mime_type.startswith("image/"):
        raise HTTPException(status_code=400, detail=f"Not an image: {mime_type}")
    try:
        content = await file.read()
    except OSError as e:
        logger.error(f"Could not read upload {file.filename}: {e}")
        err = GradPhotoError(ErrorKind.IO_FAILURE, cause=e)
        raise HTTPException(status_code=400, detail=err.user_message)

    wf.select_file(SourceImage(
        data=content,
        mime_type=mime_type,
        filename=filename
    ))
    return status_response(wf)


@app.put("/caption", response_model=StatusResponse)
async def update_caption(
    request: CaptionRequest,
    auth: str = Depends(get_api_key),
    wf: Workflow = Depends(get_workflow)
):
    """
    Edit the caption before generating.
    """
    if not wf.set_caption(request.text):
        raise HTTPException(status_code=409, detail=f"Caption cannot be changed while {wf.state.value}")
    return status_response(wf)


@app.post("/generate", response_model=StatusResponse, tags=["Generation"])
async def generate(
    auth: str = Depends(get_api_key),
    wf: Workflow = Depends(get_workflow)
):
    """
    Generate the graduation photo and wait for the outcome.

    Poll GET /status from another request to follow the progress messages.
    A request made while a generation is already running has no effect.
    """
    if wf.state == WorkflowState.INITIAL and wf.source is None:
        raise HTTPException(status_code=400, detail="Upload a photo first")
    await wf.generate()
    return status_response(wf)


@app.post("/generate/async", response_model=StatusResponse, tags=["Generation"])
async def generate_async(
    background_tasks: BackgroundTasks,
    auth: str = Depends(get_api_key),
    wf: Workflow = Depends(get_workflow)
):
    """
    Start generation in the background and return immediately.
    Use GET /status to follow it.
    """
    if not wf.can_generate:
        raise HTTPException(status_code=409, detail=f"Cannot generate while {wf.state.value}")

    background_tasks.add_task(wf.generate)
    return status_response(wf)


@app.post("/retry", response_model=StatusResponse, tags=["Generation"])
async def retry(
    auth: str = Depends(get_api_key),
    wf: Workflow = Depends(get_workflow)
):
    """
    Run the whole generation again after a failure.
    """
    if wf.state != WorkflowState.ERROR:
        raise HTTPException(status_code=409, detail=f"Nothing to retry while {wf.state.value}")
    await wf.retry()
    return status_response(wf)


@app.post("/reset", response_model=StatusResponse)
async def reset(
    auth: str = Depends(get_api_key),
    wf: Workflow = Depends(get_workflow)
):
    """
    Start over with another photo and the default caption.
    """
    wf.reset()
    return status_response(wf)


@app.get("/result", tags=["Export"])
async def download_result(wf: Workflow = Depends(get_workflow)):
    """
    Download the finished photo as PNG.
    """
    final = require_result(wf)
    try:
        content = ensure_png(final.data, final.mime_type)
    except GradPhotoError as e:
        logger.error(f"Download failed: {e}")
        raise HTTPException(status_code=500, detail=e.user_message)

    filename = download_filename(wf.source)
    return Response(
        content=content,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@app.get("/result/data-url", tags=["Export"])
async def result_data_url(wf: Workflow = Depends(get_workflow)):
    """
    The finished photo as a PNG data URL, with its download filename.
    """
    final = require_result(wf)
    try:
        data_url = download_data_url(final)
    except GradPhotoError as e:
        logger.error(f"Data URL export failed: {e}")
        raise HTTPException(status_code=500, detail=e.user_message)
    return {"filename": download_filename(wf.source), "data_url": data_url}


@app.get("/result/share", response_model=ShareResponse, tags=["Export"])
async def share_result(wf: Workflow = Depends(get_workflow)):
    """
    Payload for a native share sheet: title, caption text and one image file.
    Failures are reported without touching the workflow.
    """
    final = require_result(wf)
    try:
        bundle = build_share_bundle(final, wf.source, wf.caption)
    except GradPhotoError as e:
        logger.error(f"Share failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to share the image.")

    return ShareResponse(
        title=bundle.title,
        text=bundle.text,
        files=[
            ShareFile(name=f.filename, mime_type=f.mime_type, size=f.size, data_url=to_data_url(f.data, f.mime_type))
            for f in bundle.files
        ]
    )


@app.get("/result/mailto", tags=["Export"])
async def result_mailto(wf: Workflow = Depends(get_workflow)):
    """
    `mailto:` link for sharing by e-mail. The photo itself is not attached.
    """
    require_result(wf)
    return {"href": mailto_link()}


@app.get("/providers", tags=["Generation"])
def list_providers():
    """
    List available AI providers and their configuration status.
    """
    providers = []
    for name, cls in PROVIDERS.items():
        generator = cls()
        providers.append({
            "name": name,
            "active": name == PROVIDER.lower(),
            "model": generator.model,
            "configured": generator.is_configured(),
            "missing": generator.get_missing_config()
        })
    return {"providers": providers}
