import logging
from pathlib import Path
from typing import List, Optional

from fastapi import BackgroundTasks, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field

from .config import Settings
from .tryon import Step, WorkflowState, get_generator, load_catalog
from .tryon.errors import DecodeError
from .tryon.imaging import image_size, read_upload
from .tryon.workflow import WorkflowController

settings = Settings.from_env()

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hairstyle Studio",
    description="Try a new hairstyle on your own photo with an AI image editor",
    version="1.0.0"
)
catalog = load_catalog(settings.styles_file)
controller = WorkflowController(catalog, get_generator("gemini", settings))

# Setup Templates
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


class StyleSelectRequest(BaseModel):
    """Request body for choosing a hairstyle."""
    style_id: str = Field(..., description="Id of a style from /styles")

    class Config:
        json_schema_extra = {
            "example": {
                "style_id": "buzz-cut"
            }
        }


class GeneratedResultResponse(BaseModel):
    original: str
    result: str
    style_applied: str


class SessionResponse(BaseModel):
    """Read-only snapshot of the workflow."""
    step: str
    uploaded_image: Optional[str] = None
    selected_style_id: Optional[str] = None
    selected_style_name: Optional[str] = None
    generated_result: Optional[GeneratedResultResponse] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


class StyleResponse(BaseModel):
    id: str
    name: str
    description: str
    gender: str
    preview_color: str


class StyleListResponse(BaseModel):
    count: int
    styles: List[StyleResponse]


def to_session_response(state: WorkflowState) -> SessionResponse:
    style = catalog.find_style(state.selected_style_id)
    result = state.generated_result
    return SessionResponse(
        step=state.step.value,
        uploaded_image=state.uploaded_image,
        selected_style_id=state.selected_style_id,
        selected_style_name=style.name if style else None,
        generated_result=GeneratedResultResponse(
            original=result.original,
            result=result.result,
            style_applied=result.style_applied
        ) if result else None,
        error=state.error,
        error_kind=state.error_kind.value if state.error_kind else None
    )


@app.get("/", response_class=HTMLResponse)
def read_root(request: Request):
    """
    Serve the Hairstyle Studio UI.
    """
    return templates.TemplateResponse(
        request,
        "index.html",
        {"styles": catalog.list_styles(), "genders": ["male", "female", "unisex"]}
    )


@app.get("/health", tags=["General"])
def health_check():
    return {"status": "ok", "message": "Hairstyle Studio is running"}


@app.get("/styles", response_model=StyleListResponse, tags=["Styles"])
def list_styles(
    q: str = Query(default="", description="Search text for name, description or gender"),
    gender: Optional[str] = Query(default=None, description="male, female or unisex")
):
    """
    List hairstyle presets, optionally filtered.
    """
    styles = catalog.search(q, gender)
    return {
        "count": len(styles),
        "styles": [s.to_dict() for s in styles]
    }


@app.get("/session", response_model=SessionResponse, tags=["Session"])
def get_session():
    """
    Get the current workflow snapshot.
    """
    return to_session_response(controller.snapshot())


@app.post("/session/image", response_model=SessionResponse, tags=["Session"])
async def upload_image(file: UploadFile = File(...)):
    """
    Upload the user's photo and move on to style selection.
    """
    if controller.state.step != Step.UPLOAD:
        raise HTTPException(status_code=409, detail="Start over before uploading a new photo.")

    content = await file.read()
    try:
        image = read_upload(content)
    except DecodeError as e:
        logger.warning(f"Rejected upload {file.filename}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)

    width, height = image_size(content)
    logger.info(f"Uploaded {file.filename} ({width}x{height}, {len(content)} bytes)")
    return to_session_response(controller.select_image(image))


@app.post("/session/style", response_model=SessionResponse, tags=["Session"])
def select_style(request: StyleSelectRequest):
    """
    Choose the hairstyle to apply.

    An id that is not in the catalog leaves the session unchanged.
    """
    if catalog.find_style(request.style_id) is None:
        logger.warning(f"Ignoring unknown hairstyle: {request.style_id}")
        return to_session_response(controller.select_style(request.style_id))
    if controller.state.step != Step.SELECT_STYLE:
        raise HTTPException(status_code=409, detail="A style can only be chosen after uploading a photo.")

    return to_session_response(controller.select_style(request.style_id))


@app.post("/session/apply", response_model=SessionResponse, status_code=202, tags=["Session"])
async def apply_generation(background_tasks: BackgroundTasks):
    """
    Start generating the selected hairstyle in the background.

    Returns immediately in the PROCESSING step.
    Poll GET /session until the step changes.
    """
    ticket = controller.start_generation()
    if ticket is None:
        raise HTTPException(status_code=409, detail="Upload a photo and select a style first.")

    background_tasks.add_task(controller.run_generation, ticket)
    return to_session_response(controller.snapshot())


@app.post("/session/reset", response_model=SessionResponse, tags=["Session"])
def reset_session():
    """
    Discard the photo, style, result and error and return to upload.
    """
    return to_session_response(controller.reset_to_upload())


@app.post("/session/try-another", response_model=SessionResponse, tags=["Session"])
def try_another_style():
    """
    Go back from the result to style selection, keeping the photo.
    """
    if controller.state.step != Step.RESULT:
        raise HTTPException(status_code=409, detail="No result to leave.")
    return to_session_response(controller.try_another_style())


@app.post("/session/dismiss-error", response_model=SessionResponse, tags=["Session"])
def dismiss_error():
    return to_session_response(controller.dismiss_error())


@app.get("/providers", tags=["General"])
def list_providers():
    """
    List available AI providers and their configuration status.
    """
    generator = controller.generator

    return {
        "providers": [
            {
                "name": "gemini",
                "description": f"Google Gemini with {settings.model} model",
                "configured": generator.is_configured(),
                "model": settings.model,
                "required_env_vars": [Settings.ENV_API_KEY],
                "optional_env_vars": [
                    f"{Settings.ENV_MODEL} (default: {Settings.DEFAULT_MODEL})"
                ],
                "missing": generator.get_missing_config()
            }
        ]
    }


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
