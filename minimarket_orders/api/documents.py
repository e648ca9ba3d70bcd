"""
Document template preview endpoint
"""
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from minimarket_orders.schemas.notification import DocumentKind
from minimarket_orders.services.document_renderer import RenderError

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("/preview", summary="Preview the receipt template")
def preview_template(request: Request):
    """Render the receipt template with sample data and the runtime's branding"""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Document renderer not started")

    try:
        path = runtime.renderer.render(DocumentKind.TEMPLATE_PREVIEW, "PREVIEW-0001", runtime.pipeline.branding)
    except RenderError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return FileResponse(
        path,
        media_type="application/pdf",
        filename="template_preview.pdf",
        background=BackgroundTask(runtime.cleanup.schedule_delete, path),
    )
