"""
Ephemeral Chat Relay - Lookup Routes

GIF search and link previews. Both are stateless and never fail towards
the client; upstream problems degrade to local defaults.
"""

from fastapi import APIRouter, Depends, Query

from relay.dependencies import get_gif_service, get_preview_service
from relay.services.gif_service import GifService
from relay.services.preview_service import LinkPreviewService

router = APIRouter()


@router.get("/gif/search")
def search_gifs(
    q: str = Query("", max_length=100),
    service: GifService = Depends(get_gif_service),
):
    """Search GIFs by free text"""
    return {"results": service.search(q)}


@router.get("/preview")
def link_preview(
    url: str = Query(..., max_length=2048),
    service: LinkPreviewService = Depends(get_preview_service),
):
    """Metadata card for a URL posted in chat"""
    return service.preview(url)
