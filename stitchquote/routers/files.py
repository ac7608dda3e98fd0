# stitchquote/routers/files.py
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from stitchquote.dependencies import Services, get_services
from stitchquote.domain.errors import QuoteNotFound
from stitchquote.services.storage import LocalStorage, StorageError

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{key:path}")
def serve_file(key: str, services: Services = Depends(get_services)) -> FileResponse:
    """Local-storage blobs; S3 URLs point straight at the bucket."""
    storage = services.storage
    if not isinstance(storage, LocalStorage):
        raise QuoteNotFound("File not found.")
    try:
        path = storage.path_for(key)
    except StorageError:
        raise QuoteNotFound("File not found.")
    if not path.is_file():
        raise QuoteNotFound("File not found.")
    return FileResponse(path)
