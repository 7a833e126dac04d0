from fastapi import HTTPException, Request

from app.services.form_storage import FormStorage

def get_storage(request: Request) -> FormStorage:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(status_code=503, detail="Storage is not configured")
    return storage
