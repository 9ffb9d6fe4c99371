"""FastAPI server exposing closet and outfit endpoints."""

import os
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from outfitly_app.app import OutfitlyApp
from outfitly_app.errors import (
    BaseModelUnavailable,
    CompositionError,
    EmptySelection,
    GarmentApplicationFailed,
    InsufficientItems,
    MalformedResponse,
    UpstreamError,
)
from outfitly_app.logging_config import configure_logging

configure_logging()

app = FastAPI(title="Outfitly", version="0.1.0")


@lru_cache(maxsize=1)
def get_outfitly() -> OutfitlyApp:
    """Build the app lazily so configuration is validated on first use."""

    return OutfitlyApp()


class ItemRequest(BaseModel):
    """Request payload for adding one clothing photo to the closet."""

    image_ref: str = Field(..., min_length=1, description="http(s) URL, data URL or server-side path")


class ReferencePhotoRequest(BaseModel):
    image_ref: str = Field(..., min_length=1)


@app.get("/healthz")
async def healthcheck(outfitly: OutfitlyApp = Depends(get_outfitly)) -> dict:
    """Lightweight readiness probe."""

    return {
        "status": "ok",
        "service": "outfitly",
        "environment": outfitly.config.environment or "local",
        "vision_provider": outfitly.config.vision_provider,
    }


@app.get("/closet/items")
def list_items(outfitly: OutfitlyApp = Depends(get_outfitly)) -> list:
    return [item.to_dict() for item in outfitly.closet()]


@app.post("/closet/items")
def add_item(request: ItemRequest, outfitly: OutfitlyApp = Depends(get_outfitly)) -> dict:
    """Analyze a photo with the vision model and save it."""

    try:
        item = outfitly.analyze_item(request.image_ref)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return item.to_dict()


@app.delete("/closet/items")
def clear_items(outfitly: OutfitlyApp = Depends(get_outfitly)) -> dict:
    return {"deleted": outfitly.clear_closet()}


@app.delete("/closet/items/{item_id}")
def delete_item(item_id: str, outfitly: OutfitlyApp = Depends(get_outfitly)) -> dict:
    if not outfitly.delete_closet_item(item_id):
        raise HTTPException(status_code=404, detail=f"Unknown closet item {item_id}")
    return {"deleted": item_id}


@app.get("/outfits")
def list_outfits(outfitly: OutfitlyApp = Depends(get_outfitly)) -> list:
    return [outfit.to_dict() for outfit in outfitly.outfits()]


@app.post("/outfits/generate")
def generate_outfit(outfitly: OutfitlyApp = Depends(get_outfitly)) -> dict:
    """Run selection and composition; failures are reported for an explicit retry."""

    try:
        outfit = outfitly.generate_outfit()
    except (InsufficientItems, EmptySelection) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (UpstreamError, MalformedResponse, BaseModelUnavailable, GarmentApplicationFailed, CompositionError) as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return outfit.to_dict()


@app.delete("/outfits/{outfit_id}")
def delete_outfit(outfit_id: str, outfitly: OutfitlyApp = Depends(get_outfitly)) -> dict:
    if not outfitly.delete_outfit(outfit_id):
        raise HTTPException(status_code=404, detail=f"Unknown outfit {outfit_id}")
    return {"deleted": outfit_id}


@app.put("/profile/reference-photo")
def set_reference_photo(request: ReferencePhotoRequest, outfitly: OutfitlyApp = Depends(get_outfitly)) -> dict:
    return {"image_ref": outfitly.set_reference_photo(request.image_ref)}


@app.delete("/profile/reference-photo")
def clear_reference_photo(outfitly: OutfitlyApp = Depends(get_outfitly)) -> dict:
    outfitly.clear_reference_photo()
    return {"image_ref": None}


def get_app() -> FastAPI:
    """Expose the FastAPI instance for ASGI servers."""

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:app", host="0.0.0.0", port=int(os.getenv("PORT", "8080")), reload=False)
