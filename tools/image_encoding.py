"""Convert stored image references into the encoding the vision services accept."""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from models.closet_item import ClosetItem
from outfitly_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)

DEFAULT_MIME = "image/jpeg"


@dataclass(frozen=True)
class SnapshotEntry:
    """A closet item paired with its transport-encoded image."""

    item: ClosetItem
    image: str


def to_transport(image_ref: str) -> str:
    """Return a URL the services can fetch: http(s) and data URLs pass through."""

    if not image_ref:
        raise ValueError("image reference is empty")
    if image_ref.startswith(("http://", "https://", "data:")):
        return image_ref
    path = Path(image_ref[len("file://"):] if image_ref.startswith("file://") else image_ref)
    if not path.is_file():
        raise FileNotFoundError(f"Image not found: {path}")
    mime_type = mimetypes.guess_type(path.name)[0] or DEFAULT_MIME
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def split_data_url(data_url: str) -> Tuple[str, bytes]:
    """Decode ``data:<mime>;base64,<payload>`` into its mime type and bytes."""

    if not data_url.startswith("data:") or "," not in data_url:
        raise ValueError("not a data URL")
    header, payload = data_url[len("data:"):].split(",", 1)
    mime_type = header.split(";", 1)[0] or DEFAULT_MIME
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError("data URL payload is not valid base64") from exc


def _encode_or_error(item: ClosetItem) -> Tuple[Optional[str], Optional[Exception]]:
    try:
        return to_transport(item.image_ref), None
    except (OSError, ValueError) as exc:
        return None, exc


def encode_closet(items: Sequence[ClosetItem], max_workers: int = 4) -> List[SnapshotEntry]:
    """Encode every item's image concurrently, preserving input order.

    Items whose image can no longer be read are logged and left out, so one
    missing file does not block selection from the rest of the closet.
    """

    if not items:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as pool:
        results = list(pool.map(_encode_or_error, items))

    snapshot: List[SnapshotEntry] = []
    for item, (image, error) in zip(items, results):
        if error is not None:
            log_event(
                LOGGER,
                logging.WARNING,
                "closet_image_unreadable",
                item_id=item.id,
                image_ref=item.image_ref,
                error=str(error),
            )
            continue
        snapshot.append(SnapshotEntry(item=item, image=image))
    return snapshot


__all__ = ["SnapshotEntry", "encode_closet", "split_data_url", "to_transport"]
