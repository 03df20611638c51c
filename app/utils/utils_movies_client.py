import logging
import math
import time
import uuid
from typing import Any, Optional, Tuple, Union

from fastapi.concurrency import run_in_threadpool
from google.cloud import firestore

from ..errors import MovieValidationError
from ..schemas.movies_schemas import MovieListParams, MovieResponse, SORTABLE_FIELDS

logger = logging.getLogger(__name__)

STORAGE_HOST = 'storage.googleapis.com'
POSTER_PREFIX = 'posters'
# google-cloud-storage switches to resumable uploads above this size
MAX_POSTER_BYTES = 8 * 1024 * 1024

DEFAULT_SORT = 'createdAt'
DIRECTIONS = {
    'asc': firestore.Query.ASCENDING,
    'desc': firestore.Query.DESCENDING,
}


def build_poster_path(
    filename: str,
    now_ms: Optional[int] = None,
    unique_id: Optional[str] = None
) -> str:
    """
    Build a collision-free storage key for an uploaded poster while keeping
    the original filename readable at the end.

    :param filename: Name of the file as sent by the client.
    :param now_ms: Millisecond timestamp, defaults to the current time.
    :param unique_id: Random component, defaults to a fresh uuid4.
    :return: Key of the form posters/<ms>_<uuid>_<filename>.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if unique_id is None:
        unique_id = str(uuid.uuid4())
    return f"{POSTER_PREFIX}/{now_ms}_{unique_id}_{filename}"


def poster_public_url(bucket_name: str, path: str) -> str:
    return f"https://{STORAGE_HOST}/{bucket_name}/{path}"


async def upload_poster(
    bucket: Any,
    data: bytes,
    filename: str,
    content_type: Optional[str]
) -> str:
    """
    Store a poster image in the bucket, make it world readable and return
    its public URL.

    The storage SDK is blocking, so both calls go through the threadpool.
    Posters larger than MAX_POSTER_BYTES are rejected so the write is
    always a single multipart request. Storage failures are not caught here.

    :param bucket: google-cloud-storage bucket handle.
    :param data: Raw file bytes.
    :param filename: Original filename, kept as the key suffix.
    :param content_type: Declared MIME type of the file.
    :return: Public URL of the stored object.
    """
    if len(data) > MAX_POSTER_BYTES:
        raise MovieValidationError('Poster must be at most 8 MB')
    path = build_poster_path(filename)
    blob = bucket.blob(path)
    await run_in_threadpool(
        blob.upload_from_string, data, content_type=content_type
    )
    await run_in_threadpool(blob.make_public)
    logger.info("Uploaded poster %s (%d bytes)", path, len(data))
    return poster_public_url(bucket.name, path)


def coerce_rating(value: Union[float, int, str, None]) -> Optional[float]:
    """
    Turn a rating from a form or JSON body into a number.
    None and the empty string mean "no rating".
    """
    if value is None or value == '':
        return None
    try:
        rating = float(value)
    except (TypeError, ValueError):
        raise MovieValidationError('Rating must be a number')
    if not math.isfinite(rating):
        raise MovieValidationError('Rating must be a number')
    return rating


def resolve_ordering(params: MovieListParams) -> Tuple[str, str]:
    """
    Pick the field and direction for the database query.
    Anything outside the whitelist falls back to newest first, and
    order is only checked when the sort field is honoured.
    """
    if params.sort in SORTABLE_FIELDS:
        if params.order not in DIRECTIONS:
            raise MovieValidationError("Order must be 'asc' or 'desc'")
        return params.sort, DIRECTIONS[params.order]
    return DEFAULT_SORT, firestore.Query.DESCENDING


def matches_query(movie: MovieResponse, q: str) -> bool:
    return bool(movie.title) and q.lower() in movie.title.lower()


def snapshot_to_movie(snapshot: Any) -> MovieResponse:
    return MovieResponse.model_validate({'id': snapshot.id, **(snapshot.to_dict() or {})})
