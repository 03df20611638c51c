import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from google.cloud.firestore_v1.base_query import FieldFilter

from ..errors import MovieNotFoundError, MovieValidationError
from ..schemas.movies_schemas import (
    MovieListParams,
    MoviePayload,
    MovieResponse,
    PosterFile,
)
from ..utils.utils_movies_client import (
    coerce_rating,
    matches_query,
    resolve_ordering,
    snapshot_to_movie,
    upload_poster,
)

logger = logging.getLogger(__name__)

MOVIES_COLLECTION = 'movies'


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MovieClient:
    """
    CRUD and search over the movies collection.

    Holds an async Firestore collection reference and the storage bucket
    used for posters. One instance is built at startup and shared by all
    requests; it keeps no state of its own between calls.
    """

    def __init__(self, collection: Any, bucket: Any):
        self.collection = collection
        self.bucket = bucket

    async def list_movies(self, params: MovieListParams) -> List[MovieResponse]:
        """
        List movies, optionally filtered by genre and title text.

        Genre, ordering and limit are applied by Firestore. The title
        filter runs afterwards on the fetched page, so it can only shrink
        the result below ``limit``; it never fetches more.

        :param params: MovieListParams with q, genre, sort, order and limit.
        :return: Movies in database order.
        """
        query = self.collection
        if params.genre:
            query = query.where(filter=FieldFilter('genre', '==', params.genre))

        field, direction = resolve_ordering(params)
        query = query.order_by(field, direction=direction).limit(params.limit)

        movies = [snapshot_to_movie(doc) async for doc in query.stream()]
        if params.q:
            movies = [m for m in movies if matches_query(m, params.q)]
        return movies

    async def get_movie(self, movie_id: str) -> MovieResponse:
        snapshot = await self.collection.document(movie_id).get()
        if not snapshot.exists:
            raise MovieNotFoundError(movie_id)
        return snapshot_to_movie(snapshot)

    async def create_movie(self, payload: MoviePayload) -> MovieResponse:
        """
        Store a new movie and return it as read back from Firestore.

        An uploaded poster wins over a posterUrl sent in the same request.
        The upload is not rolled back if the write fails afterwards.
        """
        if not payload.title:
            raise MovieValidationError('Title is required')

        rating = coerce_rating(payload.rating)
        poster_url = payload.poster_url or None
        if payload.poster:
            poster_url = await self._upload(payload.poster)

        now = _now()
        _, doc_ref = await self.collection.add({
            'title': payload.title,
            'titleLower': payload.title.lower(),
            'genre': payload.genre or None,
            'rating': rating,
            'posterUrl': poster_url,
            'createdAt': now,
            'updatedAt': now,
        })
        logger.info("Created movie %s", doc_ref.id)

        snapshot = await doc_ref.get()
        return snapshot_to_movie(snapshot)

    async def update_movie(self, movie_id: str, payload: MoviePayload) -> MovieResponse:
        """
        Merge the supplied fields into an existing movie.

        updatedAt is refreshed even when nothing else changes.
        """
        doc_ref = self.collection.document(movie_id)
        snapshot = await doc_ref.get()
        if not snapshot.exists:
            raise MovieNotFoundError(movie_id)

        updates = self._build_updates(payload)
        if payload.poster:
            updates['posterUrl'] = await self._upload(payload.poster)
        updates['updatedAt'] = _now()

        await doc_ref.update(updates)
        logger.info("Updated movie %s (%s)", movie_id, ', '.join(sorted(updates)))

        snapshot = await doc_ref.get()
        return snapshot_to_movie(snapshot)

    async def delete_movie(self, movie_id: str) -> None:
        # Firestore treats deleting a missing document as success
        await self.collection.document(movie_id).delete()
        logger.info("Deleted movie %s", movie_id)

    @staticmethod
    def _build_updates(payload: MoviePayload) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        if payload.title:
            updates['title'] = payload.title
            updates['titleLower'] = payload.title.lower()
        if payload.supplied('genre'):
            updates['genre'] = payload.genre or None
        if payload.supplied('rating'):
            updates['rating'] = coerce_rating(payload.rating)
        if payload.supplied('poster_url'):
            updates['posterUrl'] = payload.poster_url or None
        return updates

    async def _upload(self, poster: PosterFile) -> str:
        return await upload_poster(
            self.bucket, poster.data, poster.filename, poster.content_type
        )
