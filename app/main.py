from contextlib import asynccontextmanager
from typing import Annotated, Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from .clients.firebase_client import create_movie_client
from .clients.movie_client import MovieClient
from .config import get_settings
from .errors import MovieValidationError, configure_logging, register_error_handlers
from .schemas.movies_schemas import (
    DeleteResponse,
    ErrorResponse,
    MovieListParams,
    MovieListResponse,
    MoviePayload,
    MovieResponse,
    PosterFile,
)

PAYLOAD_FIELDS = ('title', 'genre', 'rating', 'posterUrl')
POSTER_FIELD = 'poster'
LIVENESS_MESSAGE = 'movies-api is running'

settings = get_settings()
configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.movie_client = create_movie_client(settings)
    yield


app = FastAPI(title='movies-api', lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_ORIGIN],
    allow_methods=['*'],
    allow_headers=['*'],
)
register_error_handlers(app)

ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {'model': ErrorResponse},
    404: {'model': ErrorResponse},
    500: {'model': ErrorResponse},
}


def get_movie_client(request: Request) -> MovieClient:
    return request.app.state.movie_client


async def _read_poster(upload: Any) -> Optional[PosterFile]:
    if not isinstance(upload, UploadFile) or not upload.filename:
        return None
    return PosterFile(
        data=await upload.read(),
        filename=upload.filename,
        content_type=upload.content_type,
    )


async def read_movie_payload(request: Request) -> MoviePayload:
    """
    Collect the movie fields from a JSON, urlencoded or multipart body.
    Only keys present in the body are passed on, so updates can tell an
    omitted field from an emptied one.
    """
    poster = None
    if request.headers.get('content-type', '').startswith('application/json'):
        try:
            body = await request.json()
        except ValueError:
            raise MovieValidationError('Malformed JSON body')
        if not isinstance(body, dict):
            raise MovieValidationError('Expected a JSON object')
        fields = {k: body[k] for k in PAYLOAD_FIELDS if k in body}
    else:
        form = await request.form()
        fields = {k: form[k] for k in PAYLOAD_FIELDS
                  if isinstance(form.get(k), str)}
        poster = await _read_poster(form.get(POSTER_FIELD))

    if poster is not None:
        fields[POSTER_FIELD] = poster
    try:
        return MoviePayload.model_validate(fields)
    except ValidationError as e:
        err = e.errors()[0]
        field = '.'.join(str(part) for part in err['loc'])
        raise MovieValidationError(f"{field}: {err['msg']}")


@app.get('/', response_class=PlainTextResponse)
async def liveness():
    return LIVENESS_MESSAGE


@app.get('/movies', response_model=MovieListResponse, responses=ERROR_RESPONSES)
async def list_movies(
    params: Annotated[MovieListParams, Query()],
    client: MovieClient = Depends(get_movie_client)
):
    movies = await client.list_movies(params)
    return MovieListResponse(data=movies)


@app.get('/movies/{movie_id}', response_model=MovieResponse, responses=ERROR_RESPONSES)
async def get_movie(movie_id: str, client: MovieClient = Depends(get_movie_client)):
    return await client.get_movie(movie_id)


@app.post('/movies', status_code=201, response_model=MovieResponse, responses=ERROR_RESPONSES)
async def create_movie(
    payload: MoviePayload = Depends(read_movie_payload),
    client: MovieClient = Depends(get_movie_client)
):
    return await client.create_movie(payload)


@app.put('/movies/{movie_id}', response_model=MovieResponse, responses=ERROR_RESPONSES)
async def update_movie(
    movie_id: str,
    payload: MoviePayload = Depends(read_movie_payload),
    client: MovieClient = Depends(get_movie_client)
):
    return await client.update_movie(movie_id, payload)


@app.delete('/movies/{movie_id}', response_model=DeleteResponse, responses=ERROR_RESPONSES)
async def delete_movie(movie_id: str, client: MovieClient = Depends(get_movie_client)):
    await client.delete_movie(movie_id)
    return DeleteResponse()


def run() -> None:
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=settings.PORT)


if __name__ == '__main__':
    run()
