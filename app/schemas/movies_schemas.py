from datetime import datetime
from typing import List, Optional, Literal, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


SORTABLE_FIELDS = ('rating', 'title', 'createdAt')


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True
    )


class MovieListParams(BaseModel):
    q: Optional[str] = None
    genre: Optional[str] = None
    sort: str = 'createdAt'
    order: str = 'desc'
    limit: int = Field(default=20, ge=1)


class PosterFile(BaseModel):
    data: bytes
    filename: str
    content_type: Optional[str] = None


class MoviePayload(CamelModel):
    """
    Body of a create or update request.

    Only the keys the caller actually sent end up in ``model_fields_set``,
    which is how an update tells "leave alone" from "clear".
    """
    title: Optional[str] = None
    genre: Optional[str] = None
    rating: Optional[Union[float, str]] = None
    poster_url: Optional[str] = None
    poster: Optional[PosterFile] = None

    def supplied(self, field: str) -> bool:
        return field in self.model_fields_set


class MovieResponse(CamelModel):
    id: str
    title: str
    title_lower: Optional[str] = None
    genre: Optional[str] = None
    rating: Optional[float] = None
    poster_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MovieListResponse(BaseModel):
    data: List[MovieResponse]


class DeleteResponse(BaseModel):
    success: Literal[True] = True


class ErrorResponse(BaseModel):
    error: str
