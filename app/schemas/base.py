"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that read from ORM models inherit from
BaseResponseSchema; request bodies inherit from BaseCreateSchema or
BaseUpdateSchema.
"""

from typing import Optional
from uuid import UUID

from fastapi import Query
from pydantic import BaseModel, ConfigDict

from app.config import settings


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class FilterResponse(BaseResponseSchema):
            id: UUID
            key: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Strings are stripped so " Sale " and "Sale" validate the same way.
    """
    model_config = ConfigDict(
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
        str_strip_whitespace=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional by default for partial updates.
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )


class PageParams(BaseModel):
    """page/limit query parameters shared by list endpoints."""
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
) -> PageParams:
    return PageParams(page=page, limit=limit)


# Type aliases for common UUID patterns
UUIDField = UUID
OptionalUUID = Optional[UUID]
