"""Request bodies for the memory endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ContextRequest(_Body):
    """POST /api/get-context"""

    user_id: str | None = Field(default=None, alias="userId")
    couple_id: str | None = Field(default=None, alias="coupleId")


class EraseRequest(_Body):
    """POST /api/memory/delete

    ``deleteType`` stays untyped here; :meth:`EraseScope.parse` rejects
    anything that is not a known scope with ``Invalid deleteType``.
    """

    user_id: str | None = Field(default=None, alias="userId")
    delete_type: Any = Field(default=None, alias="deleteType")
