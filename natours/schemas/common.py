"""Shared request base and response envelopes."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class RequestModel(BaseModel):
    """Request body accepting snake_case or camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(BaseModel):
    status: str = "success"
    message: str


class DocumentData(BaseModel, Generic[T]):
    document: T


class DocumentEnvelope(BaseModel, Generic[T]):
    status: str = "success"
    data: DocumentData[T]


class ListData(BaseModel):
    documents: list[dict[str, Any]]


class ListEnvelope(BaseModel):
    status: str = "success"
    results: int
    data: ListData


def document(value: Any) -> dict:
    """Wrap a single document in the success envelope."""
    return {"status": "success", "data": {"document": value}}


def documents(values: list[dict[str, Any]]) -> dict:
    """Wrap a list of projected documents in the success envelope."""
    return {"status": "success", "results": len(values), "data": {"documents": values}}
