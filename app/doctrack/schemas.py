"""Pydantic request/response contracts for the JSON API.

Request models accept camelCase keys (the client's wire format) and snake_case.
Response models read ORM attributes and dump camelCase.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional, TypeVar

from flask import request
from pydantic import AliasChoices, AliasGenerator, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from app.doctrack.errors import ValidationFailed

DocumentStatus = Literal["pending", "in_progress", "approved", "completed", "rejected"]

M = TypeVar("M", bound=BaseModel)


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ResponseModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )


# --- auth ---


class RegisterRequest(RequestModel):
    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=1, max_length=320)
    department: Optional[str] = None
    # No `role` field: registered users are always "user"; admins come from scripts/init_db.py.


class LoginRequest(RequestModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# --- departments / document types ---


class DepartmentCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class WorkflowStep(RequestModel):
    department_id: int
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    order: int
    is_optional: bool = False


class WorkflowConfiguration(RequestModel):
    steps: list[WorkflowStep] = Field(default_factory=list)
    allow_skip: bool = False


class DocumentTypeCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    # Older clients post the same object as `workflowConfig`.
    workflow: WorkflowConfiguration = Field(
        default_factory=WorkflowConfiguration,
        validation_alias=AliasChoices("workflow", "workflowConfig"),
    )
    strict_mode: bool = True


# --- documents ---


class DocumentCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: Optional[str] = None
    document_type_id: Optional[int] = None
    current_department_id: int
    file_path: Optional[str] = Field(None, max_length=512)
    status: DocumentStatus = "pending"


class DocumentUpdate(RequestModel):
    """Partial update. Null department/status mean "unchanged"; null content/filePath clear the field."""

    current_department_id: Optional[int] = None
    status: Optional[DocumentStatus] = None
    notes: Optional[str] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    file_path: Optional[str] = Field(None, max_length=512)


class DocumentQuery(RequestModel):
    status: Optional[DocumentStatus] = None
    department: Optional[int] = None
    created_by: Optional[int] = None


class RecentQuery(RequestModel):
    limit: int = Field(5, ge=1, le=100)


# --- responses ---


class UserOut(ResponseModel):
    id: int
    username: str
    name: str
    email: str
    department: Optional[str] = None
    role: Optional[str] = None
    created_at: Optional[datetime] = None


class DepartmentOut(ResponseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class DocumentTypeOut(ResponseModel):
    id: int
    name: str
    description: Optional[str] = None
    workflow: dict[str, Any] = Field(default_factory=dict)
    strict_mode: bool = True
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None


class DocumentOut(ResponseModel):
    id: int
    document_id: str
    title: str
    content: Optional[str] = None
    file_path: Optional[str] = None
    document_type_id: Optional[int] = None
    current_department_id: Optional[int] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[int] = None


class HistoryOut(ResponseModel):
    id: int
    document_id: int
    from_department_id: Optional[int] = None
    to_department_id: Optional[int] = None
    from_status: Optional[str] = None
    status_change: Optional[str] = None
    notes: Optional[str] = None
    changed_by: Optional[int] = None
    changed_at: Optional[datetime] = None


def dump(model: type[ResponseModel], obj: Any) -> dict[str, Any]:
    return model.model_validate(obj).model_dump(mode="json", by_alias=True)


def load_json(model: type[M], *, message: str = "Invalid request data") -> M:
    """Validate the JSON request body; raises ValidationFailed with pydantic's error list."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed(message, errors=[{"loc": [], "msg": "Expected a JSON object", "type": "json_invalid"}])
    return load_mapping(model, data, message=message)


def load_mapping(model: type[M], data: Any, *, message: str = "Invalid request data") -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(
            message,
            errors=e.errors(include_url=False, include_context=False, include_input=False),
        ) from e
