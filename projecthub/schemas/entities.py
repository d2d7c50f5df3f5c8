from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from projecthub.services.value_coercion import DataType


class TimestampSchema(BaseModel):
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectBase(BaseModel):
    project_name: str = Field(..., max_length=200)
    description: Optional[str] = None
    status: str = Field("development", max_length=50)


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    project_name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    status: Optional[str] = Field(None, max_length=50)


class ProjectRead(ProjectBase, TimestampSchema):
    id: int


class FieldDescriptorRead(BaseModel):
    entity_name: str
    field_key: str
    display_label: str
    data_type: DataType

    model_config = ConfigDict(from_attributes=True)


class DropdownOptionRead(BaseModel):
    id: Optional[int] = None
    option_value: str

    model_config = ConfigDict(from_attributes=True)


class EditorMetadataRead(BaseModel):
    entity_name: str
    fields: list[FieldDescriptorRead]
    dropdown_options: dict[str, list[DropdownOptionRead]] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class FieldMetadataResponse(BaseModel):
    success: bool = True
    data: list[FieldDescriptorRead]


class DropdownOptionsResponse(BaseModel):
    success: bool = True
    data: list[DropdownOptionRead]


class EditorMetadataResponse(BaseModel):
    success: bool = True
    data: EditorMetadataRead


class SkippedRecordRead(BaseModel):
    source: str
    index: int
    reason: str
    provisional_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MutationResponse(BaseModel):
    success: bool = True
    message: str
    action_type: Optional[str] = None
    data: list[dict[str, Any]] = Field(default_factory=list)
    skipped: list[SkippedRecordRead] = Field(default_factory=list)
    reconciled: dict[str, int] = Field(default_factory=dict)
    deleted: list[int] = Field(default_factory=list)


class ProjectRecordResponse(BaseModel):
    success: bool = True
    message: str
    data: dict[str, Any]


class SubmoduleRowsResponse(BaseModel):
    success: bool = True
    data: list[dict[str, Any]]


class FinanceDataResponse(BaseModel):
    success: bool = True
    project_id: int
    data: dict[str, list[dict[str, Any]]]


class ModuleDataResponse(BaseModel):
    success: bool = True
    module_name: str
    data: dict[str, list[dict[str, Any]]]


class AuditLogRead(BaseModel):
    id: int
    project_id: Optional[int] = None
    project_name: str
    user_name: str
    module_name: str
    sub_module: Optional[str] = None
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    action_type: str
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)
