from projecthub.schemas.entities import (
    AuditLogRead,
    DropdownOptionRead,
    DropdownOptionsResponse,
    EditorMetadataRead,
    EditorMetadataResponse,
    FieldDescriptorRead,
    FieldMetadataResponse,
    FinanceDataResponse,
    ModuleDataResponse,
    MutationResponse,
    ProjectCreate,
    ProjectRead,
    ProjectRecordResponse,
    ProjectUpdate,
    SkippedRecordRead,
    SubmoduleRowsResponse,
)

__all__ = [
    "AuditLogRead",
    "DropdownOptionRead",
    "DropdownOptionsResponse",
    "EditorMetadataRead",
    "EditorMetadataResponse",
    "FieldDescriptorRead",
    "FieldMetadataResponse",
    "FinanceDataResponse",
    "ModuleDataResponse",
    "MutationResponse",
    "ProjectCreate",
    "ProjectRead",
    "ProjectRecordResponse",
    "ProjectUpdate",
    "SkippedRecordRead",
    "SubmoduleRowsResponse",
]
