import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from projecthub.config import get_settings
from projecthub.database import SessionFactory, get_db, get_session_factory
from projecthub.schemas import (
    DropdownOptionRead,
    DropdownOptionsResponse,
    EditorMetadataRead,
    EditorMetadataResponse,
    FieldDescriptorRead,
    FieldMetadataResponse,
)
from projecthub.services.field_catalog import FieldCatalog

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Field Metadata"])


def get_field_catalog(
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> FieldCatalog:
    return FieldCatalog(
        db,
        session_factory=session_factory,
        max_workers=get_settings().metadata_fetch_max_workers,
    )


def _failure(message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "message": message, "error": str(exc)})


@router.get("/field-metadata/{entity_name}", response_model=FieldMetadataResponse)
def list_field_metadata(entity_name: str, catalog: FieldCatalog = Depends(get_field_catalog)):
    try:
        fields = catalog.get_fields(entity_name)
    except SQLAlchemyError as exc:
        logger.exception("Failed to fetch field metadata for %s", entity_name)
        return _failure("Failed to fetch field metadata", exc)
    return FieldMetadataResponse(
        data=[FieldDescriptorRead.model_validate(descriptor, from_attributes=True) for descriptor in fields]
    )


@router.get("/field-metadata/{entity_name}/editor", response_model=EditorMetadataResponse)
def get_editor_metadata(entity_name: str, catalog: FieldCatalog = Depends(get_field_catalog)):
    try:
        metadata = catalog.load_editor_metadata(entity_name)
    except SQLAlchemyError as exc:
        logger.exception("Failed to load editor metadata for %s", entity_name)
        return _failure("Failed to fetch field metadata", exc)
    return EditorMetadataResponse(data=EditorMetadataRead.model_validate(metadata, from_attributes=True))


@router.get("/dropdown-options/{entity_name}/{field_key:path}", response_model=DropdownOptionsResponse)
def list_dropdown_options(
    entity_name: str,
    field_key: str,
    catalog: FieldCatalog = Depends(get_field_catalog),
):
    try:
        options = catalog.get_dropdown_options(entity_name, field_key)
    except SQLAlchemyError as exc:
        logger.exception("Failed to fetch dropdown options for %s.%s", entity_name, field_key)
        return _failure("Failed to fetch dropdown options", exc)
    return DropdownOptionsResponse(
        data=[DropdownOptionRead.model_validate(option, from_attributes=True) for option in options]
    )
