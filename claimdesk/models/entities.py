"""
Local entity records, drafts and uploads
"""
import mimetypes
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    """The four resource kinds"""
    COUNTRY = "country"
    PROJECT = "project"
    CONTRACTOR = "contractor"
    CLAIM = "claim"

    @property
    def collection(self) -> str:
        """Plural name used for API paths and cache keys"""
        if self is EntityKind.COUNTRY:
            return "countries"
        return f"{self.value}s"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileUpload(BaseModel):
    """A file selected by the user, not yet stored anywhere"""
    filename: str
    content: bytes = b""
    content_type: str = "application/octet-stream"

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "FileUpload":
        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(filename=path.name, content=path.read_bytes(), content_type=content_type)

    def as_part(self) -> Tuple[str, bytes, str]:
        """Tuple accepted by httpx for a multipart file"""
        return (self.filename, self.content, self.content_type)


class ContextFile(BaseModel):
    """A stored file attached to an entity"""
    id: str = Field(default_factory=new_id)
    path: str
    created_at: datetime = Field(default_factory=utcnow)


class Entity(BaseModel):
    """Fields every record carries"""
    model_config = ConfigDict(validate_assignment=True)

    kind: EntityKind
    id: str
    created_at: datetime
    context_files: List[ContextFile] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return getattr(self, "title", None) or getattr(self, "name", None) or self.id


class Country(Entity):
    kind: EntityKind = EntityKind.COUNTRY
    name: str
    flag_url: Optional[str] = None


class Project(Entity):
    kind: EntityKind = EntityKind.PROJECT
    title: str
    country_id: Optional[str] = None


class Contractor(Entity):
    kind: EntityKind = EntityKind.CONTRACTOR
    name: str
    project_ids: List[str] = Field(default_factory=list)


class Claim(Entity):
    kind: EntityKind = EntityKind.CLAIM
    title: str
    contractor_id: str
    project_id: str
    claim_file: Optional[ContextFile] = None
    included_project_context: bool = False
    included_contractor_context: bool = False


ENTITY_TYPES = {
    EntityKind.COUNTRY: Country,
    EntityKind.PROJECT: Project,
    EntityKind.CONTRACTOR: Contractor,
    EntityKind.CLAIM: Claim,
}


# Drafts hold the user-supplied fields of a create call; id and created_at
# are assigned by whoever stores the record.

class Draft(BaseModel):
    kind: EntityKind
    context_files: List[FileUpload] = Field(default_factory=list)


class CountryDraft(Draft):
    kind: EntityKind = EntityKind.COUNTRY
    name: str = Field(..., min_length=1)
    flag_url: Optional[str] = None


class ProjectDraft(Draft):
    kind: EntityKind = EntityKind.PROJECT
    title: str = Field(..., min_length=1)
    country_id: Optional[str] = None


class ContractorDraft(Draft):
    kind: EntityKind = EntityKind.CONTRACTOR
    name: str = Field(..., min_length=1)
    project_ids: List[str] = Field(default_factory=list)


class ClaimDraft(Draft):
    kind: EntityKind = EntityKind.CLAIM
    title: str = Field(..., min_length=1)
    contractor_id: str
    project_id: str
    # Required on create, optional when the draft describes an edit
    claim_file: Optional[FileUpload] = None
    included_project_context: bool = False
    included_contractor_context: bool = False
