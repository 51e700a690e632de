"""
Request and response shapes of the REST backend
"""
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from claimdesk.models.entities import FileUpload


class WireModel(BaseModel):
    """Backend payloads use camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ContextFileRead(WireModel):
    id: str
    path: str
    # The backend sends this one key in snake_case
    created_at: datetime = Field(validation_alias=AliasChoices("created_at", "createdAt"))


class CountryRead(WireModel):
    id: str
    name: str
    flag_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProjectRead(WireModel):
    id: str
    name: str
    country_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ContractorRead(WireModel):
    id: str
    name: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    # Absent from the plain list payload of most backends
    projects_ids: Optional[List[str]] = None


class ClaimRead(WireModel):
    id: str
    name: str
    contractor_id: str
    project_id: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class CountryWithProjectsContext(CountryRead):
    projects: List[ProjectRead] = Field(default_factory=list)
    context_files: List[ContextFileRead] = Field(default_factory=list)


class ProjectWithCountryContractorsClaimsContext(ProjectRead):
    country: Optional[CountryRead] = None
    contractors: List[ContractorRead] = Field(default_factory=list)
    claims: List[ClaimRead] = Field(default_factory=list)
    context_files: List[ContextFileRead] = Field(default_factory=list)


class ContractorWithProjectsClaimsContext(ContractorRead):
    projects: List[ProjectRead] = Field(default_factory=list)
    claims: List[ClaimRead] = Field(default_factory=list)
    context_files: List[ContextFileRead] = Field(default_factory=list)


class ClaimWithProjectContractorContext(ClaimRead):
    project: Optional[ProjectRead] = None
    contractor: Optional[ContractorRead] = None
    claim_file: Optional[ContextFileRead] = None
    context_files: List[ContextFileRead] = Field(default_factory=list)


# Requests

class CreateCountryRequest(BaseModel):
    name: str
    flag_url: Optional[str] = None
    context_files: List[FileUpload] = Field(default_factory=list)


class UpdateCountryRequest(BaseModel):
    name: Optional[str] = None
    flag_url: Optional[str] = None
    context_files: Optional[List[FileUpload]] = None


class CreateProjectRequest(BaseModel):
    name: str
    country_id: Optional[str] = None
    context_files: List[FileUpload] = Field(default_factory=list)


class UpdateProjectRequest(BaseModel):
    name: Optional[str] = None
    country_id: Optional[str] = None
    context_files: Optional[List[FileUpload]] = None


class CreateContractorRequest(BaseModel):
    name: str
    projects_ids: List[str] = Field(default_factory=list)
    context_files: List[FileUpload] = Field(default_factory=list)


class UpdateContractorRequest(BaseModel):
    name: Optional[str] = None
    projects_ids: Optional[List[str]] = None
    context_files: Optional[List[FileUpload]] = None


class CreateClaimRequest(BaseModel):
    name: str
    contractor_id: str
    project_id: str
    claim_file: FileUpload
    context_files: List[FileUpload] = Field(default_factory=list)


class UpdateClaimRequest(BaseModel):
    name: Optional[str] = None
    contractor_id: Optional[str] = None
    project_id: Optional[str] = None
    claim_file: Optional[FileUpload] = None
    context_files: Optional[List[FileUpload]] = None
