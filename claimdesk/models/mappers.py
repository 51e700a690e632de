"""
Translation between backend payloads and local records
"""
from typing import List, Optional

from claimdesk.core.exceptions import FormValidationError
from claimdesk.models.entities import (Claim, ClaimDraft, ContextFile, Contractor,
                                       ContractorDraft, Country, CountryDraft,
                                       FileUpload, Project, ProjectDraft)
from claimdesk.models.wire import (ClaimRead, ContextFileRead, ContractorRead,
                                   CountryRead, CreateClaimRequest,
                                   CreateContractorRequest, CreateCountryRequest,
                                   CreateProjectRequest, ProjectRead,
                                   UpdateClaimRequest, UpdateContractorRequest,
                                   UpdateCountryRequest, UpdateProjectRequest)


def context_file_from_wire(data: ContextFileRead) -> ContextFile:
    return ContextFile(id=data.id, path=data.path, created_at=data.created_at)


def _files(data) -> List[ContextFile]:
    return [context_file_from_wire(f) for f in getattr(data, "context_files", None) or []]


def country_from_wire(data: CountryRead) -> Country:
    return Country(
        id=data.id,
        name=data.name,
        flag_url=data.flag_url,
        created_at=data.created_at,
        context_files=_files(data),
    )


def project_from_wire(data: ProjectRead) -> Project:
    return Project(
        id=data.id,
        title=data.name,
        country_id=data.country_id,
        created_at=data.created_at,
        context_files=_files(data),
    )


def contractor_project_ids(data: ContractorRead) -> Optional[List[str]]:
    """
    Project ids carried by a contractor payload

    Returns None when the payload holds no relation data at all, so callers
    can tell "no projects" from "not included".
    """
    projects = getattr(data, "projects", None)
    if projects:
        return [p.id for p in projects]
    if data.projects_ids is not None:
        return list(data.projects_ids)
    if projects is not None:
        return []
    return None


def contractor_from_wire(data: ContractorRead) -> Contractor:
    return Contractor(
        id=data.id,
        name=data.name,
        created_at=data.created_at,
        project_ids=contractor_project_ids(data) or [],
        context_files=_files(data),
    )


def claim_from_wire(data: ClaimRead, previous: Optional[Claim] = None) -> Claim:
    """
    Build a local claim; the context-inclusion flags are client-side only
    and are carried over from the previous local record when given.
    """
    claim_file = getattr(data, "claim_file", None)
    return Claim(
        id=data.id,
        title=data.name,
        contractor_id=data.contractor_id,
        project_id=data.project_id,
        created_at=data.created_at,
        claim_file=context_file_from_wire(claim_file) if claim_file else (previous.claim_file if previous else None),
        context_files=_files(data),
        included_project_context=previous.included_project_context if previous else False,
        included_contractor_context=previous.included_contractor_context if previous else False,
    )


# Requests

def country_create_request(draft: CountryDraft) -> CreateCountryRequest:
    return CreateCountryRequest(
        name=draft.name,
        flag_url=draft.flag_url,
        context_files=draft.context_files,
    )


def country_update_request(country: Country, uploads: Optional[List[FileUpload]] = None) -> UpdateCountryRequest:
    return UpdateCountryRequest(
        name=country.name,
        flag_url=country.flag_url,
        context_files=uploads,
    )


def project_create_request(draft: ProjectDraft) -> CreateProjectRequest:
    return CreateProjectRequest(
        name=draft.title,
        country_id=draft.country_id,
        context_files=draft.context_files,
    )


def project_update_request(project: Project, uploads: Optional[List[FileUpload]] = None) -> UpdateProjectRequest:
    return UpdateProjectRequest(
        name=project.title,
        country_id=project.country_id,
        context_files=uploads,
    )


def contractor_create_request(draft: ContractorDraft) -> CreateContractorRequest:
    return CreateContractorRequest(
        name=draft.name,
        projects_ids=draft.project_ids,
        context_files=draft.context_files,
    )


def contractor_update_request(contractor: Contractor, uploads: Optional[List[FileUpload]] = None) -> UpdateContractorRequest:
    return UpdateContractorRequest(
        name=contractor.name,
        projects_ids=contractor.project_ids,
        context_files=uploads,
    )


def claim_create_request(draft: ClaimDraft) -> CreateClaimRequest:
    if draft.claim_file is None:
        raise FormValidationError({"claim_file": "A claim file must be uploaded"})
    return CreateClaimRequest(
        name=draft.title,
        contractor_id=draft.contractor_id,
        project_id=draft.project_id,
        claim_file=draft.claim_file,
        context_files=draft.context_files,
    )


def claim_update_request(
    claim: Claim,
    uploads: Optional[List[FileUpload]] = None,
    claim_file: Optional[FileUpload] = None,
) -> UpdateClaimRequest:
    return UpdateClaimRequest(
        name=claim.title,
        contractor_id=claim.contractor_id,
        project_id=claim.project_id,
        claim_file=claim_file,
        context_files=uploads,
    )
