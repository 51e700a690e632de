"""
Form validation run before any create or update call

Each validate_* function returns a draft ready for the store, or raises
FormValidationError listing every offending field. Referenced ids must exist
in the store's current collections.
"""
from typing import TYPE_CHECKING, Dict, List, Optional, TypeVar

from claimdesk.core.exceptions import FormValidationError
from claimdesk.models.entities import (ClaimDraft, ContractorDraft,
                                       CountryDraft, Draft, Entity, FileUpload,
                                       ProjectDraft)

if TYPE_CHECKING:
    from claimdesk.services.store import EntityStore

E = TypeVar("E", bound=Entity)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _raise_if_any(errors: Dict[str, str]):
    if errors:
        raise FormValidationError(errors)


def validate_country_form(
    name: Optional[str],
    flag_url: Optional[str] = None,
    context_files: Optional[List[FileUpload]] = None,
) -> CountryDraft:
    if _blank(name):
        raise FormValidationError({"name": "Country name is required"})
    return CountryDraft(
        name=name.strip(),
        flag_url=flag_url or None,
        context_files=context_files or [],
    )


def validate_project_form(
    title: Optional[str],
    country_id: Optional[str],
    store: "EntityStore",
    context_files: Optional[List[FileUpload]] = None,
) -> ProjectDraft:
    errors: Dict[str, str] = {}
    if _blank(title):
        errors["title"] = "Project title is required"
    if not country_id:
        errors["country_id"] = "A country must be selected"
    elif store.get_country_by_id(country_id) is None:
        errors["country_id"] = "Selected country does not exist"
    _raise_if_any(errors)
    return ProjectDraft(
        title=title.strip(),
        country_id=country_id,
        context_files=context_files or [],
    )


def validate_contractor_form(
    name: Optional[str],
    project_ids: Optional[List[str]],
    store: "EntityStore",
    context_files: Optional[List[FileUpload]] = None,
) -> ContractorDraft:
    errors: Dict[str, str] = {}
    if _blank(name):
        errors["name"] = "Contractor name is required"
    # Keep selection order, drop repeats
    project_ids = list(dict.fromkeys(project_ids or []))
    unknown = [pid for pid in project_ids if store.get_project_by_id(pid) is None]
    if not project_ids:
        errors["project_ids"] = "At least one project must be selected"
    elif unknown:
        errors["project_ids"] = f"Unknown project(s): {', '.join(unknown)}"
    _raise_if_any(errors)
    return ContractorDraft(
        name=name.strip(),
        project_ids=project_ids,
        context_files=context_files or [],
    )


def validate_claim_form(
    title: Optional[str],
    contractor_id: Optional[str],
    project_id: Optional[str],
    claim_file: Optional[FileUpload],
    store: "EntityStore",
    editing: bool = False,
    context_files: Optional[List[FileUpload]] = None,
    included_project_context: bool = False,
    included_contractor_context: bool = False,
) -> ClaimDraft:
    """
    Validate the claim form

    Args:
        title: Claim title
        contractor_id: Selected contractor
        project_id: Selected project
        claim_file: The claim document; only required when creating
        store: Store holding the selectable contractors and projects
        editing: True for the edit form, where the stored file is kept
        context_files: Optional extra attachments
        included_project_context: Whether the project's files were attached as context
        included_contractor_context: Whether the contractor's files were attached as context

    Returns:
        ClaimDraft with the validated fields
    """
    errors: Dict[str, str] = {}
    if _blank(title):
        errors["title"] = "Claim title is required"
    if not contractor_id:
        errors["contractor_id"] = "A contractor must be selected"
    elif store.get_contractor_by_id(contractor_id) is None:
        errors["contractor_id"] = "Selected contractor does not exist"
    if not project_id:
        errors["project_id"] = "A project must be selected"
    elif store.get_project_by_id(project_id) is None:
        errors["project_id"] = "Selected project does not exist"
    if claim_file is None and not editing:
        errors["claim_file"] = "A claim file must be uploaded"
    _raise_if_any(errors)
    return ClaimDraft(
        title=title.strip(),
        contractor_id=contractor_id,
        project_id=project_id,
        claim_file=claim_file,
        context_files=context_files or [],
        included_project_context=included_project_context,
        included_contractor_context=included_contractor_context,
    )


def apply_edit(entity: E, draft: Draft) -> E:
    """
    Copy the fields of an edit-form draft onto an existing record

    Uploads (context files, a replacement claim file) are not copied; pass
    them to the store's update call instead.
    """
    if draft.kind is not entity.kind:
        raise ValueError(f"Cannot apply a {draft.kind.value} draft to a {entity.kind.value}")
    fields = draft.model_dump(exclude={"kind", "context_files", "claim_file"})
    return entity.model_copy(update=fields)
