"""
Tests for payload parsing and mapping
"""
import pytest

from claimdesk.core.exceptions import FormValidationError
from claimdesk.models.entities import ClaimDraft
from claimdesk.models.mappers import (claim_create_request, claim_from_wire,
                                      contractor_from_wire,
                                      contractor_project_ids,
                                      project_from_wire)
from claimdesk.models.wire import (ClaimWithProjectContractorContext,
                                   ContractorRead,
                                   ContractorWithProjectsClaimsContext,
                                   ProjectWithCountryContractorsClaimsContext)
from conftest import make_claim

CREATED = "2024-05-01T10:00:00+00:00"


def test_project_payload_maps_name_to_title():
    payload = ProjectWithCountryContractorsClaimsContext.model_validate({
        "id": "A",
        "name": "Highway A",
        "countryId": "de",
        "createdAt": CREATED,
        "unknownKey": 1,
        "contextFiles": [{"id": "f1", "path": "uploads/site.png", "created_at": CREATED}],
    })
    project = project_from_wire(payload)

    assert project.title == "Highway A"
    assert project.country_id == "de"
    assert project.context_files[0].path == "uploads/site.png"


def test_contractor_project_ids_sources():
    bare = ContractorRead.model_validate({"id": "c1", "name": "BuildCo", "createdAt": CREATED})
    with_ids = ContractorRead.model_validate({
        "id": "c1", "name": "BuildCo", "createdAt": CREATED, "projectsIds": ["A"],
    })
    detail = ContractorWithProjectsClaimsContext.model_validate({
        "id": "c1", "name": "BuildCo", "createdAt": CREATED,
        "projects": [{"id": "B", "name": "Highway B", "createdAt": CREATED}],
    })
    empty_detail = ContractorWithProjectsClaimsContext.model_validate({
        "id": "c1", "name": "BuildCo", "createdAt": CREATED,
    })

    assert contractor_project_ids(bare) is None
    assert contractor_project_ids(with_ids) == ["A"]
    assert contractor_project_ids(detail) == ["B"]
    assert contractor_project_ids(empty_detail) == []
    assert contractor_from_wire(bare).project_ids == []


def test_claim_keeps_previous_local_fields():
    previous = make_claim("k1", project_id="A", contractor_id="c1").model_copy(update={
        "included_project_context": True,
    })
    payload = ClaimWithProjectContractorContext.model_validate({
        "id": "k1", "name": "Delay-1 (rev)", "projectId": "A", "contractorId": "c1", "createdAt": CREATED,
    })

    claim = claim_from_wire(payload, previous=previous)

    assert claim.title == "Delay-1 (rev)"
    assert claim.included_project_context is True
    assert claim.claim_file is None


def test_claim_create_requires_file():
    draft = ClaimDraft(title="Delay-1", contractor_id="c1", project_id="A")
    with pytest.raises(FormValidationError) as exc_info:
        claim_create_request(draft)
    assert exc_info.value.field_errors == {"claim_file": "A claim file must be uploaded"}
