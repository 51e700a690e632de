"""
Tests for the entity store over the REST backend
"""
import httpx
import pytest

from claimdesk.core.exceptions import ErrorCategory
from claimdesk.models.entities import (ClaimDraft, ContractorDraft,
                                       CountryDraft, FileUpload, ProjectDraft)
from claimdesk.services.store import OperationStatus


def seed_highway(backend):
    backend.add("countries", id="de", name="Germany", flagUrl="https://flagcdn.com/w40/de.png")
    backend.add("projects", id="A", name="Highway A", countryId="de")
    backend.add("projects", id="B", name="Highway B", countryId="de")
    backend.add("contractors", id="buildco", name="BuildCo", projectsIds=["A"])
    backend.add("contractors", id="roadworks", name="RoadWorks", projectsIds=["A", "B"])
    backend.add("claims", id="delay-1", name="Delay-1", projectId="A", contractorId="buildco")


@pytest.mark.asyncio
async def test_refresh_loads_all_collections(remote_store, fake_backend):
    seed_highway(fake_backend)

    await remote_store.load()

    summary = remote_store.summary()
    assert (summary.countries, summary.projects, summary.contractors, summary.claims) == (1, 2, 2, 1)
    assert remote_store.get_project_by_id("A").title == "Highway A"
    # List payloads carry no project ids; they come from detail fetches
    roadworks = remote_store.get_contractor_by_id("roadworks")
    assert roadworks.project_ids == ["A", "B"]
    await remote_store.close()


@pytest.mark.asyncio
async def test_list_pages_through_results(remote_store, fake_backend):
    for i in range(5):
        fake_backend.add("countries", id=f"c{i}", name=f"Country {i}")

    await remote_store.load()

    assert [c.id for c in remote_store.countries] == [f"c{i}" for i in range(5)]
    offsets = [r["params"]["offset"] for r in fake_backend.requests
               if r["method"] == "GET" and r["path"] == "/api/v1/countries/"]
    assert offsets == ["0", "2", "4"]


@pytest.mark.asyncio
async def test_failing_collection_degrades_to_empty(remote_store, fake_backend):
    seed_highway(fake_backend)
    fake_backend.fail("GET", "projects", status=500)

    await remote_store.refresh()

    assert remote_store.projects == []
    assert len(remote_store.countries) == 1
    assert len(remote_store.contractors) == 2
    assert len(remote_store.claims) == 1
    assert remote_store.loaded
    assert not remote_store.loading


@pytest.mark.asyncio
async def test_delete_project_sends_single_delete(remote_store, fake_backend):
    seed_highway(fake_backend)
    await remote_store.load()
    fake_backend.requests.clear()

    result = await remote_store.delete_project("A")

    assert result.status == OperationStatus.SUCCESS
    deletes = [r["path"] for r in fake_backend.requests if r["method"] == "DELETE"]
    assert deletes == ["/api/v1/projects/A"]
    assert not any(r["method"] == "PATCH" for r in fake_backend.requests)

    # Collections reflect the server's own cascade
    assert [p.id for p in remote_store.projects] == ["B"]
    assert [(c.name, c.project_ids) for c in remote_store.contractors] == [("RoadWorks", ["B"])]
    assert remote_store.claims == []


@pytest.mark.asyncio
async def test_failed_resync_keeps_previous_collection(remote_store, fake_backend):
    seed_highway(fake_backend)
    await remote_store.load()
    fake_backend.fail("GET", "claims", status=503)

    result = await remote_store.delete_contractor("buildco")

    assert result.ok
    assert [c.id for c in remote_store.contractors] == ["roadworks"]
    # The claims re-read failed, so the stale copy is kept
    assert [c.id for c in remote_store.claims] == ["delay-1"]


@pytest.mark.asyncio
async def test_failed_delete_leaves_state_untouched(remote_store, fake_backend, notifier):
    seed_highway(fake_backend)
    await remote_store.load()
    fake_backend.fail("DELETE", "projects", status=500, body={"detail": "Database is locked"})

    result = await remote_store.delete_project("A")

    assert result.status == OperationStatus.FAILED
    assert result.category == ErrorCategory.HTTP
    assert result.error == "Database is locked"
    assert {p.id for p in remote_store.projects} == {"A", "B"}
    assert notifier.last.is_error
    assert notifier.last.title == "Failed to delete project"


@pytest.mark.asyncio
async def test_validation_errors_are_concatenated(remote_store, fake_backend, notifier):
    await remote_store.load()
    fake_backend.fail("POST", "countries", status=422, body={"detail": [
        {"loc": ["query", "name"], "msg": "Field required", "type": "missing"},
        {"loc": ["body", "contextFiles", 0], "msg": "File too large", "type": "value_error"},
    ]})

    result = await remote_store.add_country(CountryDraft(name="Germany"))

    assert result.status == OperationStatus.FAILED
    assert result.error == "name: Field required; contextFiles.0: File too large"
    assert notifier.last.description == result.error
    assert remote_store.countries == []


@pytest.mark.asyncio
async def test_create_sends_wire_fields(remote_store, fake_backend):
    seed_highway(fake_backend)
    await remote_store.load()

    project = (await remote_store.add_project(ProjectDraft(
        title="Bridge",
        country_id="de",
        context_files=[FileUpload(filename="site.png", content=b"png")],
    ))).value
    contractor = (await remote_store.add_contractor(ContractorDraft(
        name="SteelCo", project_ids=[project.id, "B"],
    ))).value

    project_post, contractor_post = [r for r in fake_backend.requests if r["method"] == "POST"]
    assert project_post["params"] == {"name": "Bridge", "country_id": "de"}
    assert project_post["files"] == {"contextFiles": ["site.png"]}
    assert contractor_post["form"]["projectsIds"] == [project.id, "B"]

    assert project.title == "Bridge"
    assert [f.path for f in project.context_files] == ["uploads/site.png"]
    assert contractor.project_ids == [project.id, "B"]
    assert remote_store.get_contractors_by_project_id(project.id) == [contractor]


@pytest.mark.asyncio
async def test_claim_keeps_context_flags(remote_store, fake_backend, notifier):
    seed_highway(fake_backend)
    await remote_store.load()

    result = await remote_store.add_claim(ClaimDraft(
        title="Delay-2",
        contractor_id="roadworks",
        project_id="B",
        claim_file=FileUpload(filename="delay.pdf", content=b"%PDF"),
        included_contractor_context=True,
    ))
    claim = result.value

    assert claim.claim_file.path == "uploads/delay.pdf"
    assert claim.included_contractor_context is True
    assert notifier.last.title == "Claim created"
    assert notifier.last.description == "Delay-2 has been created successfully."

    updated = (await remote_store.update_claim(claim.model_copy(update={"title": "Delay-2b"}))).value
    assert updated.title == "Delay-2b"
    assert updated.included_contractor_context is True
    assert updated.claim_file == claim.claim_file
    patch = [r for r in fake_backend.requests if r["method"] == "PATCH"][-1]
    assert patch["params"]["name"] == "Delay-2b"
    assert patch["params"]["contractorId"] == "roadworks"


@pytest.mark.asyncio
async def test_update_project_uses_camel_case_country(remote_store, fake_backend):
    seed_highway(fake_backend)
    await remote_store.load()
    project = remote_store.get_project_by_id("B")

    result = await remote_store.update_project(project.model_copy(update={"title": "Highway B2"}))

    assert result.ok
    patch = [r for r in fake_backend.requests if r["method"] == "PATCH"][-1]
    assert patch["path"] == "/api/v1/projects/B"
    assert patch["params"] == {"name": "Highway B2", "countryId": "de"}
    assert patch["form"] == {}
    assert remote_store.get_project_by_id("B").title == "Highway B2"
    assert len(remote_store.projects) == 2


@pytest.mark.asyncio
async def test_delete_absent_id_makes_no_call(remote_store, fake_backend):
    await remote_store.load()
    fake_backend.requests.clear()

    result = await remote_store.delete_claim("nope")

    assert result.status == OperationStatus.NOOP
    assert fake_backend.requests == []


@pytest.mark.asyncio
async def test_transport_failure_is_reported(remote_store, fake_backend, notifier):
    seed_highway(fake_backend)
    await remote_store.load()

    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    remote_store.repository.api.http._client = None
    remote_store.repository.api.http._transport = httpx.MockTransport(broken)

    result = await remote_store.delete_claim("delay-1")

    assert result.status == OperationStatus.FAILED
    assert result.category == ErrorCategory.TRANSPORT
    assert "connection refused" in result.error
    assert remote_store.get_claim_by_id("delay-1") is not None



@pytest.mark.asyncio
async def test_malformed_resync_payload_keeps_previous_collection(remote_store, fake_backend):
    seed_highway(fake_backend)
    await remote_store.load()
    fake_backend.fail("GET", "claims", status=200, body=[{"id": "x"}])

    result = await remote_store.delete_contractor("buildco")

    assert result.ok
    assert [c.id for c in remote_store.contractors] == ["roadworks"]
    assert [c.id for c in remote_store.claims] == ["delay-1"]


@pytest.mark.asyncio
async def test_contractor_gone_before_detail_fetch_is_skipped(remote_store, fake_backend):
    seed_highway(fake_backend)
    fake_backend.vanished.add("buildco")

    await remote_store.load()

    assert [(c.id, c.project_ids) for c in remote_store.contractors] == [("roadworks", ["A", "B"])]
    assert len(remote_store.projects) == 2
    assert len(remote_store.claims) == 1


@pytest.mark.asyncio
async def test_contractor_detail_error_degrades_collection(remote_store, fake_backend):
    seed_highway(fake_backend)

    def failing_detail(request):
        if request.method == "GET" and request.url.path == "/api/v1/contractors/roadworks":
            return httpx.Response(500, json={"detail": "boom"})
        return fake_backend.handler(request)

    remote_store.repository.api.http._transport = httpx.MockTransport(failing_detail)

    await remote_store.load()

    # Only a 404 is skipped; other errors fail the contractors collection
    assert remote_store.contractors == []
    assert len(remote_store.projects) == 2
