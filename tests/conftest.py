"""
Pytest configuration and fixtures
"""
import json
from datetime import datetime, timezone
from email.parser import BytesParser
from email.policy import default as default_policy
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs
from uuid import uuid4

import httpx
import pytest

from claimdesk.core.config import Settings
from claimdesk.models.entities import (Claim, Contractor, Country, EntityKind,
                                       Project, utcnow)
from claimdesk.services.notifications import Notifier
from claimdesk.services.store import create_store

API_PREFIX = "/api/v1/"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_body(request: httpx.Request) -> Tuple[Dict[str, List[str]], Dict[str, List[str]]]:
    """Split a request body into form fields and uploaded file names"""
    content_type = request.headers.get("content-type", "")
    body = request.content
    form: Dict[str, List[str]] = {}
    files: Dict[str, List[str]] = {}
    if content_type.startswith("multipart/form-data"):
        raw = b"Content-Type: " + content_type.encode() + b"\r\n\r\n" + body
        message = BytesParser(policy=default_policy).parsebytes(raw)
        for part in message.iter_parts():
            name = part.get_param("name", header="content-disposition")
            filename = part.get_filename()
            if filename:
                files.setdefault(name, []).append(filename)
            else:
                form.setdefault(name, []).append(part.get_content())
    elif content_type.startswith("application/x-www-form-urlencoded"):
        form = parse_qs(body.decode())
    return form, files


class FakeBackend:
    """
    In-process stand-in for the REST backend

    Records are kept in wire shape. Deleting a project or contractor applies
    the server-side cascade.
    """

    def __init__(self):
        self.records: Dict[str, Dict[str, Dict[str, Any]]] = {
            kind.collection: {} for kind in EntityKind
        }
        self.requests: List[Dict[str, Any]] = []
        # (method, collection) -> (status, body)
        self.failures: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.contractor_list_includes_ids = False
        # Ids listed by the collection but gone by the time their detail is fetched
        self.vanished: set = set()

    # Seeding

    def add(self, collection: str, **fields) -> Dict[str, Any]:
        record = {"id": fields.pop("id", str(uuid4())), "createdAt": _now(), "contextFiles": []}
        record.update(fields)
        self.records[collection][record["id"]] = record
        return record

    def fail(self, method: str, collection: str, status: int = 500, body: Any = None):
        self.failures[(method, collection)] = (status, body if body is not None else {"detail": "boom"})

    # Transport

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert path.startswith(API_PREFIX), path
        parts = path[len(API_PREFIX):].strip("/").split("/")
        collection = parts[0]
        entity_id = parts[1] if len(parts) > 1 else None
        form, files = parse_body(request)
        self.requests.append({
            "method": request.method,
            "path": path,
            "params": dict(request.url.params.multi_items()),
            "param_lists": {k: request.url.params.get_list(k) for k in request.url.params.keys()},
            "form": form,
            "files": files,
        })

        failure = self.failures.get((request.method, collection))
        if failure:
            status, body = failure
            return httpx.Response(status, json=body)

        if request.method == "GET" and entity_id is None:
            return self._list(collection, request.url.params)
        if request.method == "GET":
            return self._get(collection, entity_id)
        if request.method == "POST":
            return self._create(collection, request.url.params, form, files)
        if request.method == "PATCH":
            return self._update(collection, entity_id, request.url.params, form, files)
        if request.method == "DELETE":
            return self._delete(collection, entity_id)
        return httpx.Response(405)

    def _list(self, collection, params) -> httpx.Response:
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", 100))
        items = list(self.records[collection].values())[offset:offset + limit]
        return httpx.Response(200, json=[self._read(collection, item) for item in items])

    def _get(self, collection, entity_id) -> httpx.Response:
        record = self.records[collection].get(entity_id)
        if record is None or entity_id in self.vanished:
            return httpx.Response(404, json={"detail": f"{collection} {entity_id} not found"})
        return httpx.Response(200, json=self._detail(collection, record))

    def _create(self, collection, params, form, files) -> httpx.Response:
        name = params.get("name")
        if not name:
            return httpx.Response(422, json={"detail": [
                {"loc": ["query", "name"], "msg": "Field required", "type": "missing"},
            ]})
        fields: Dict[str, Any] = {"name": name}
        if collection == "countries":
            fields["flagUrl"] = params.get("flagUrl")
        elif collection == "projects":
            fields["countryId"] = params.get("country_id")
        elif collection == "contractors":
            fields["projectsIds"] = form.get("projectsIds", [])
        elif collection == "claims":
            fields["contractorId"] = params.get("contractorId")
            fields["projectId"] = params.get("projectId")
            fields["claimFile"] = self._file(files.get("claimFile", [None])[0])
        record = self.add(collection, **fields)
        record["contextFiles"] = [self._file(f) for f in files.get("contextFiles", [])]
        return httpx.Response(200, json=self._detail(collection, record))

    def _update(self, collection, entity_id, params, form, files) -> httpx.Response:
        record = self.records[collection].get(entity_id)
        if record is None:
            return httpx.Response(404, json={"detail": "Not found"})
        for key in ("name", "flagUrl", "countryId", "contractorId", "projectId"):
            if key in params:
                record[key] = params[key]
        if "projectsIds" in form:
            record["projectsIds"] = form["projectsIds"]
        if "claimFile" in files:
            record["claimFile"] = self._file(files["claimFile"][0])
        record["contextFiles"] += [self._file(f) for f in files.get("contextFiles", [])]
        record["updatedAt"] = _now()
        return httpx.Response(200, json=self._detail(collection, record))

    def _delete(self, collection, entity_id) -> httpx.Response:
        if self.records[collection].pop(entity_id, None) is None:
            return httpx.Response(404, json={"detail": "Not found"})
        if collection == "projects":
            for contractor in list(self.records["contractors"].values()):
                ids = contractor.get("projectsIds", [])
                if entity_id in ids:
                    ids = [pid for pid in ids if pid != entity_id]
                    if ids:
                        contractor["projectsIds"] = ids
                    else:
                        del self.records["contractors"][contractor["id"]]
            self._drop_claims("projectId", entity_id)
        elif collection == "contractors":
            self._drop_claims("contractorId", entity_id)
        return httpx.Response(204)

    def _drop_claims(self, key, value):
        claims = self.records["claims"]
        for claim_id in [c["id"] for c in claims.values() if c.get(key) == value]:
            del claims[claim_id]

    # Payload shapes

    @staticmethod
    def _file(filename: Optional[str]) -> Optional[Dict[str, Any]]:
        if filename is None:
            return None
        return {"id": str(uuid4()), "path": f"uploads/{filename}", "created_at": _now()}

    def _read(self, collection, record) -> Dict[str, Any]:
        payload = {k: v for k, v in record.items() if k not in ("contextFiles", "claimFile")}
        if collection == "contractors" and not self.contractor_list_includes_ids:
            payload.pop("projectsIds", None)
        return payload

    def _detail(self, collection, record) -> Dict[str, Any]:
        payload = dict(record)
        if collection == "countries":
            payload["projects"] = [
                self._read("projects", p) for p in self.records["projects"].values()
                if p.get("countryId") == record["id"]
            ]
        elif collection == "projects":
            country = self.records["countries"].get(record.get("countryId"))
            payload["country"] = self._read("countries", country) if country else None
            payload["contractors"] = [
                self._read("contractors", c) for c in self.records["contractors"].values()
                if record["id"] in c.get("projectsIds", [])
            ]
            payload["claims"] = [
                self._read("claims", c) for c in self.records["claims"].values()
                if c.get("projectId") == record["id"]
            ]
        elif collection == "contractors":
            payload["projects"] = [
                self._read("projects", self.records["projects"][pid])
                for pid in record.get("projectsIds", []) if pid in self.records["projects"]
            ]
            payload["claims"] = [
                self._read("claims", c) for c in self.records["claims"].values()
                if c.get("contractorId") == record["id"]
            ]
        return payload


@pytest.fixture
def fake_backend():
    """Fake REST backend"""
    return FakeBackend()


@pytest.fixture
def remote_settings():
    """Settings pointing at the fake backend"""
    return Settings(
        api_base_url="http://testserver",
        storage_backend="remote",
        page_limit=2,
        log_format="text",
    )


@pytest.fixture
def local_settings(tmp_path):
    """Settings using a local cache file under tmp_path"""
    return Settings(
        storage_backend="local",
        local_cache_path=str(tmp_path / "cache.json"),
        log_format="text",
    )


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def remote_store(remote_settings, fake_backend, notifier):
    """Store backed by the fake REST backend"""
    return create_store(remote_settings, transport=fake_backend.transport, notifier=notifier)


@pytest.fixture
def local_store(local_settings, notifier):
    """Store backed by an empty local cache"""
    return create_store(local_settings, notifier=notifier)


def write_cache(path, countries=(), projects=(), contractors=(), claims=()):
    """Write a local cache file holding the given records"""
    data = {
        "countries": [c.model_dump(mode="json") for c in countries],
        "projects": [p.model_dump(mode="json") for p in projects],
        "contractors": [c.model_dump(mode="json") for c in contractors],
        "claims": [c.model_dump(mode="json") for c in claims],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def make_country(id, name="Germany") -> Country:
    return Country(id=id, name=name, created_at=utcnow())


def make_project(id, title=None, country_id=None) -> Project:
    return Project(id=id, title=title or f"Project {id}", country_id=country_id, created_at=utcnow())


def make_contractor(id, name=None, project_ids=()) -> Contractor:
    return Contractor(id=id, name=name or f"Contractor {id}", project_ids=list(project_ids), created_at=utcnow())


def make_claim(id, project_id, contractor_id, title=None) -> Claim:
    return Claim(
        id=id,
        title=title or f"Claim {id}",
        project_id=project_id,
        contractor_id=contractor_id,
        created_at=utcnow(),
    )
