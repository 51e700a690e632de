"""
Storage backends behind the entity store

RemoteRepository talks to the REST API; the server owns cascade deletes.
LocalRepository keeps every collection in one JSON file; the store drives
cascade deletes through it step by step.
"""
import asyncio
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from claimdesk.core.config import Settings, get_settings
from claimdesk.core.exceptions import ApiError, CacheError, EntityNotFoundError
from claimdesk.core.logging_config import LoggingConfig
from claimdesk.models.entities import (ENTITY_TYPES, Claim, ClaimDraft,
                                       ContextFile, Draft, Entity, EntityKind,
                                       FileUpload, new_id, utcnow)
from claimdesk.models.mappers import (claim_create_request, claim_from_wire,
                                      claim_update_request, contractor_create_request,
                                      contractor_from_wire, contractor_project_ids,
                                      contractor_update_request, country_create_request,
                                      country_from_wire, country_update_request,
                                      project_create_request, project_from_wire,
                                      project_update_request)
from claimdesk.services.api_client import ApiClient

logger = LoggingConfig.get_logger(__name__)


class Repository(ABC):
    """CRUD by entity kind"""

    # True when the backend removes dependent records itself
    owns_cascade: bool = False

    @abstractmethod
    async def list(self, kind: EntityKind) -> List[Entity]:
        ...

    @abstractmethod
    async def get(self, kind: EntityKind, entity_id: str) -> Optional[Entity]:
        ...

    @abstractmethod
    async def create(self, draft: Draft) -> Entity:
        ...

    @abstractmethod
    async def update(
        self,
        entity: Entity,
        uploads: Optional[List[FileUpload]] = None,
        claim_file: Optional[FileUpload] = None,
    ) -> Entity:
        ...

    @abstractmethod
    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        ...

    async def close(self):
        pass


class RemoteRepository(Repository):
    """Repository backed by the REST API"""

    owns_cascade = True

    _from_wire: Dict[EntityKind, Callable[[Any], Entity]] = {
        EntityKind.COUNTRY: country_from_wire,
        EntityKind.PROJECT: project_from_wire,
        EntityKind.CONTRACTOR: contractor_from_wire,
        EntityKind.CLAIM: claim_from_wire,
    }
    _create_request = {
        EntityKind.COUNTRY: country_create_request,
        EntityKind.PROJECT: project_create_request,
        EntityKind.CONTRACTOR: contractor_create_request,
        EntityKind.CLAIM: claim_create_request,
    }
    _update_request = {
        EntityKind.COUNTRY: country_update_request,
        EntityKind.PROJECT: project_update_request,
        EntityKind.CONTRACTOR: contractor_update_request,
    }

    def __init__(self, api: ApiClient, settings: Optional[Settings] = None):
        self.api = api
        self.settings = settings or api.settings or get_settings()

    async def list(self, kind: EntityKind) -> List[Entity]:
        resource = self.api.resource(kind)
        limit = self.settings.page_limit
        payloads: List[Any] = []
        offset = 0
        while True:
            page = await resource.get_all(offset=offset, limit=limit)
            payloads.extend(page)
            if len(page) < limit:
                break
            offset += limit

        if kind is EntityKind.CONTRACTOR:
            return await self._hydrate_contractors(payloads)
        return [self._from_wire[kind](item) for item in payloads]

    async def _hydrate_contractors(self, payloads: List[Any]) -> List[Entity]:
        """
        Fill project ids of contractors whose list payload has no relation data

        Detail fetches run concurrently; the HTTP connection pool bounds them.
        A contractor deleted between the list call and its detail fetch is
        skipped.
        """
        async def hydrate(item):
            if contractor_project_ids(item) is not None:
                return contractor_from_wire(item)
            try:
                detail = await self.api.contractors.get_by_id(item.id)
            except ApiError as e:
                if e.status == 404:
                    logger.warning(f"Contractor {item.id} disappeared while loading, skipping")
                    return None
                raise
            return contractor_from_wire(detail)

        results = await asyncio.gather(*(hydrate(item) for item in payloads))
        return [contractor for contractor in results if contractor is not None]

    async def get(self, kind: EntityKind, entity_id: str) -> Optional[Entity]:
        try:
            payload = await self.api.resource(kind).get_by_id(entity_id)
        except ApiError as e:
            if e.status == 404:
                return None
            raise
        return self._from_wire[kind](payload)

    async def create(self, draft: Draft) -> Entity:
        request = self._create_request[draft.kind](draft)
        payload = await self.api.resource(draft.kind).create(request)
        entity = self._from_wire[draft.kind](payload)
        if isinstance(draft, ClaimDraft):
            entity = entity.model_copy(update={
                "included_project_context": draft.included_project_context,
                "included_contractor_context": draft.included_contractor_context,
            })
        return entity

    async def update(
        self,
        entity: Entity,
        uploads: Optional[List[FileUpload]] = None,
        claim_file: Optional[FileUpload] = None,
    ) -> Entity:
        if isinstance(entity, Claim):
            request = claim_update_request(entity, uploads, claim_file)
            payload = await self.api.claims.update(entity.id, request)
            return claim_from_wire(payload, previous=entity)
        request = self._update_request[entity.kind](entity, uploads)
        payload = await self.api.resource(entity.kind).update(entity.id, request)
        return self._from_wire[entity.kind](payload)

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        await self.api.resource(kind).delete(entity_id)

    async def close(self):
        await self.api.close()


class LocalRepository(Repository):
    """
    Repository backed by a JSON file holding every collection

    Mirrors browser local storage: one key per collection, each key parsed
    independently so a corrupt collection does not hide the others.
    """

    owns_cascade = False

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Optional[Dict[str, List[Dict[str, Any]]]] = None

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        if self._data is not None:
            return self._data
        self._data = {kind.collection: [] for kind in EntityKind}
        if not self.path.exists():
            return self._data
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read local cache {self.path}: {e}")
            return self._data
        if not isinstance(raw, dict):
            logger.error(f"Local cache {self.path} is not a JSON object")
            return self._data
        for kind in EntityKind:
            items = raw.get(kind.collection, [])
            if isinstance(items, list):
                self._data[kind.collection] = items
            else:
                logger.error(f"Failed to parse {kind.collection} from local cache")
        return self._data

    def _save(self):
        data = self._load()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            # Drop the unsaved change so the next read reloads the file
            self._data = None
            raise CacheError(f"Failed to write local cache {self.path}: {e}") from e

    def _items(self, kind: EntityKind) -> List[Dict[str, Any]]:
        return self._load()[kind.collection]

    def _index_of(self, kind: EntityKind, entity_id: str) -> int:
        for i, item in enumerate(self._items(kind)):
            if item.get("id") == entity_id:
                return i
        return -1

    async def list(self, kind: EntityKind) -> List[Entity]:
        model = ENTITY_TYPES[kind]
        try:
            return [model.model_validate(item) for item in self._items(kind)]
        except ValidationError as e:
            logger.error(f"Failed to parse {kind.collection} from local cache: {e}")
            return []

    async def get(self, kind: EntityKind, entity_id: str) -> Optional[Entity]:
        index = self._index_of(kind, entity_id)
        if index < 0:
            return None
        return ENTITY_TYPES[kind].model_validate(self._items(kind)[index])

    async def create(self, draft: Draft) -> Entity:
        fields = draft.model_dump(exclude={"kind", "context_files", "claim_file"})
        if isinstance(draft, ClaimDraft):
            fields["claim_file"] = _stored(draft.claim_file) if draft.claim_file else None
        entity = ENTITY_TYPES[draft.kind](
            id=new_id(),
            created_at=utcnow(),
            context_files=[_stored(upload) for upload in draft.context_files],
            **fields,
        )
        self._items(draft.kind).append(entity.model_dump(mode="json"))
        self._save()
        return entity

    async def update(
        self,
        entity: Entity,
        uploads: Optional[List[FileUpload]] = None,
        claim_file: Optional[FileUpload] = None,
    ) -> Entity:
        index = self._index_of(entity.kind, entity.id)
        if index < 0:
            raise EntityNotFoundError(entity.kind.label, entity.id)
        changes: Dict[str, Any] = {}
        if uploads:
            changes["context_files"] = entity.context_files + [_stored(u) for u in uploads]
        if claim_file is not None:
            changes["claim_file"] = _stored(claim_file)
        updated = entity.model_copy(update=changes) if changes else entity
        self._items(entity.kind)[index] = updated.model_dump(mode="json")
        self._save()
        return updated

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        index = self._index_of(kind, entity_id)
        if index < 0:
            logger.debug(f"{kind.label} {entity_id} already absent from local cache")
            return
        del self._items(kind)[index]
        self._save()


def _stored(upload: FileUpload) -> ContextFile:
    """Local cache keeps file references only, not content"""
    return ContextFile(path=upload.filename)
