"""
Entity store: in-memory collections of countries, projects, contractors and
claims, relation lookups, and mutations that keep the collections in step
with the repository
"""
import asyncio
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from claimdesk.core.config import Settings, get_settings
from claimdesk.core.exceptions import ClaimDeskError, ErrorCategory, describe_error
from claimdesk.core.logging_config import LoggingConfig
from claimdesk.models.entities import (Claim, ClaimDraft, Contractor,
                                       ContractorDraft, Country, CountryDraft,
                                       Draft, Entity, EntityKind, FileUpload,
                                       Project, ProjectDraft)
from claimdesk.services.api_client import ApiClient
from claimdesk.services.cascade import (CascadePlan, apply_plan,
                                        plan_contractor_deletion,
                                        plan_project_deletion)
from claimdesk.services.notifications import Notifier
from claimdesk.services.repository import (LocalRepository, RemoteRepository,
                                           Repository)

logger = LoggingConfig.get_logger(__name__)

E = TypeVar("E", bound=Entity)


class OperationStatus(str, Enum):
    """Outcome of a store mutation"""
    SUCCESS = "success"
    FAILED = "failed"
    NOOP = "noop"  # Nothing to do, e.g. deleting an unknown id


class OperationResult(BaseModel):
    """What a mutation did, so callers can branch without re-reading state"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: OperationStatus
    value: Any = None
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None
    plan: Optional[CascadePlan] = None

    @property
    def ok(self) -> bool:
        return self.status is not OperationStatus.FAILED

    @classmethod
    def success(cls, value: Any = None, plan: Optional[CascadePlan] = None) -> "OperationResult":
        return cls(status=OperationStatus.SUCCESS, value=value, plan=plan)

    @classmethod
    def failed(cls, error: str, category: ErrorCategory = ErrorCategory.UNKNOWN) -> "OperationResult":
        return cls(status=OperationStatus.FAILED, error=error, category=category)

    @classmethod
    def noop(cls) -> "OperationResult":
        return cls(status=OperationStatus.NOOP)


class StoreSummary(BaseModel):
    countries: int = 0
    projects: int = 0
    contractors: int = 0
    claims: int = 0


def find_by_id(items: Iterable[E], entity_id: Optional[str]) -> Optional[E]:
    """Linear lookup by id"""
    if not entity_id:
        return None
    return next((item for item in items if item.id == entity_id), None)


class EntityStore:
    """
    Aggregates the four collections and coordinates mutations

    Every mutation calls the repository first and only then updates the
    in-memory collection. Repository errors are logged, notified and
    reported in the returned OperationResult; they are not raised.
    """

    def __init__(self, repository: Repository, notifier: Optional[Notifier] = None):
        self.repository = repository
        self.notifier = notifier or Notifier()
        self._collections: Dict[EntityKind, List[Entity]] = {kind: [] for kind in EntityKind}
        self.loading = False
        self.loaded = False

    async def __aenter__(self):
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        await self.repository.close()

    # Collections

    @property
    def countries(self) -> List[Country]:
        return list(self._collections[EntityKind.COUNTRY])

    @property
    def projects(self) -> List[Project]:
        return list(self._collections[EntityKind.PROJECT])

    @property
    def contractors(self) -> List[Contractor]:
        return list(self._collections[EntityKind.CONTRACTOR])

    @property
    def claims(self) -> List[Claim]:
        return list(self._collections[EntityKind.CLAIM])

    def collection(self, kind: EntityKind) -> List[Entity]:
        return list(self._collections[kind])

    async def load(self):
        """Initial load; later calls are no-ops, use refresh() to reload"""
        if not self.loaded:
            await self.refresh()

    async def refresh(self):
        """
        Fetch all four collections concurrently

        Each fetch fails independently: a collection that cannot be fetched
        becomes empty while the others are still populated.
        """
        self.loading = True
        kinds = list(EntityKind)
        try:
            results = await asyncio.gather(*(self._fetch(kind) for kind in kinds))
        finally:
            self.loading = False
        for kind, items in zip(kinds, results):
            self._collections[kind] = items
        self.loaded = True
        logger.info(
            "Store refreshed",
            extra={kind.collection: len(items) for kind, items in zip(kinds, results)},
        )

    async def _fetch(self, kind: EntityKind) -> List[Entity]:
        try:
            return await self.repository.list(kind)
        except (ClaimDeskError, ValidationError) as e:
            logger.error(f"Failed to load {kind.collection}: {describe_error(e)}")
            return []

    async def _resync(self, kinds: List[EntityKind]):
        """Re-read collections from the repository, keeping the old copy on failure"""
        results = await asyncio.gather(
            *(self.repository.list(kind) for kind in kinds),
            return_exceptions=True,
        )
        for kind, result in zip(kinds, results):
            if isinstance(result, (ClaimDeskError, ValidationError)):
                logger.warning(
                    f"Could not re-sync {kind.collection}, keeping cached copy: {describe_error(result)}"
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                self._collections[kind] = result

    # Lookups

    def get_country_by_id(self, country_id: str) -> Optional[Country]:
        return find_by_id(self._collections[EntityKind.COUNTRY], country_id)

    def get_project_by_id(self, project_id: str) -> Optional[Project]:
        return find_by_id(self._collections[EntityKind.PROJECT], project_id)

    def get_contractor_by_id(self, contractor_id: str) -> Optional[Contractor]:
        return find_by_id(self._collections[EntityKind.CONTRACTOR], contractor_id)

    def get_claim_by_id(self, claim_id: str) -> Optional[Claim]:
        return find_by_id(self._collections[EntityKind.CLAIM], claim_id)

    def get_by_id(self, kind: EntityKind, entity_id: str) -> Optional[Entity]:
        return find_by_id(self._collections[kind], entity_id)

    def get_projects_by_country_id(self, country_id: str) -> List[Project]:
        return [p for p in self.projects if p.country_id == country_id]

    def get_contractors_by_project_id(self, project_id: str) -> List[Contractor]:
        return [c for c in self.contractors if project_id in c.project_ids]

    def get_projects_by_contractor_id(self, contractor_id: str) -> List[Project]:
        contractor = self.get_contractor_by_id(contractor_id)
        if contractor is None:
            return []
        return [p for p in self.projects if p.id in contractor.project_ids]

    def get_claims_by_project_id(self, project_id: str) -> List[Claim]:
        return [c for c in self.claims if c.project_id == project_id]

    def get_claims_by_contractor_id(self, contractor_id: str) -> List[Claim]:
        return [c for c in self.claims if c.contractor_id == contractor_id]

    def summary(self) -> StoreSummary:
        return StoreSummary(
            countries=len(self._collections[EntityKind.COUNTRY]),
            projects=len(self._collections[EntityKind.PROJECT]),
            contractors=len(self._collections[EntityKind.CONTRACTOR]),
            claims=len(self._collections[EntityKind.CLAIM]),
        )

    # Deletion previews

    def preview_project_deletion(self, project_id: str) -> Optional[CascadePlan]:
        if self.get_project_by_id(project_id) is None:
            return None
        return plan_project_deletion(project_id, self.contractors, self.claims)

    def preview_contractor_deletion(self, contractor_id: str) -> Optional[CascadePlan]:
        if self.get_contractor_by_id(contractor_id) is None:
            return None
        return plan_contractor_deletion(contractor_id, self.claims)

    # Countries

    async def add_country(self, draft: CountryDraft) -> OperationResult:
        return await self._add(draft)

    async def update_country(self, country: Country, uploads: Optional[List[FileUpload]] = None) -> OperationResult:
        return await self._update(country, uploads)

    async def delete_country(self, country_id: str) -> OperationResult:
        result = await self._delete_single(EntityKind.COUNTRY, country_id)
        if result.status is OperationStatus.SUCCESS:
            # No cascade to projects is modeled for countries
            dangling = self.get_projects_by_country_id(country_id)
            if dangling:
                logger.warning(
                    f"{len(dangling)} project(s) still reference deleted country {country_id}"
                )
        return result

    # Projects

    async def add_project(self, draft: ProjectDraft) -> OperationResult:
        return await self._add(draft)

    async def update_project(self, project: Project, uploads: Optional[List[FileUpload]] = None) -> OperationResult:
        return await self._update(project, uploads)

    async def delete_project(self, project_id: str) -> OperationResult:
        project = self.get_project_by_id(project_id)
        if project is None:
            return OperationResult.noop()

        plan = plan_project_deletion(project_id, self.contractors, self.claims)
        result = await self._delete_with_cascade(project, plan)
        if result.ok:
            self.notifier.success(
                "Project deleted",
                f"{project.title} and all associated content has been deleted.",
            )
        return result

    # Contractors

    async def add_contractor(self, draft: ContractorDraft) -> OperationResult:
        return await self._add(draft)

    async def update_contractor(self, contractor: Contractor, uploads: Optional[List[FileUpload]] = None) -> OperationResult:
        return await self._update(contractor, uploads)

    async def delete_contractor(self, contractor_id: str) -> OperationResult:
        contractor = self.get_contractor_by_id(contractor_id)
        if contractor is None:
            return OperationResult.noop()

        plan = plan_contractor_deletion(contractor_id, self.claims)
        result = await self._delete_with_cascade(contractor, plan)
        if result.ok:
            self.notifier.success(
                "Contractor deleted",
                f"{contractor.name} and all associated claims have been deleted.",
            )
        return result

    # Claims

    async def add_claim(self, draft: ClaimDraft) -> OperationResult:
        return await self._add(draft)

    async def update_claim(
        self,
        claim: Claim,
        uploads: Optional[List[FileUpload]] = None,
        claim_file: Optional[FileUpload] = None,
    ) -> OperationResult:
        return await self._update(claim, uploads, claim_file)

    async def delete_claim(self, claim_id: str) -> OperationResult:
        return await self._delete_single(EntityKind.CLAIM, claim_id)

    # Shared mutation paths

    async def _add(self, draft: Draft) -> OperationResult:
        label = draft.kind.label
        with LoggingConfig.context(operation="create", entity_kind=draft.kind.value):
            try:
                entity = await self.repository.create(draft)
            except ClaimDeskError as e:
                return self._fail(f"Failed to create {label.lower()}", e)

            self._collections[draft.kind].append(entity)
            self.notifier.success(f"{label} created", f"{entity.display_name} has been created successfully.")
            return OperationResult.success(entity)

    async def _update(
        self,
        entity: Entity,
        uploads: Optional[List[FileUpload]] = None,
        claim_file: Optional[FileUpload] = None,
    ) -> OperationResult:
        label = entity.kind.label
        with LoggingConfig.context(operation="update", entity_kind=entity.kind.value, entity_id=entity.id):
            try:
                updated = await self.repository.update(entity, uploads=uploads, claim_file=claim_file)
            except ClaimDeskError as e:
                return self._fail(f"Failed to update {label.lower()}", e)

            items = self._collections[entity.kind]
            for i, item in enumerate(items):
                if item.id == updated.id:
                    items[i] = updated
                    break
            else:
                items.append(updated)
            self.notifier.success(f"{label} updated", f"{updated.display_name} has been updated successfully.")
            return OperationResult.success(updated)

    async def _delete_single(self, kind: EntityKind, entity_id: str) -> OperationResult:
        entity = self.get_by_id(kind, entity_id)
        if entity is None:
            return OperationResult.noop()

        with LoggingConfig.context(operation="delete", entity_kind=kind.value, entity_id=entity_id):
            try:
                await self.repository.delete(kind, entity_id)
            except ClaimDeskError as e:
                return self._fail(f"Failed to delete {kind.value}", e)

            self._collections[kind] = [item for item in self._collections[kind] if item.id != entity_id]
            self.notifier.success(f"{kind.label} deleted", f"{entity.display_name} has been deleted successfully.")
            return OperationResult.success(entity)

    async def _delete_with_cascade(self, entity: Entity, plan: CascadePlan) -> OperationResult:
        """
        Delete a project or contractor together with its dependents

        A repository that owns cascades gets a single delete for the parent,
        after which the dependent collections are re-read from it. Otherwise
        the plan is written step by step and applied to the collections.
        """
        kind = entity.kind
        dependents = [EntityKind.CONTRACTOR, EntityKind.CLAIM]

        with LoggingConfig.context(operation="delete", entity_kind=kind.value, entity_id=entity.id):
            if self.repository.owns_cascade:
                try:
                    await self.repository.delete(kind, entity.id)
                except ClaimDeskError as e:
                    return self._fail(f"Failed to delete {kind.value}", e)
                self._collections[kind] = [item for item in self._collections[kind] if item.id != entity.id]
                await self._resync(dependents)
                return OperationResult.success(entity, plan=plan)

            try:
                await self._write_plan(plan)
            except ClaimDeskError as e:
                # Partially written; reload what the cache actually holds
                await self._resync([kind] + [k for k in dependents if k is not kind])
                return self._fail(f"Failed to delete {kind.value}", e)

            projects, contractors, claims = apply_plan(plan, self.projects, self.contractors, self.claims)
            self._collections[EntityKind.PROJECT] = projects
            self._collections[EntityKind.CONTRACTOR] = contractors
            self._collections[EntityKind.CLAIM] = claims
            logger.info(f"Deleted {kind.value} {entity.id}: {plan.describe()}")
            return OperationResult.success(entity, plan=plan)

    async def _write_plan(self, plan: CascadePlan):
        await self.repository.delete(plan.kind, plan.entity_id)
        # Updates before deletions; the two sets are disjoint
        for contractor in plan.contractors_to_update:
            await self.repository.update(contractor)
        for contractor in plan.contractors_to_delete:
            await self.repository.delete(EntityKind.CONTRACTOR, contractor.id)
        for claim in plan.claims_to_delete:
            await self.repository.delete(EntityKind.CLAIM, claim.id)

    def _fail(self, title: str, error: ClaimDeskError) -> OperationResult:
        message = describe_error(error)
        logger.error(f"{title}: {message}", extra={"error_category": error.category.value})
        self.notifier.error(title, message)
        return OperationResult.failed(message, error.category)


def create_store(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    notifier: Optional[Notifier] = None,
) -> EntityStore:
    """
    Build a store for the configured storage backend

    Args:
        settings: Settings to use (defaults to get_settings())
        transport: Optional httpx transport for the remote backend
        notifier: Notification sink shared with the caller

    Returns:
        An unloaded EntityStore; call load() or use it as an async context manager
    """
    settings = settings or get_settings()
    notifier = notifier or Notifier(history_size=settings.notification_history_size)
    if settings.storage_backend == "local":
        repository: Repository = LocalRepository(settings.cache_file)
    else:
        repository = RemoteRepository(ApiClient(settings, transport=transport), settings)
    logger.debug(f"Using {settings.storage_backend} storage backend")
    return EntityStore(repository, notifier)
