"""
Typed resource APIs for countries, projects, contractors and claims
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel

from claimdesk.core.config import Settings, get_settings
from claimdesk.core.http_client import HttpClient, encode_files
from claimdesk.models.entities import EntityKind
from claimdesk.models.wire import (ClaimRead, ClaimWithProjectContractorContext,
                                   ContractorRead,
                                   ContractorWithProjectsClaimsContext,
                                   CountryRead, CountryWithProjectsContext,
                                   CreateClaimRequest, CreateContractorRequest,
                                   CreateCountryRequest, CreateProjectRequest,
                                   ProjectRead,
                                   ProjectWithCountryContractorsClaimsContext,
                                   UpdateClaimRequest, UpdateContractorRequest,
                                   UpdateCountryRequest, UpdateProjectRequest)

ReadT = TypeVar("ReadT", bound=BaseModel)
DetailT = TypeVar("DetailT", bound=BaseModel)


class ResourceApi(ABC, Generic[ReadT, DetailT]):
    """
    CRUD calls for one resource kind

    Subclasses declare the response models and how create/update requests
    are split into query-string scalars, form fields and file parts.
    """

    kind: EntityKind
    read_model: Type[ReadT]
    detail_model: Type[DetailT]
    create_model: Type[BaseModel]

    def __init__(self, http: HttpClient, prefix: str = "/api/v1", page_limit: int = 100):
        self.http = http
        self.prefix = prefix.rstrip("/")
        self.page_limit = page_limit

    @property
    def collection_path(self) -> str:
        return f"{self.prefix}/{self.kind.collection}/"

    def item_path(self, entity_id: str) -> str:
        return f"{self.prefix}/{self.kind.collection}/{entity_id}"

    async def get_all(self, offset: int = 0, limit: Optional[int] = None) -> List[ReadT]:
        """List one page of the collection"""
        data = await self.http.get(
            self.collection_path,
            params={"offset": offset, "limit": limit or self.page_limit},
        )
        if not isinstance(data, list):
            return []
        return [self.read_model.model_validate(item) for item in data]

    async def get_by_id(self, entity_id: str) -> DetailT:
        """Fetch one record with its nested relations and context files"""
        data = await self.http.get(self.item_path(entity_id))
        return self.detail_model.model_validate(data)

    async def create(self, request: BaseModel) -> Any:
        params, form, files = self.encode_create(request)
        data = await self.http.post(self.collection_path, params=params, data=form, files=files)
        return self.create_model.model_validate(data)

    async def update(self, entity_id: str, request: BaseModel) -> DetailT:
        params, form, files = self.encode_update(request)
        data = await self.http.patch(self.item_path(entity_id), params=params, data=form, files=files)
        return self.detail_model.model_validate(data)

    async def delete(self, entity_id: str) -> None:
        await self.http.delete(self.item_path(entity_id))

    @abstractmethod
    def encode_create(self, request) -> Tuple[Dict[str, Any], Dict[str, Any], List[Any]]:
        """Split a create request into query params, form fields and file parts"""
        pass

    @abstractmethod
    def encode_update(self, request) -> Tuple[Dict[str, Any], Dict[str, Any], List[Any]]:
        """Split an update request into query params, form fields and file parts"""
        pass


class CountriesApi(ResourceApi[CountryRead, CountryWithProjectsContext]):
    kind = EntityKind.COUNTRY
    read_model = CountryRead
    detail_model = CountryWithProjectsContext
    create_model = CountryRead

    def encode_create(self, request: CreateCountryRequest):
        params = {"name": request.name, "flagUrl": request.flag_url or None}
        return params, {}, encode_files("contextFiles", request.context_files)

    def encode_update(self, request: UpdateCountryRequest):
        params = {"name": request.name or None, "flagUrl": request.flag_url or None}
        return params, {}, encode_files("contextFiles", request.context_files or [])


class ProjectsApi(ResourceApi[ProjectRead, ProjectWithCountryContractorsClaimsContext]):
    kind = EntityKind.PROJECT
    read_model = ProjectRead
    detail_model = ProjectWithCountryContractorsClaimsContext
    create_model = ProjectWithCountryContractorsClaimsContext

    def encode_create(self, request: CreateProjectRequest):
        # The create endpoint takes snake_case country_id, update takes countryId
        params = {"name": request.name, "country_id": request.country_id}
        return params, {}, encode_files("contextFiles", request.context_files)

    def encode_update(self, request: UpdateProjectRequest):
        params = {"name": request.name or None, "countryId": request.country_id or None}
        return params, {}, encode_files("contextFiles", request.context_files or [])


class ContractorsApi(ResourceApi[ContractorRead, ContractorWithProjectsClaimsContext]):
    kind = EntityKind.CONTRACTOR
    read_model = ContractorRead
    detail_model = ContractorWithProjectsClaimsContext
    create_model = ContractorWithProjectsClaimsContext

    def encode_create(self, request: CreateContractorRequest):
        form = {"projectsIds": request.projects_ids}
        return {"name": request.name}, form, encode_files("contextFiles", request.context_files)

    def encode_update(self, request: UpdateContractorRequest):
        form = {"projectsIds": request.projects_ids}
        return {"name": request.name or None}, form, encode_files("contextFiles", request.context_files or [])


class ClaimsApi(ResourceApi[ClaimRead, ClaimWithProjectContractorContext]):
    kind = EntityKind.CLAIM
    read_model = ClaimRead
    detail_model = ClaimWithProjectContractorContext
    create_model = ClaimWithProjectContractorContext

    def encode_create(self, request: CreateClaimRequest):
        params = {
            "name": request.name,
            "contractorId": request.contractor_id,
            "projectId": request.project_id,
        }
        files = encode_files("claimFile", [request.claim_file])
        files += encode_files("contextFiles", request.context_files)
        return params, {}, files

    def encode_update(self, request: UpdateClaimRequest):
        params = {
            "name": request.name or None,
            "contractorId": request.contractor_id or None,
            "projectId": request.project_id or None,
        }
        files = encode_files("claimFile", [request.claim_file] if request.claim_file else [])
        files += encode_files("contextFiles", request.context_files or [])
        return params, {}, files


class ApiClient:
    """Entry point to the REST backend, one resource API per kind"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.http = HttpClient(self.settings, transport=transport)
        options: Dict[str, Any] = {
            "prefix": self.settings.api_prefix,
            "page_limit": self.settings.page_limit,
        }
        self.countries = CountriesApi(self.http, **options)
        self.projects = ProjectsApi(self.http, **options)
        self.contractors = ContractorsApi(self.http, **options)
        self.claims = ClaimsApi(self.http, **options)

    def resource(self, kind: EntityKind) -> ResourceApi:
        return {
            EntityKind.COUNTRY: self.countries,
            EntityKind.PROJECT: self.projects,
            EntityKind.CONTRACTOR: self.contractors,
            EntityKind.CLAIM: self.claims,
        }[kind]

    async def close(self):
        await self.http.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
