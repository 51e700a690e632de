"""
Entity records, drafts and backend payload models
"""
from claimdesk.models.entities import (ENTITY_TYPES, Claim, ClaimDraft,
                                       ContextFile, Contractor, ContractorDraft,
                                       Country, CountryDraft, Draft, Entity,
                                       EntityKind, FileUpload, Project,
                                       ProjectDraft)

__all__ = [
    "ENTITY_TYPES",
    "Claim",
    "ClaimDraft",
    "ContextFile",
    "Contractor",
    "ContractorDraft",
    "Country",
    "CountryDraft",
    "Draft",
    "Entity",
    "EntityKind",
    "FileUpload",
    "Project",
    "ProjectDraft",
]
