"""
Cascade planning for project and contractor deletion

Deleting a project removes its claims, removes contractors that work only on
that project and strips the project id from contractors that have others.
Deleting a contractor removes its claims. Planning is pure; applying a plan
returns new collections.
"""
from typing import List, Tuple

from pydantic import BaseModel, Field

from claimdesk.models.entities import Claim, Contractor, EntityKind, Project


class CascadePlan(BaseModel):
    """Secondary changes implied by deleting one parent entity"""
    kind: EntityKind
    entity_id: str
    contractors_to_update: List[Contractor] = Field(default_factory=list)
    contractors_to_delete: List[Contractor] = Field(default_factory=list)
    claims_to_delete: List[Claim] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.contractors_to_update or self.contractors_to_delete or self.claims_to_delete)

    def describe(self) -> str:
        """One-line summary for confirmation prompts"""
        parts = []
        if self.contractors_to_delete:
            parts.append(f"{len(self.contractors_to_delete)} contractor(s) deleted")
        if self.contractors_to_update:
            parts.append(f"{len(self.contractors_to_update)} contractor(s) unlinked")
        if self.claims_to_delete:
            parts.append(f"{len(self.claims_to_delete)} claim(s) deleted")
        return ", ".join(parts) if parts else "no dependent records"


def plan_project_deletion(
    project_id: str,
    contractors: List[Contractor],
    claims: List[Claim],
) -> CascadePlan:
    plan = CascadePlan(kind=EntityKind.PROJECT, entity_id=project_id)

    for contractor in contractors:
        if project_id not in contractor.project_ids:
            continue
        remaining = [pid for pid in contractor.project_ids if pid != project_id]
        if remaining:
            plan.contractors_to_update.append(
                contractor.model_copy(update={"project_ids": remaining})
            )
        else:
            plan.contractors_to_delete.append(contractor)

    plan.claims_to_delete = [c for c in claims if c.project_id == project_id]
    return plan


def plan_contractor_deletion(contractor_id: str, claims: List[Claim]) -> CascadePlan:
    return CascadePlan(
        kind=EntityKind.CONTRACTOR,
        entity_id=contractor_id,
        claims_to_delete=[c for c in claims if c.contractor_id == contractor_id],
    )


def apply_plan(
    plan: CascadePlan,
    projects: List[Project],
    contractors: List[Contractor],
    claims: List[Claim],
) -> Tuple[List[Project], List[Contractor], List[Claim]]:
    """
    Apply a plan to the three collections

    The parent is removed first, then contractor updates, then contractor
    deletions, then claims.

    Returns:
        (projects, contractors, claims) as new lists
    """
    if plan.kind is EntityKind.PROJECT:
        projects = [p for p in projects if p.id != plan.entity_id]
    elif plan.kind is EntityKind.CONTRACTOR:
        contractors = [c for c in contractors if c.id != plan.entity_id]

    if plan.contractors_to_update:
        updated = {c.id: c for c in plan.contractors_to_update}
        contractors = [updated.get(c.id, c) for c in contractors]

    if plan.contractors_to_delete:
        doomed = {c.id for c in plan.contractors_to_delete}
        contractors = [c for c in contractors if c.id not in doomed]

    if plan.claims_to_delete:
        doomed = {c.id for c in plan.claims_to_delete}
        claims = [c for c in claims if c.id not in doomed]

    return projects, contractors, claims
