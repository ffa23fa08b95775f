from pydantic import BaseModel, Field, field_validator
from typing import List
from uuid import UUID


class PermissionOut(BaseModel):
    id: UUID
    name: str
    slug: str

    class Config:
        from_attributes = True


class UserPermissionsOut(BaseModel):
    user_id: UUID
    permissions: List[PermissionOut]


class PermissionSync(BaseModel):
    permissions: List[str] = Field(..., description="Permission slugs the user should hold")

    @field_validator("permissions")
    @classmethod
    def dedupe_slugs(cls, v):
        # Keep request order, drop repeats and blanks
        seen = []
        for slug in v:
            slug = slug.strip()
            if slug and slug not in seen:
                seen.append(slug)
        return seen


class CurrentUserOut(BaseModel):
    id: UUID
    name: str
    email: str
    permissions: List[str]
