from pydantic import EmailStr, field_validator
from typing import Optional, List
from datetime import datetime

from larder.core.schemas import CamelModel


def _validate_household_name(value: str) -> str:
    value = value.strip()
    if len(value) < 3:
        raise ValueError("Name must be at least 3 characters")
    if len(value) > 50:
        raise ValueError("Name must be at most 50 characters")
    return value


class HouseholdCreate(CamelModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_household_name(v)


class HouseholdUpdate(HouseholdCreate):
    pass


class InviteMemberRequest(CamelModel):
    invited_email: EmailStr

    @field_validator("invited_email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if len(v) > 255:
                raise ValueError("Email must be at most 255 characters")
        return v


class HouseholdResponse(CamelModel):
    id: str
    name: str
    created_at: datetime
    member_count: Optional[int] = None
    owner_id: Optional[str] = None


class HouseholdListResponse(CamelModel):
    data: List[HouseholdResponse]
    owned_household_id: Optional[str] = None


class MemberResponse(CamelModel):
    id: str
    email: str
    role: str
    joined_at: Optional[datetime] = None


class HouseholdWithMembersResponse(HouseholdResponse):
    owner_id: str
    members: List[MemberResponse]


class MembersListResponse(CamelModel):
    data: List[MemberResponse]
