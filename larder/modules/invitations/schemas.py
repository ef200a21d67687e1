from pydantic import EmailStr, field_validator
from typing import Optional, List
from datetime import datetime

from larder.core.schemas import CamelModel


class InvitationCreate(CamelModel):
    invited_email: EmailStr

    @field_validator("invited_email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if len(v) > 255:
                raise ValueError("Email must be at most 255 characters")
        return v


class AcceptInvitationRequest(CamelModel):
    token: Optional[str] = None

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not 1 <= len(v) <= 255:
            raise ValueError("Token must be between 1 and 255 characters")
        return v


class InvitationResponse(CamelModel):
    id: str
    household_id: str
    invited_email: str
    token: str
    status: str = "pending"
    expires_at: datetime
    created_at: datetime


class InvitationEnvelope(CamelModel):
    invitation: InvitationResponse


class InvitationsListResponse(CamelModel):
    data: List[InvitationResponse]


class InvitationWithHouseholdResponse(InvitationResponse):
    household_name: str
    owner_email: str


class CurrentUserInvitationsResponse(CamelModel):
    data: List[InvitationWithHouseholdResponse]


class MembershipResponse(CamelModel):
    household_id: str
    user_id: str
    role: str = "member"
    joined_at: datetime
    created_at: datetime


class AcceptInvitationResponse(CamelModel):
    membership: MembershipResponse
