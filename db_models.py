from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, field_validator


class LinkPrecedence(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ContactRecord(BaseModel):
    """One row of the Contact table."""

    id: int
    email: Optional[str] = None
    phoneNumber: Optional[str] = None
    linkedId: Optional[int] = None
    linkPrecedence: LinkPrecedence
    createdAt: str
    updatedAt: Optional[str] = None
    deletedAt: Optional[str] = None

    @property
    def is_primary(self) -> bool:
        return self.linkPrecedence == LinkPrecedence.PRIMARY

    @property
    def root_id(self) -> Optional[int]:
        """Id of the primary this record's group hangs off."""
        return self.id if self.is_primary else self.linkedId


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class IdentifyRequest(BaseModel):
    email: Optional[EmailStr] = None
    phoneNumber: Optional[str] = None

    @field_validator("email", "phoneNumber", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)


class ContactResponse(BaseModel):
    primaryContactId: int
    emails: List[str]
    phoneNumbers: List[str]
    secondaryContactIds: List[int]


class FinalResponse(BaseModel):
    contact: ContactResponse


class AddContactRequest(BaseModel):
    id: Optional[int] = None
    email: Optional[EmailStr] = None
    phoneNumber: Optional[str] = None
    linkedId: Optional[int] = None
    linkPrecedence: LinkPrecedence = LinkPrecedence.PRIMARY

    @field_validator("email", "phoneNumber", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)
