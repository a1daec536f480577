from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from family_tree.models.entities import Member
from family_tree.models.roles import RoleEnum
from family_tree.services.members import MemberProfile

YEAR_PATTERN = r"^\d{4}$"


class ContactInfo(BaseModel):
    phone: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=255)
    address: str | None = Field(default=None, max_length=500)


class SocialLinks(BaseModel):
    facebook: str | None = Field(default=None, max_length=500)
    instagram: str | None = Field(default=None, max_length=500)
    twitter: str | None = Field(default=None, max_length=500)
    linkedin: str | None = Field(default=None, max_length=500)


class MemberFields(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    relationship: str = Field(min_length=1, max_length=50)
    birth_year: str = Field(pattern=YEAR_PATTERN)
    is_deceased: bool = False
    death_year: str | None = Field(default=None, pattern=YEAR_PATTERN)
    avatar_url: str | None = Field(default=None, max_length=500)
    bio: str | None = Field(default=None, max_length=500)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    social_links: SocialLinks = Field(default_factory=SocialLinks)

    def to_profile(self) -> MemberProfile:
        return MemberProfile(
            first_name=self.first_name.strip(),
            last_name=self.last_name.strip(),
            relationship=self.relationship.strip(),
            birth_year=self.birth_year,
            is_deceased=self.is_deceased,
            death_year=self.death_year,
            avatar_url=self.avatar_url,
            bio=self.bio,
            contact_info=self.contact_info.model_dump(exclude_none=True),
            social_links=self.social_links.model_dump(exclude_none=True),
        )


class MemberCreate(MemberFields):
    role: RoleEnum
    spouse_order: int | None = Field(default=None, ge=1)
    mother_id: int | None = None


NULLABLE_FIELDS = frozenset({"death_year", "avatar_url", "bio", "mother_id"})


class MemberUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    relationship: str | None = Field(default=None, min_length=1, max_length=50)
    birth_year: str | None = Field(default=None, pattern=YEAR_PATTERN)
    is_deceased: bool | None = None
    death_year: str | None = Field(default=None, pattern=YEAR_PATTERN)
    avatar_url: str | None = Field(default=None, max_length=500)
    bio: str | None = Field(default=None, max_length=500)
    contact_info: ContactInfo | None = None
    social_links: SocialLinks | None = None
    mother_id: int | None = None

    def changes(self) -> dict[str, Any]:
        """Only the fields the client actually sent; an explicit null mother_id unassigns."""
        data = {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key in NULLABLE_FIELDS
        }
        for key in ("contact_info", "social_links"):
            if data.get(key) is not None:
                data[key] = {k: v for k, v in data[key].items() if v is not None}
        return data


class MemberResponse(BaseModel):
    id: int
    family_id: int
    role: RoleEnum | None
    spouse_order: int | None
    mother_id: int | None
    branch_id: int | None
    is_family_creator: bool
    is_root_member: bool
    first_name: str
    last_name: str
    relationship: str
    birth_year: str
    is_deceased: bool
    death_year: str | None
    is_verified: bool
    avatar_url: str | None
    bio: str | None
    contact_info: dict[str, Any]
    social_links: dict[str, Any]
    position: int
    join_code_consumed: bool
    is_linked_member: bool
    original_member_id: int | None
    original_family_id: int | None
    mirrored_as_member_id: int | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_member(cls, member: Member) -> "MemberResponse":
        return cls(
            id=member.id,
            family_id=member.family_id,
            role=member.role_kind,
            spouse_order=member.spouse_order,
            mother_id=member.mother_id,
            branch_id=member.branch_id,
            is_family_creator=member.is_family_creator,
            is_root_member=member.is_root_member,
            first_name=member.first_name,
            last_name=member.last_name,
            relationship=member.relationship_label,
            birth_year=member.birth_year,
            is_deceased=member.is_deceased,
            death_year=member.death_year,
            is_verified=member.is_verified,
            avatar_url=member.avatar_url,
            bio=member.bio,
            contact_info=member.contact_info or {},
            social_links=member.social_links or {},
            position=member.position,
            join_code_consumed=member.join_code_consumed,
            is_linked_member=member.is_linked_member,
            original_member_id=member.original_member_id,
            original_family_id=member.original_family_id,
            mirrored_as_member_id=member.mirrored_as_member_id,
            created_at=member.created_at,
            updated_at=member.updated_at,
        )


class MemberListResponse(BaseModel):
    items: list[MemberResponse]


class JoinCodeResponse(BaseModel):
    member_id: int
    join_code: str
    is_family_creator: bool
