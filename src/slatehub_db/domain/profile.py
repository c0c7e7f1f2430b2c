"""Domain models for person profiles."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Email:
    """An email address on a profile."""

    address: str
    is_primary: bool = False


@dataclass(frozen=True)
class ProfileImage:
    """A base64 encoded profile image."""

    id: str
    data: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Phone:
    country_code: str | None = None
    number: str | None = None


@dataclass(frozen=True)
class Social:
    discord: str | None = None
    instagram: str | None = None


@dataclass(frozen=True)
class Profile:
    """Represents the signed-in person's profile record."""

    id: str | None
    username: str
    emails: list[Email] = field(default_factory=list)
    full_name: str | None = None
    location: str | None = None
    phone: Phone | None = None
    social: Social | None = None
    global_role: str | None = None
    profile_images: list[ProfileImage] = field(default_factory=list)
    profile_image_active: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ProfileUpdate:
    """Editable profile fields."""

    full_name: str | None = None
    location: str | None = None
    phone: Phone | None = None
    social: Social | None = None


@dataclass(frozen=True)
class CredentialsUpdate:
    """Username and/or password change, authorized by the current password."""

    current_password: str
    username: str | None = None
    new_password: str | None = None
