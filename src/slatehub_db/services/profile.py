"""Profile data access for the signed-in person.

Every mutation writes the changed fields through to the session's cached
user so observers of the auth state see the new profile immediately.
"""

import base64
import re
from dataclasses import asdict, dataclass, replace
from uuid import uuid4

from slatehub_db.domain.profile import (
    CredentialsUpdate,
    Email,
    Phone,
    Profile,
    ProfileImage,
    ProfileUpdate,
    Social,
)
from slatehub_db.errors import InvalidInputError, ResultShapeError
from slatehub_db.services.records import (
    expect_one,
    expect_value,
    optional_str,
    parse_datetime,
    require_one,
    reraise_with_context,
)
from slatehub_db.services.session import SessionManager

_PROFILE_FIELDS = """
    id, username, emails, full_name, location, phone, social, global_role,
    created_at, updated_at, profile_images, profile_image_active
"""
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class ProfileService:
    """Reads and edits the current person's profile record."""

    session: SessionManager

    async def get_profile(self) -> Profile | None:
        """Fetch the current user's profile."""
        with reraise_with_context("fetch profile"):
            user_id = self.session.require_user_id()
            results = await self.session.query(
                f"SELECT {_PROFILE_FIELDS} FROM type::record($user_id);",
                {"user_id": user_id},
            )
            row = expect_one(results)
            return parse_profile(row) if row else None

    async def upload_profile_image(self, image_data: str) -> ProfileImage:
        """Append a base64 image; it becomes active if none is set."""
        with reraise_with_context("upload profile image"):
            _validate_image_data(image_data)
            user_id = self.session.require_user_id()
            image_id = str(uuid4())
            results = await self.session.query(
                """
                BEGIN TRANSACTION;
                LET $image = {
                    id: $image_id,
                    data: $image_data,
                    created_at: time::now()
                };
                UPDATE type::record($user_id) SET
                    profile_images = array::concat(profile_images ?? [], [$image]),
                    profile_image_active = profile_image_active ?? $image_id;
                RETURN $image;
                COMMIT TRANSACTION;
                """,
                {"user_id": user_id, "image_id": image_id, "image_data": image_data},
            )
            row = require_one(results, "No image returned from upload")
            user = self.session.get_current_user() or {}
            self.session.update_user(
                {
                    "profile_images": [*(user.get("profile_images") or []), row],
                    "profile_image_active": user.get("profile_image_active")
                    or image_id,
                }
            )
            return parse_image(row)

    async def delete_profile_image(self, image_id: str) -> bool:
        """Delete an image, moving the active pointer if it referenced it."""
        with reraise_with_context("delete profile image"):
            user_id = self.session.require_user_id()
            await self.session.query(
                """
                BEGIN TRANSACTION;
                LET $current = (
                    SELECT profile_images, profile_image_active
                    FROM type::record($user_id)
                )[0];
                LET $remaining = array::filter(
                    $current.profile_images ?? [], |$img| $img.id != $image_id
                );
                LET $active = IF $current.profile_image_active == $image_id THEN
                    $remaining[0].id
                ELSE
                    $current.profile_image_active
                END;
                UPDATE type::record($user_id) SET
                    profile_images = $remaining,
                    profile_image_active = $active;
                COMMIT TRANSACTION;
                """,
                {"user_id": user_id, "image_id": image_id},
            )
            user = self.session.get_current_user() or {}
            self.session.update_user(without_image(user, image_id))
            return True

    async def set_active_profile_image(self, image_id: str) -> bool:
        """Select one of the stored images as the active one."""
        with reraise_with_context("set active profile image"):
            user_id = self.session.require_user_id()
            profile = await self.get_profile()
            if profile is None or not any(
                image.id == image_id for image in profile.profile_images
            ):
                raise InvalidInputError("Image not found in user's profile")
            await self.session.query(
                "UPDATE type::record($user_id) SET profile_image_active = $image_id;",
                {"user_id": user_id, "image_id": image_id},
            )
            self.session.update_user({"profile_image_active": image_id})
            return True

    def get_active_profile_image(self) -> ProfileImage | None:
        """Return the active image from the cached user, without a round trip."""
        user = self.session.get_current_user()
        if not user:
            return None
        active_id = user.get("profile_image_active")
        for image in user.get("profile_images") or []:
            if isinstance(image, dict) and image.get("id") == active_id:
                return parse_image(image)
        return None

    async def update_profile(self, data: ProfileUpdate) -> Profile:
        """Update the editable profile fields."""
        with reraise_with_context("update profile"):
            user_id = self.session.require_user_id()
            results = await self.session.query(
                f"""
                UPDATE type::record($user_id) SET
                    full_name = $full_name,
                    location = $location,
                    phone = $phone,
                    social = $social,
                    updated_at = time::now()
                RETURN {_PROFILE_FIELDS};
                """,
                {
                    "user_id": user_id,
                    "full_name": data.full_name,
                    "location": data.location,
                    "phone": asdict(data.phone) if data.phone else None,
                    "social": asdict(data.social) if data.social else None,
                },
            )
            row = require_one(results, "No profile returned from update")
            self.session.update_user(
                {
                    key: row.get(key)
                    for key in ("full_name", "location", "phone", "social")
                }
            )
            return parse_profile(row)

    async def update_credentials(self, data: CredentialsUpdate) -> Profile:
        """Change username and/or password after verifying the current password."""
        with reraise_with_context("update credentials"):
            user_id = self.session.require_user_id()
            verified = await self.session.query(
                """
                SELECT id FROM type::record($user_id)
                WHERE crypto::argon2::compare(password, $current_password);
                """,
                {"user_id": user_id, "current_password": data.current_password},
            )
            if expect_one(verified) is None:
                raise InvalidInputError("Current password is incorrect")

            assignments: list[str] = []
            variables: dict[str, object] = {"user_id": user_id}
            username = data.username.strip() if data.username else None
            if username:
                taken = await self.session.query(
                    """
                    RETURN count((
                        SELECT id FROM person
                        WHERE username = $username
                            AND id != type::record($user_id)
                    )) > 0;
                    """,
                    {"username": username, "user_id": user_id},
                )
                if expect_value(taken):
                    raise InvalidInputError("Username already exists")
                assignments.append("username = $username")
                variables["username"] = username
            if data.new_password:
                assignments.append("password = crypto::argon2::generate($password)")
                variables["password"] = data.new_password

            if not assignments:
                profile = await self.get_profile()
                if profile is None:
                    raise ResultShapeError("Failed to get current profile")
                return profile

            assignments.append("updated_at = time::now()")
            results = await self.session.query(
                f"""
                UPDATE type::record($user_id) SET {", ".join(assignments)}
                RETURN {_PROFILE_FIELDS};
                """,
                variables,
            )
            row = require_one(results, "No profile returned from credentials update")
            if username:
                self.session.update_user({"username": username})
            return parse_profile(row)

    async def add_email(self, email: str, is_primary: bool = False) -> Profile:
        """Add an address; a primary address clears the other primary flags."""
        with reraise_with_context("add email"):
            if not validate_email(email):
                raise InvalidInputError("Invalid email format")
            self.session.require_user_id()
            normalized = email.strip().lower()
            in_use = await self.session.query(
                """
                RETURN count((
                    SELECT id FROM person WHERE $email IN emails[*].address
                )) > 0;
                """,
                {"email": normalized},
            )
            if expect_value(in_use):
                raise InvalidInputError("This email address is already in use")
            current = await self._require_profile()
            return await self._save_emails(
                with_added_email(current.emails, normalized, is_primary),
                "Failed to add email address",
            )

    async def remove_email(self, email: str) -> Profile:
        """Remove an address; the first remaining one inherits primary status."""
        with reraise_with_context("remove email"):
            normalized = email.strip().lower()
            current = await self._require_profile()
            return await self._save_emails(
                without_email(current.emails, normalized),
                "Failed to remove email address",
            )

    async def set_primary_email(self, email: str) -> Profile:
        """Mark one of the profile's addresses as primary."""
        with reraise_with_context("set primary email"):
            normalized = email.strip().lower()
            current = await self._require_profile()
            if not any(item.address == normalized for item in current.emails):
                raise InvalidInputError("Email not found in your profile")
            return await self._save_emails(
                [
                    replace(item, is_primary=item.address == normalized)
                    for item in current.emails
                ],
                "Failed to update primary email",
            )

    async def _require_profile(self) -> Profile:
        profile = await self.get_profile()
        if profile is None:
            raise ResultShapeError("Failed to get current profile")
        return profile

    async def _save_emails(self, emails: list[Email], failure_message: str) -> Profile:
        user_id = self.session.require_user_id()
        results = await self.session.query(
            f"""
            UPDATE type::record($user_id) SET
                emails = $emails,
                updated_at = time::now()
            RETURN {_PROFILE_FIELDS};
            """,
            {"user_id": user_id, "emails": [asdict(item) for item in emails]},
        )
        profile = parse_profile(require_one(results, failure_message))
        self.session.update_user(
            {"emails": [asdict(item) for item in profile.emails]}
        )
        return profile


def validate_email(email: str) -> bool:
    """Return True when `email` looks like an address."""
    return bool(email) and _EMAIL_PATTERN.match(email.strip()) is not None


def get_primary_email(profile: Profile | None) -> str | None:
    """Return the primary address, falling back to the first one."""
    if profile is None or not profile.emails:
        return None
    for item in profile.emails:
        if item.is_primary:
            return item.address
    return profile.emails[0].address


def with_added_email(
    emails: list[Email], address: str, is_primary: bool
) -> list[Email]:
    """Return `emails` plus `address`, keeping exactly one primary when requested."""
    primary = is_primary or not any(item.is_primary for item in emails)
    updated = (
        [replace(item, is_primary=False) for item in emails]
        if primary
        else list(emails)
    )
    updated.append(Email(address=address, is_primary=primary))
    return updated


def without_email(emails: list[Email], address: str) -> list[Email]:
    """Return `emails` minus `address`, promoting a new primary if needed."""
    removed = next((item for item in emails if item.address == address), None)
    if removed is None:
        raise InvalidInputError("Email not found")
    if len(emails) == 1:
        raise InvalidInputError("Cannot remove the only email address")
    remaining = [item for item in emails if item.address != address]
    if removed.is_primary:
        remaining[0] = replace(remaining[0], is_primary=True)
    return remaining


def without_image(user: dict[str, object], image_id: str) -> dict[str, object]:
    """Return cached-user changes after removing an image."""
    images = [
        image
        for image in user.get("profile_images") or []
        if not (isinstance(image, dict) and image.get("id") == image_id)
    ]
    active = user.get("profile_image_active")
    if active == image_id:
        active = images[0].get("id") if images else None
    return {"profile_images": images, "profile_image_active": active}


def parse_image(row: dict[str, object]) -> ProfileImage:
    return ProfileImage(
        id=str(row["id"]),
        data=str(row.get("data", "")),
        created_at=parse_datetime(row.get("created_at")),
    )


def parse_profile(row: dict[str, object]) -> Profile:
    """Parse a person row into a profile."""
    phone = row.get("phone")
    social = row.get("social")
    return Profile(
        id=optional_str(row.get("id")),
        username=str(row.get("username", "")),
        emails=[
            Email(
                address=str(item.get("address", "")),
                is_primary=bool(item.get("is_primary")),
            )
            for item in row.get("emails") or []
            if isinstance(item, dict)
        ],
        full_name=optional_str(row.get("full_name")),
        location=optional_str(row.get("location")),
        phone=Phone(
            country_code=optional_str(phone.get("country_code")),
            number=optional_str(phone.get("number")),
        )
        if isinstance(phone, dict)
        else None,
        social=Social(
            discord=optional_str(social.get("discord")),
            instagram=optional_str(social.get("instagram")),
        )
        if isinstance(social, dict)
        else None,
        global_role=optional_str(row.get("global_role")),
        profile_images=[
            parse_image(image)
            for image in row.get("profile_images") or []
            if isinstance(image, dict)
        ],
        profile_image_active=optional_str(row.get("profile_image_active")),
        created_at=parse_datetime(row.get("created_at")),
        updated_at=parse_datetime(row.get("updated_at")),
    )


def _validate_image_data(image_data: str) -> None:
    payload = (
        image_data.split(",", 1)[-1]
        if image_data.startswith("data:")
        else image_data
    )
    if not payload:
        raise InvalidInputError("Image data is required")
    try:
        base64.b64decode(payload, validate=True)
    except ValueError as exc:
        raise InvalidInputError("Image data must be base64 encoded") from exc
