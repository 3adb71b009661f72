import logging
from typing import TypedDict

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ConflictError, HuddleError, NotFoundError, ProfileNotFoundError
from ..database import commit_or_raise
from ..models.enums import ProfileRole
from ..models.profile import AdminEmail, Profile

logger = logging.getLogger(__name__)

SELF_EDITABLE_FIELDS = ("full_name", "avatar_url", "is_available")


class SignupResult(TypedDict):
    profile: Profile
    created: bool


class ProfileService:
    db: AsyncSession

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, profile_id: int) -> Profile:
        result = await self.db.execute(select(Profile).where(Profile.id == profile_id))
        profile = result.scalar_one_or_none()
        if not profile:
            raise ProfileNotFoundError()
        return profile

    async def get_by_auth_user_id(self, auth_user_id: str) -> Profile | None:
        result = await self.db.execute(
            select(Profile).where(Profile.auth_user_id == auth_user_id)
        )
        return result.scalar_one_or_none()

    async def list_profiles(
        self, role: ProfileRole | None = None, skip: int = 0, limit: int = 50
    ) -> list[Profile]:
        query = select(Profile)
        if role:
            query = query.where(Profile.role == role)

        result = await self.db.execute(
            query.order_by(Profile.created_at.asc(), Profile.id.asc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def is_allowlisted_admin(self, email: str) -> bool:
        result = await self.db.execute(
            select(AdminEmail.id).where(AdminEmail.email == email.strip().lower())
        )
        return result.scalar_one_or_none() is not None

    async def handle_signup(
        self,
        auth_user_id: str,
        email: str,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> SignupResult:
        """Create the profile for a newly registered auth user.

        Redelivered events return the existing profile unchanged.
        """
        existing = await self.get_by_auth_user_id(auth_user_id)
        if existing:
            return SignupResult(profile=existing, created=False)

        role = ProfileRole.USER
        if await self.is_allowlisted_admin(email):
            role = ProfileRole.ADMIN

        profile = Profile(
            auth_user_id=auth_user_id,
            email=email.strip(),
            full_name=full_name,
            avatar_url=avatar_url,
            role=role,
            is_active=True,
        )
        self.db.add(profile)

        try:
            await commit_or_raise(self.db, "create profile")
        except IntegrityError:
            existing = await self.get_by_auth_user_id(auth_user_id)
            if existing:
                return SignupResult(profile=existing, created=False)
            raise ConflictError("A profile with this email already exists") from None

        logger.info(f"👤 Profile {profile.id} created with role {role.value}")
        return SignupResult(profile=profile, created=True)

    async def update_own_profile(
        self, profile_id: int, changes: dict[str, object]
    ) -> Profile:
        profile = await self.get_profile(profile_id)
        for field, value in changes.items():
            if field not in SELF_EDITABLE_FIELDS:
                raise HuddleError(f"Field {field} cannot be changed")
            setattr(profile, field, value)

        await commit_or_raise(self.db, "update profile")
        return profile

    async def admin_update_profile(
        self,
        profile_id: int,
        acting_admin_id: int,
        role: ProfileRole | None = None,
        is_active: bool | None = None,
    ) -> Profile:
        if profile_id == acting_admin_id and (
            role == ProfileRole.USER or is_active is False
        ):
            raise HuddleError("Admins cannot demote or deactivate themselves")

        profile = await self.get_profile(profile_id)
        if role is not None:
            profile.role = role
        if is_active is not None:
            profile.is_active = is_active

        await commit_or_raise(self.db, "update profile")
        return profile

    async def list_admin_emails(self) -> list[AdminEmail]:
        result = await self.db.execute(select(AdminEmail).order_by(AdminEmail.email))
        return list(result.scalars().all())

    async def _set_role_by_email(self, email: str, role: ProfileRole) -> Profile | None:
        result = await self.db.execute(
            select(Profile).where(func.lower(Profile.email) == email)
        )
        profile = result.scalar_one_or_none()
        if profile:
            profile.role = role
        return profile

    async def add_admin_email(self, email: str, added_by_id: int) -> AdminEmail:
        email = email.strip().lower()
        if await self.is_allowlisted_admin(email):
            raise ConflictError("Email is already on the admin list")

        admin_email = AdminEmail(email=email, added_by_id=added_by_id)
        self.db.add(admin_email)
        promoted = await self._set_role_by_email(email, ProfileRole.ADMIN)

        try:
            await commit_or_raise(self.db, "add admin email")
        except IntegrityError:
            raise ConflictError("Email is already on the admin list") from None

        if promoted:
            logger.info(f"🛡️ Profile {promoted.id} promoted to admin")
        return admin_email

    async def remove_admin_email(self, admin_email_id: int, acting_admin_id: int) -> None:
        result = await self.db.execute(
            select(AdminEmail).where(AdminEmail.id == admin_email_id)
        )
        admin_email = result.scalar_one_or_none()
        if not admin_email:
            raise NotFoundError("Admin email not found")

        result = await self.db.execute(
            select(Profile.id).where(func.lower(Profile.email) == admin_email.email)
        )
        if result.scalar_one_or_none() == acting_admin_id:
            raise HuddleError("Admins cannot remove their own email from the admin list")

        await self.db.delete(admin_email)
        demoted = await self._set_role_by_email(admin_email.email, ProfileRole.USER)
        await commit_or_raise(self.db, "remove admin email")

        if demoted:
            logger.info(f"🛡️ Profile {demoted.id} demoted to user")
