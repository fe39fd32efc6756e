from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.config import settings
from taskboard.core.database import AsyncSessionLocal
from taskboard.core.exceptions import AuthError, ValidationError
from taskboard.core.principal import Principal, principal_for
from taskboard.core.security import get_password_hash, verify_password
from taskboard.models.enums import UserRole
from taskboard.models.user import User

INVALID_CREDENTIALS = "Invalid email or password"


async def find_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def create_user(db: AsyncSession, name: str, email: str, password: str, role: UserRole) -> User:
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError("Email already registered")

    user = User(name=name, email=email, hashed_password=get_password_hash(password), role=role)
    db.add(user)
    try:
        await db.commit()
    except DBIntegrityError as e:
        await db.rollback()
        raise ValidationError("Email already registered") from e
    await db.refresh(user)
    logger.info(f"Created {role.value} user {user.id}")
    return user


async def register_public_user(db: AsyncSession, name: str, email: str, password: str) -> User:
    return await create_user(db, name, email, password, UserRole.USER)


async def authenticate(db: AsyncSession, email: str, password: str, realm: UserRole) -> Principal:
    """Check the credential against the given realm only.

    A valid admin credential presented to the public login (or the reverse)
    fails exactly like a wrong password.
    """
    result = await db.execute(select(User).where(User.email == email, User.role == realm))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        logger.info(f"Rejected {realm.value} login")
        raise AuthError(INVALID_CREDENTIALS)
    return principal_for(user)


async def search_users(db: AsyncSession, query: str, limit: int = 20) -> List[User]:
    query = query.strip()
    if len(query) < 2:
        return []
    pattern = f"%{query}%"
    result = await db.execute(
        select(User)
        .where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        .order_by(User.name, User.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def ensure_admin(db: AsyncSession, name: str, email: str, password: str) -> Tuple[User, bool]:
    """Return the admin account for email, creating it if needed.

    The second value tells whether it was created. An email already held by
    a public account is refused rather than promoted.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is not None:
        if user.role is not UserRole.ADMIN:
            raise ValidationError(f"{email} belongs to a {user.role.value} account")
        return user, False
    return await create_user(db, name, email, password, UserRole.ADMIN), True


async def create_default_admin(session_factory=AsyncSessionLocal) -> Optional[User]:
    """Startup seed driven by DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD."""
    if not (settings.DEFAULT_ADMIN_EMAIL and settings.DEFAULT_ADMIN_PASSWORD):
        return None
    async with session_factory() as session:
        user, created = await ensure_admin(
            session,
            settings.DEFAULT_ADMIN_NAME,
            settings.DEFAULT_ADMIN_EMAIL,
            settings.DEFAULT_ADMIN_PASSWORD,
        )
    if created:
        logger.info(f"Default admin {user.email} created")
        logger.warning("Change the default admin password")
    return user
