"""Service layer for member accounts: password hashing, login, registration."""
import logging

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.member import Group, Member
from services.exceptions import MemberExistsError

logger = logging.getLogger(__name__)


_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a plaintext password. Empty passwords are rejected."""
    if not password:
        raise ValueError("Password cannot be empty")
    return _pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a plaintext password against a stored hash. False for unknown hash formats."""
    if not password or not password_hash:
        return False
    try:
        return _pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_member(db: AsyncSession, member_id: int) -> Member | None:
    """Load a member (with groups) by id."""
    return await db.get(Member, member_id)


async def get_member_by_email(db: AsyncSession, email: str) -> Member | None:
    result = await db.execute(select(Member).where(Member.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def authenticate_credentials(
    db: AsyncSession,
    email: str,
    password: str,
) -> Member | None:
    """Return the member if the email and password match, else None."""
    member = await get_member_by_email(db, email)
    if member is None or not verify_password(password, member.password_hash):
        return None
    return member


async def get_or_create_group(db: AsyncSession, code: str) -> Group:
    result = await db.execute(select(Group).where(Group.code == code))
    group = result.scalar_one_or_none()
    if group is None:
        group = Group(code=code, title=code.replace("-", " ").title())
        db.add(group)
        await db.flush()
    return group


async def register_member(
    db: AsyncSession,
    email: str,
    password: str,
    group_code: str,
    first_name: str | None = None,
    surname: str | None = None,
) -> Member:
    """
    Create a member and add them to ``group_code``.

    Raises:
        MemberExistsError: If a member with this email already exists.
    """
    email = normalize_email(email)
    if await get_member_by_email(db, email) is not None:
        raise MemberExistsError(email)

    group = await get_or_create_group(db, group_code)
    member = Member(
        email=email,
        first_name=first_name,
        surname=surname,
        password_hash=hash_password(password),
        groups=[group],
    )
    db.add(member)
    await db.flush()
    logger.info("Registered member %s", member.id)
    return member


async def set_password(db: AsyncSession, member: Member, password: str) -> None:
    member.password_hash = hash_password(password)
    await db.flush()


async def change_password(
    db: AsyncSession,
    member: Member,
    old_password: str,
    new_password: str,
) -> bool:
    """Replace the member's password if ``old_password`` matches. Returns False otherwise."""
    if not verify_password(old_password, member.password_hash):
        return False
    await set_password(db, member, new_password)
    return True
