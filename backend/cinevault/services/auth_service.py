"""Authentication service for user registration and login."""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from cinevault.models.user import User
from cinevault.core.security import hash_password, verify_password, create_access_token
from cinevault.core.exceptions import (
    EmailAlreadyExistsError,
    UsernameAlreadyExistsError,
    InvalidCredentialsError,
)


class AuthService:
    """Service for handling authentication and user management."""

    @staticmethod
    async def register_user(
        db: AsyncSession,
        email: str,
        username: str,
        password: str
    ) -> User:
        """
        Create new user with hashed password.

        Args:
            db: Database session
            email: User email address
            username: Desired username
            password: Plain text password

        Returns:
            Created User object

        Raises:
            EmailAlreadyExistsError: If email is already registered
            UsernameAlreadyExistsError: If username is already taken
        """
        if await AuthService.get_user_by_email(db, email):
            raise EmailAlreadyExistsError(email)

        result = await db.execute(select(User).where(User.username == username))
        if result.scalar_one_or_none():
            raise UsernameAlreadyExistsError(username)

        new_user = User(
            email=email,
            username=username,
            hashed_password=hash_password(password),
        )
        db.add(new_user)
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            # Duplicate inserted between the check and the insert
            if "email" in str(e.orig):
                raise EmailAlreadyExistsError(email)
            elif "username" in str(e.orig):
                raise UsernameAlreadyExistsError(username)
            raise
        await db.refresh(new_user)
        return new_user

    @staticmethod
    async def authenticate_user(
        db: AsyncSession,
        email: str,
        password: str
    ) -> tuple[User, str]:
        """
        Verify credentials and return user with access token.

        Raises:
            InvalidCredentialsError: If email or password is incorrect
        """
        user = await AuthService.get_user_by_email(db, email)
        if not user or not verify_password(password, user.hashed_password):
            raise InvalidCredentialsError()

        access_token = create_access_token(user.id)
        return user, access_token

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
        stmt = select(User).where(User.id == user_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
