"""
User CLI commands

There is no registration endpoint; accounts for development and
operations are created here.
"""
import asyncio
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from exam_tester.database import AsyncSessionLocal, close_db
from exam_tester.orm.user import User, UserRole
from exam_tester.security.auth import create_access_token


class UserCommand:
    """User CLI command handler."""

    def execute(self, args) -> int:
        if args.user_action == "create":
            return asyncio.run(self._with_db(self._create(args)))
        elif args.user_action == "token":
            return asyncio.run(self._with_db(self._token(args)))
        print("Error: Unknown user action (expected: create, token)")
        return 1

    async def _with_db(self, coro) -> int:
        try:
            return await coro
        finally:
            await close_db()

    async def _create(self, args) -> int:
        async with AsyncSessionLocal() as db:
            user = User(
                email=args.email.strip().lower(),
                full_name=args.name.strip(),
                role=UserRole(args.role),
                is_active=True,
            )
            db.add(user)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                print(f"Error: A user with email {args.email} already exists")
                return 1
            print(f"✓ Created {user.role.value} {user.email} (id={user.id})")
            return 0

    async def _token(self, args) -> int:
        async with AsyncSessionLocal() as db:
            result = await db.execute(select(User).where(User.email == args.email.strip().lower()))
            user = result.scalar_one_or_none()
            if user is None:
                print(f"Error: No user with email {args.email}")
                return 1
            expires = timedelta(minutes=args.minutes) if args.minutes else None
            print(create_access_token(user, expires_delta=expires))
            return 0
