import sys
import asyncio
from sqlalchemy.future import select
from sqlalchemy.exc import SQLAlchemyError
from app.core.security import hash_password
from app.core.enums import UserRole
from app.db.session import AsyncSessionLocal, engine
from app.models.user import User
from app.core.auth_utils import STAFF_ROLES


async def create_staff_user(username: str, password: str, role: UserRole = UserRole.ADMIN, email: str = None) -> bool:
    try:
        async with AsyncSessionLocal() as db:
            res = await db.execute(select(User).where(User.username == username))
            if res.scalars().first():
                print(f"Error: User '{username}' already exists")
                return False

            user = User(
                username=username,
                email=email,
                password_hash=hash_password(password),
                role=role,
            )
            db.add(user)
            await db.commit()

            print(f"{role.value.capitalize()} user '{username}' created successfully")
            print(f"User ID: {user.id}")
            print(f"Role: {role.value}")
            return True

    except SQLAlchemyError as e:
        print(f"Error creating {role.value} user: {str(e)}")
        return False
    finally:
        await engine.dispose()


def main():
    if len(sys.argv) < 3:
        print("Usage: python create_admin.py <username> <password> [staff|admin] [email]")
        sys.exit(1)

    username = sys.argv[1]
    password = sys.argv[2]
    role_name = sys.argv[3] if len(sys.argv) > 3 else UserRole.ADMIN.value
    email = sys.argv[4] if len(sys.argv) > 4 else None

    if not username or not password:
        print("Error: username and password cannot be empty")
        sys.exit(1)

    if role_name not in {r.value for r in STAFF_ROLES}:
        print("Error: role must be 'staff' or 'admin'")
        sys.exit(1)

    success = asyncio.run(create_staff_user(username, password, UserRole(role_name), email))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
