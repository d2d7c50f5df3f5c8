import argparse

from sqlalchemy.exc import IntegrityError

from projecthub.database import SessionLocal
from projecthub.models import User
from projecthub.services.actor import AUTH_COOKIE_NAME, encode_auth_token


def create_user(name: str, email: str, status: str = "active") -> User:
    with SessionLocal() as session:
        existing = session.query(User).filter(User.email == email).first()
        if existing:
            print(f"User already exists: {existing.id} ({existing.email})")
            return existing

        user = User(name=name, email=email, status=status)
        session.add(user)

        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise RuntimeError(f"Failed to create user due to integrity error: {exc}") from exc

        session.refresh(user)
        print(f"Created user {user.id} ({user.email})")
        return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a user in the database.")
    parser.add_argument("--name", required=True, help="Full name of the user")
    parser.add_argument("--email", required=True, help="Email for the new user")
    parser.add_argument(
        "--status",
        default="active",
        choices=["active", "inactive", "disabled"],
        help="Optional status for the user",
    )
    parser.add_argument(
        "--print-token",
        action="store_true",
        help=f"Print an {AUTH_COOKIE_NAME} cookie value for local testing",
    )

    args = parser.parse_args()
    user = create_user(name=args.name, email=args.email, status=args.status)
    if args.print_token:
        print(f"{AUTH_COOKIE_NAME}={encode_auth_token(user.id, user.email)}")


if __name__ == "__main__":
    main()
