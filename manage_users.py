"""
USER MANAGEMENT HELPER
Quick script to inspect accounts and hand out roles or influence.

Usage:
    python manage_users.py --list
    python manage_users.py --promote someone@example.com
    python manage_users.py --demote someone@example.com
    python manage_users.py --award someone@example.com 50
"""

import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from chance.database import SessionLocal, Base, engine
from chance.models.user import User


def _find(db, email):
    return db.query(User).filter(User.email == email.strip().lower()).first()


def list_users():
    """List all users, highest influence first"""
    db = SessionLocal()

    try:
        users = db.query(User).order_by(User.influence.desc(), User.id.asc()).all()

        if not users:
            print("No users found.")
            return []

        print(f"\n{'ID':<6} {'Email':<35} {'Username':<25} {'Role':<8} {'Influence':<10}")
        print("-" * 86)
        for u in users:
            print(f"{u.id:<6} {u.email:<35} {u.username or '-':<25} {u.role:<8} {u.influence:<10}")
        print()
        return users
    finally:
        db.close()


def set_role(email, role):
    """Promote or demote a user"""
    db = SessionLocal()

    try:
        user = _find(db, email)
        if not user:
            print(f"User '{email}' not found!")
            return False

        user.role = role
        db.commit()

        print(f"'{email}' is now {role}")
        return True
    finally:
        db.close()


def award_influence(email, points):
    """Add (or with a negative number, remove) influence points"""
    db = SessionLocal()

    try:
        updated = db.query(User).filter(User.email == email.strip().lower()).update(
            {User.influence: User.influence + points}, synchronize_session=False
        )
        if not updated:
            print(f"User '{email}' not found!")
            return False
        db.commit()

        print(f"Awarded {points} influence to '{email}' (now {_find(db, email).influence})")
        return True
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    Base.metadata.create_all(bind=engine)
    command = sys.argv[1]

    if command == "--list":
        list_users()

    elif command in ("--promote", "--demote"):
        if len(sys.argv) < 3:
            print(f"Usage: python manage_users.py {command} <email>")
            sys.exit(1)
        set_role(sys.argv[2], "admin" if command == "--promote" else "user")

    elif command == "--award":
        if len(sys.argv) < 4:
            print("Usage: python manage_users.py --award <email> <points>")
            sys.exit(1)
        award_influence(sys.argv[2], int(sys.argv[3]))

    else:
        print(f"Unknown command: {command}")
        print(__doc__)
        sys.exit(1)
