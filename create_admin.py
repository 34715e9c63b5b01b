import os
import sys

from schoolms.app import create_app
from schoolms.extensions import db
from schoolms.models import User


def create_admin_user(email, password, name='System Administrator'):
    """Create an admin user if no admin exists yet."""
    app = create_app()
    with app.app_context():
        if User.query.filter(db.func.upper(User.role).in_(('ADMIN', 'SUPERUSER'))).count() > 0:
            print("An admin user already exists. No action taken.")
            return False

        admin = User(name=name, email=email.strip().lower(), role='ADMIN', first_time_login=True)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        print("Admin user created successfully!")
        print(f"Email: {admin.email}")
        print("You will be asked to change the password on first login.")
        return True


if __name__ == "__main__":
    email = os.environ.get('ADMIN_EMAIL', 'admin@school.local')
    password = os.environ.get('ADMIN_PASSWORD')
    if not password:
        print("Set ADMIN_PASSWORD before creating the admin user.")
        sys.exit(1)
    create_admin_user(email, password)
