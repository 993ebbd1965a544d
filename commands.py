"""
Maintenance commands, run with `flask --app app <command>`.

reset-quotas and expire-subscriptions are meant for a scheduler (cron); both
are also applied lazily on each request, so a missed run only delays counters
that nobody is reading.
"""
import logging
from datetime import date

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from models import db, User, UserRole, Profile
from utils import quota
from utils.cache import invalidate_discovery_everywhere

logger = logging.getLogger(__name__)

# Demo accounts for local development
SEED_USERS = [
    {
        "id": "seed_user_001",
        "name": "Tobi Adeyemi",
        "email": "tobi.adeyemi@example.com",
        "profile": {
            "display_name": "Tobi",
            "date_of_birth": date(1996, 4, 12),
            "gender": "male",
            "looking_for": ["female"],
            "bio": "Product designer. Weekend football and long jollof debates.",
            "city": "Lagos",
            "job_title": "Product Designer",
        },
    },
    {
        "id": "seed_user_002",
        "name": "Amara Okafor",
        "email": "amara.okafor@example.com",
        "profile": {
            "display_name": "Amara",
            "date_of_birth": date(1998, 9, 3),
            "gender": "female",
            "looking_for": ["male"],
            "bio": "Nurse, plant collector, learning to surf.",
            "city": "Lagos",
            "job_title": "Nurse",
        },
    },
    {
        "id": "seed_user_003",
        "name": "Kemi Bello",
        "email": "kemi.bello@example.com",
        "profile": {
            "display_name": "Kemi",
            "date_of_birth": date(1994, 1, 22),
            "gender": "female",
            "looking_for": ["male", "female"],
            "bio": "Backend engineer. Bookshops, board games, live music.",
            "city": "Abuja",
            "job_title": "Software Engineer",
        },
    },
    {
        "id": "seed_user_004",
        "name": "Chidi Eze",
        "email": "chidi.eze@example.com",
        "profile": {
            "display_name": "Chidi",
            "date_of_birth": date(1992, 11, 8),
            "gender": "male",
            "looking_for": ["female"],
            "bio": "Chef. Will cook for good conversation.",
            "city": "Port Harcourt",
            "job_title": "Chef",
        },
    },
    {
        "id": "seed_user_005",
        "name": "Sade Lawal",
        "email": "sade.lawal@example.com",
        "profile": {
            "display_name": "Sade",
            "date_of_birth": date(1999, 6, 17),
            "gender": "non_binary",
            "looking_for": ["male", "female", "non_binary", "other"],
            "bio": "Photographer chasing golden hour across the city.",
            "city": "Lagos",
            "job_title": "Photographer",
        },
    },
]


@click.command('reset-quotas')
@with_appcontext
def reset_quotas_command():
    """Refill free-tier counters whose 24h window has elapsed."""
    reset = quota.reset_all_free_quotas()
    logger.info(f"Quota reset run: {reset} counters refilled")
    click.echo(f"Reset {reset} quota counters")


@click.command('expire-subscriptions')
@with_appcontext
def expire_subscriptions_command():
    """Downgrade paid subscriptions whose period has ended."""
    expired = quota.expire_lapsed_subscriptions()
    logger.info(f"Subscription expiry run: {expired} downgraded")
    click.echo(f"Expired {expired} subscriptions")


@click.command('grant-admin')
@click.argument('email')
@with_appcontext
def grant_admin_command(email):
    """Give the user with EMAIL the admin role."""
    user = User.query.filter(func.lower(User.email) == email.strip().lower()).first()
    if user is None:
        raise click.ClickException(f"No user with email {email}")

    if user.is_admin:
        click.echo(f"{email} is already an admin")
        return

    db.session.add(UserRole(user_id=user.id, role='admin'))
    db.session.commit()
    logger.info(f"Granted admin role to user {user.id}")
    click.echo(f"Granted admin to {email}")


@click.command('seed-users')
@with_appcontext
def seed_users_command():
    """Populate the database with demo users and profiles."""
    logger.info("Starting database seeding...")

    existing_ids = [row.id for row in User.query.filter(User.id.like('seed_user_%')).all()]
    if existing_ids:
        logger.warning(f"Found {len(existing_ids)} existing seed users. Cleaning up...")
        Profile.query.filter(Profile.user_id.in_(existing_ids)).delete(synchronize_session=False)
        for user in User.query.filter(User.id.in_(existing_ids)).all():
            db.session.delete(user)
        db.session.commit()

    created = 0
    for user_data in SEED_USERS:
        try:
            user = User(id=user_data["id"], name=user_data["name"], email=user_data["email"])
            db.session.add(user)
            db.session.flush()

            profile = Profile(user_id=user.id, is_profile_complete=True, **user_data["profile"])
            db.session.add(profile)
            quota.get_or_create_subscription(user.id)
            db.session.commit()

            created += 1
            logger.info(f"Created seed user: {user.name} ({user.id})")

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating seed user {user_data['name']}: {str(e)}")

    invalidate_discovery_everywhere()
    click.echo(f"Seeded {created} users")


def register_commands(app):
    app.cli.add_command(reset_quotas_command)
    app.cli.add_command(expire_subscriptions_command)
    app.cli.add_command(grant_admin_command)
    app.cli.add_command(seed_users_command)
