"""Operational commands: python manage.py make-admin <email> | seed"""
import argparse
import logging
import sys
from datetime import datetime

import config
import database
from routers.admin import seed_catalog

logger = logging.getLogger("oiko.manage")


def make_admin(db, email: str) -> bool:
    result = db[database.USERS].update_one(
        {"email": email.lower()},
        {"$set": {"role": "admin", "updatedAt": datetime.utcnow()}},
    )
    return result.matched_count > 0


def main(argv=None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL)
    parser = argparse.ArgumentParser(description="Oiko store management")
    commands = parser.add_subparsers(dest="command", required=True)
    promote = commands.add_parser("make-admin", help="grant the admin role to an existing account")
    promote.add_argument("email")
    commands.add_parser("seed", help="insert the starter catalog when the products collection is empty")
    args = parser.parse_args(argv)

    if database.db is None:
        logger.error("DATABASE_URL is not set")
        return 1

    if args.command == "make-admin":
        if not make_admin(database.db, args.email):
            logger.error("No account found for %s", args.email)
            return 1
        logger.info("%s is now an admin", args.email)
    elif args.command == "seed":
        inserted = seed_catalog(database.db)
        if inserted:
            logger.info("Inserted %d products", inserted)
        else:
            logger.info("Products already exist")
    return 0


if __name__ == "__main__":
    sys.exit(main())
