from __future__ import annotations

import argparse
import os

from volunteer_eval.infrastructure.config import DatabaseConfig
from volunteer_eval.infrastructure.db import create_database_engine, create_session_factory
from volunteer_eval.infrastructure.logging import configure_logging
from volunteer_eval.infrastructure.uow import UnitOfWork
from volunteer_eval.utils.seed import initialise_database, seed_default_criteria


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Create the volunteer evaluation schema and seed the default criteria"
    )
    backend_default = os.environ.get("DB_BACKEND", "sqlite")
    parser.add_argument("--backend", choices=["sqlite", "mysql"], default=backend_default)
    parser.add_argument("--sqlite-path", default=os.environ.get("DB_SQLITE_PATH", "./volunteer_eval.db"))
    parser.add_argument("--mysql-host", default=os.environ.get("DB_MYSQL_HOST", "localhost"))
    parser.add_argument("--mysql-port", type=int, default=int(os.environ.get("DB_MYSQL_PORT", 3306)))
    parser.add_argument("--mysql-user", default=os.environ.get("DB_MYSQL_USER", "root"))
    parser.add_argument("--mysql-password", default=os.environ.get("DB_MYSQL_PASSWORD", ""))
    parser.add_argument(
        "--mysql-database",
        "--mysql-db",
        dest="mysql_database",
        default=os.environ.get("DB_MYSQL_DATABASE", "volunteer_eval"),
    )
    parser.add_argument(
        "--skip-criteria", action="store_true", help="Only create tables, do not seed criteria"
    )
    args = parser.parse_args()

    configure_logging()

    if args.backend == "sqlite":
        config = DatabaseConfig(backend="sqlite", sqlite_path=args.sqlite_path)
    else:
        config = DatabaseConfig(
            backend="mysql",
            mysql_host=args.mysql_host,
            mysql_port=args.mysql_port,
            mysql_user=args.mysql_user,
            mysql_password=args.mysql_password,
            mysql_database=args.mysql_database,
        )

    engine = create_database_engine(config)
    existed = initialise_database(engine)
    print("Schema already present." if existed else "Schema created.")

    if args.skip_criteria:
        return

    with UnitOfWork(create_session_factory(engine)).begin() as session:
        added = seed_default_criteria(session)
    print(f"Seeded {added} default criteria.")


if __name__ == "__main__":
    main()
