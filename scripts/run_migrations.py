"""Apply db/migrations/*.sql to the configured database, in file-name order."""

import asyncio
from pathlib import Path

import asyncpg

from ratewatch.config import get_settings

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "db" / "migrations"


async def run_migrations(paths: list[Path]) -> None:
    settings = get_settings()

    conn = await asyncpg.connect(
        host=settings.database_host,
        port=settings.database_port,
        database=settings.database_name,
        user=settings.database_user,
        password=settings.database_password,
        ssl=settings.database_ssl_mode,
    )
    try:
        async with conn.transaction():
            for idx, path in enumerate(paths, start=1):
                # without query arguments asyncpg runs the whole script
                await conn.execute(path.read_text(encoding="utf-8"))
                print(f"Applied {path.name} ({idx}/{len(paths)})")
    finally:
        await conn.close()


def main() -> None:
    paths = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not paths:
        raise FileNotFoundError(f"No migration files found in: {MIGRATIONS_DIR}")
    asyncio.run(run_migrations(paths))


if __name__ == "__main__":
    main()
