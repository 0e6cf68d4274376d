"""
Versioned schema migrations for the invoice database.

Migration scripts live next to this module as ``vNNN_name.sql``. Each one
runs in a single transaction together with its ``schema_migrations`` row,
so a failed script leaves no partial schema behind. An existing database
is copied aside before pending migrations run and put back if any fail.
"""

import asyncio
import hashlib
import re
import shutil
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from src.config import get_logger, get_settings

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent
MIGRATION_FILE_PATTERN = re.compile(r"v(\d+)_([a-z0-9_]+)\.sql")

REQUIRED_TABLES = ("invoices", "invoice_items", "schema_migrations")
FILE_HASH_INDEX = "ux_invoices_file_hash"

_TRACKING_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version            TEXT PRIMARY KEY,
    name               TEXT NOT NULL,
    checksum           TEXT NOT NULL,
    execution_time_ms  INTEGER NOT NULL DEFAULT 0,
    applied_at         TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
)
"""


@dataclass
class MigrationInfo:
    """One ``vNNN_name.sql`` script."""

    version: str
    name: str
    path: Path
    checksum: str

    @classmethod
    def from_file(cls, path: Path) -> "MigrationInfo":
        match = MIGRATION_FILE_PATTERN.fullmatch(path.name)
        if match is None:
            raise ValueError(f"Invalid migration filename: {path.name}")
        digest = hashlib.sha256(path.read_bytes()).hexdigest()[:16]
        return cls(version=match.group(1), name=match.group(2), path=path, checksum=digest)

    @property
    def label(self) -> str:
        return f"v{self.version}_{self.name}"


@dataclass
class MigrationResult:
    """Outcome of applying one migration."""

    version: str
    name: str
    success: bool
    execution_time_ms: int
    error: str | None = None


def _resolve_db_path(db_path: Path | str | None) -> Path:
    return Path(db_path) if db_path else Path(get_settings().storage.db_path)


def discover_migrations(directory: Path | None = None) -> list[MigrationInfo]:
    """Migration scripts in ``directory`` ordered by numeric version."""
    found = []
    for path in (directory or MIGRATIONS_DIR).glob("v*.sql"):
        try:
            found.append(MigrationInfo.from_file(path))
        except ValueError:
            logger.warning("migration_file_ignored", path=str(path))
    return sorted(found, key=lambda m: int(m.version))


async def _applied_checksums(conn: aiosqlite.Connection) -> dict[str, str]:
    try:
        cursor = await conn.execute("SELECT version, checksum FROM schema_migrations")
    except aiosqlite.OperationalError:
        return {}
    return {version: checksum for version, checksum in await cursor.fetchall()}


async def get_current_version(conn: aiosqlite.Connection) -> str | None:
    """Highest applied version, or None for an unmigrated database."""
    applied = await _applied_checksums(conn)
    if not applied:
        return None
    return max(applied, key=int)


async def apply_migration(conn: aiosqlite.Connection, migration: MigrationInfo) -> MigrationResult:
    """Run one script and record it, all or nothing."""
    started = time.perf_counter()
    script = migration.path.read_text(encoding="utf-8")
    record = (
        "INSERT INTO schema_migrations (version, name, checksum) "
        f"VALUES ('{migration.version}', '{migration.name}', '{migration.checksum}');"
    )

    try:
        await conn.executescript(f"BEGIN;\n{script}\n;\n{record}\nCOMMIT;")
    except aiosqlite.Error as e:
        if conn.in_transaction:
            await conn.rollback()
        elapsed = int((time.perf_counter() - started) * 1000)
        logger.error("migration_failed", migration=migration.label, error=str(e))
        return MigrationResult(migration.version, migration.name, False, elapsed, str(e))

    elapsed = int((time.perf_counter() - started) * 1000)
    await conn.execute(
        "UPDATE schema_migrations SET execution_time_ms = ? WHERE version = ?",
        (elapsed, migration.version),
    )
    await conn.commit()
    logger.info("migration_applied", migration=migration.label, execution_time_ms=elapsed)
    return MigrationResult(migration.version, migration.name, True, elapsed)


def create_backup(db_path: Path) -> Path:
    """Copy the database file aside; returns the copy's path."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    backup_path = db_path.with_name(f"{db_path.stem}.pre-migrate-{stamp}{db_path.suffix}")
    shutil.copy2(db_path, backup_path)
    logger.info("database_backup_created", backup_path=str(backup_path))
    return backup_path


def restore_backup(db_path: Path, backup_path: Path) -> None:
    shutil.copy2(backup_path, db_path)
    logger.warning("database_restored_from_backup", backup_path=str(backup_path))


async def initialize_database(
    db_path: Path | None = None,
    create_backup_before: bool = True,
) -> list[MigrationResult]:
    """
    Create or upgrade the database schema.

    Args:
        db_path: Database file, defaults to the configured one
        create_backup_before: Copy an already migrated database aside
            before running pending migrations

    Returns:
        One result per attempted migration; empty when already current
    """
    db_path = _resolve_db_path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    migrations = discover_migrations()
    results: list[MigrationResult] = []
    backup_path: Path | None = None

    try:
        async with aiosqlite.connect(db_path) as conn:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA foreign_keys=ON")
            await conn.execute(_TRACKING_TABLE_SQL)
            await conn.commit()

            applied = await _applied_checksums(conn)
            for migration in migrations:
                recorded = applied.get(migration.version)
                if recorded is not None and recorded != migration.checksum:
                    logger.warning("migration_modified_after_apply", migration=migration.label)
            pending = [m for m in migrations if m.version not in applied]

            if not pending:
                logger.info("database_schema_current", db_path=str(db_path))
                return results

            if create_backup_before and applied:
                backup_path = create_backup(db_path)

            logger.info("database_migrating", db_path=str(db_path), pending=len(pending))
            for migration in pending:
                result = await apply_migration(conn, migration)
                results.append(result)
                if not result.success:
                    break
    except Exception:
        if backup_path is not None:
            restore_backup(db_path, backup_path)
        raise

    if backup_path is not None:
        if all(r.success for r in results):
            backup_path.unlink()
        else:
            restore_backup(db_path, backup_path)
    return results


run_migrations = initialize_database


async def get_migration_status(db_path: Path | None = None) -> dict:
    """Applied and pending versions of the database."""
    db_path = _resolve_db_path(db_path)
    known = [m.version for m in discover_migrations()]

    applied: dict[str, str] = {}
    current = None
    if db_path.exists():
        async with aiosqlite.connect(db_path) as conn:
            applied = await _applied_checksums(conn)
            current = await get_current_version(conn)

    return {
        "exists": db_path.exists(),
        "current_version": current,
        "applied_migrations": sorted(applied, key=int),
        "pending_migrations": [v for v in known if v not in applied],
        "total_migrations": len(known),
    }


async def verify_schema_integrity(db_path: Path | None = None) -> list[dict]:
    """Run the database self-checks; each entry has ``check`` and ``status``."""
    db_path = _resolve_db_path(db_path)

    def outcome(name: str, ok: bool, **extra) -> dict:
        return {"check": name, "status": "PASS" if ok else "FAIL", **extra}

    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute("PRAGMA foreign_key_check")
        orphans = await cursor.fetchall()

        cursor = await conn.execute("PRAGMA integrity_check")
        (integrity,) = await cursor.fetchone()

        cursor = await conn.execute("SELECT type, name FROM sqlite_master")
        objects = {(kind, name) for kind, name in await cursor.fetchall()}

    missing = [t for t in REQUIRED_TABLES if ("table", t) not in objects]
    return [
        outcome("foreign_keys", not orphans, violations=len(orphans)),
        outcome("integrity", integrity == "ok", result=integrity),
        outcome("required_tables", not missing, missing=missing),
        outcome("file_hash_unique_index", ("index", FILE_HASH_INDEX) in objects),
    ]


def main() -> None:
    """``billing-migrate``: migrate, or report status / integrity."""
    import argparse

    parser = argparse.ArgumentParser(description="Billing Extractor database migrations")
    parser.add_argument("--db-path", type=Path, help="database file (default from settings)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--status", action="store_true", help="show applied and pending versions")
    mode.add_argument("--verify", action="store_true", help="run integrity checks")
    parser.add_argument("--no-backup", action="store_true", help="skip the pre-migration copy")
    args = parser.parse_args()

    if args.status:
        status = asyncio.run(get_migration_status(args.db_path))
        for key, value in status.items():
            print(f"{key}: {value}")
    elif args.verify:
        for check in asyncio.run(verify_schema_integrity(args.db_path)):
            print(f"[{check['status']}] {check['check']}")
    else:
        results = asyncio.run(
            initialize_database(args.db_path, create_backup_before=not args.no_backup)
        )
        if not results:
            print("Database is up to date")
        for result in results:
            state = "ok" if result.success else f"FAILED: {result.error}"
            print(f"v{result.version}_{result.name} ({result.execution_time_ms}ms) {state}")


if __name__ == "__main__":
    main()
