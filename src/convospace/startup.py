"""
Startup dependency checks for the ConvoSpace API.

Validates critical dependencies before the application starts serving requests.
Fails fast with clear, actionable error messages when requirements aren't met.
"""

import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from convospace.config import settings
from convospace.db.connection import SessionLocal, engine

DEFAULT_JWT_SECRET = "your-secret-key-change-in-production"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StartupMetrics:
    """Metrics collected during startup checks."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    environment_check_ms: Optional[float] = None
    database_check_ms: Optional[float] = None
    migrations_check_ms: Optional[float] = None
    storage_check_ms: Optional[float] = None
    checks_passed: bool = False
    last_check_time: Optional[datetime] = None


# Global startup metrics (populated during startup)
startup_metrics = StartupMetrics(started_at=_utcnow())


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\n❌ STARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\n💡 Hint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def _is_sqlite() -> bool:
    return settings.database_url.startswith("sqlite")


def check_required_environment() -> None:
    """
    Refuse to run outside development with the placeholder signing secret.

    Raises:
        StartupCheckError: If JWT_SECRET is unset in a non-development environment
    """
    if not settings.is_development and settings.jwt_secret == DEFAULT_JWT_SECRET:
        raise StartupCheckError(
            f"JWT_SECRET is not set (environment: {settings.environment})",
            "Set JWT_SECRET in your .env file to a long random value",
        )


def check_database_connection() -> None:
    """
    Verify the database is accessible and responsive.

    Raises:
        StartupCheckError: If database connection fails
    """
    try:
        with SessionLocal() as session:
            result = session.execute(text("SELECT 1")).scalar()
            if result != 1:
                raise StartupCheckError(
                    "Database query returned unexpected result",
                    "Database may be corrupted or misconfigured",
                )
    except StartupCheckError:
        raise
    except Exception as e:
        error_str = str(e).lower()

        if "could not connect" in error_str or "connection refused" in error_str:
            hint = "The database server is not running or not reachable"
        elif "authentication failed" in error_str or "password" in error_str:
            hint = "Database authentication failed. Check DATABASE_URL credentials"
        elif "unable to open database file" in error_str:
            hint = "The SQLite file's directory does not exist or is not writable"
        elif "timeout" in error_str or "timed out" in error_str:
            hint = "Database connection timed out. Verify network connectivity"
        else:
            hint = f"Check DATABASE_URL in .env\nError: {str(e)}"

        raise StartupCheckError(
            f"Cannot connect to database\nURL: {engine.url.render_as_string(hide_password=True)}",
            hint,
        ) from e


def check_database_migrations() -> None:
    """
    Verify Alembic database migrations are current.

    SQLite databases are created from the models directly and are skipped.

    Raises:
        StartupCheckError: If pending migrations exist
    """
    if _is_sqlite():
        return

    try:
        alembic_cfg = AlembicConfig("alembic.ini")
        script = ScriptDirectory.from_config(alembic_cfg)
        head_revision = script.get_current_head()

        with engine.connect() as connection:
            context = MigrationContext.configure(connection)
            current_revision = context.get_current_revision()

        if current_revision is None:
            raise StartupCheckError(
                "Database has no migration version\n" "Database appears uninitialized",
                "Run migrations: alembic upgrade head",
            )

        if current_revision != head_revision:
            pending = []
            for rev in script.iterate_revisions(head_revision, current_revision):
                if rev.revision != current_revision:
                    pending.append(f"  - {rev.revision[:8]}: {rev.doc}")

            pending_list = "\n".join(pending) if pending else "Unknown"

            raise StartupCheckError(
                f"Database migrations are out of date\n"
                f"Current revision: {current_revision[:8]}\n"
                f"Expected revision: {head_revision[:8] if head_revision else 'None'}\n"
                f"\nPending migrations:\n{pending_list}",
                "Run: alembic upgrade head",
            )

    except StartupCheckError:
        raise
    except FileNotFoundError:
        raise StartupCheckError(
            "Alembic configuration not found",
            "Ensure alembic.ini exists in the project root",
        )
    except Exception as e:
        raise StartupCheckError(
            f"Failed to check migration status: {str(e)}",
            "Verify Alembic is properly configured",
        ) from e


def check_storage_directory() -> None:
    """
    Validate the local storage root exists and is writable.

    Skipped when storage is disabled or uses another provider.

    Raises:
        StartupCheckError: If the directory cannot be created or written
    """
    if not settings.storage_enabled or settings.storage_provider != "local":
        print("  ⚠️  SKIP (local storage not in use)", end=" ")
        return

    storage_dir = Path(settings.storage_directory)

    try:
        storage_dir.mkdir(parents=True, exist_ok=True)
        test_file = storage_dir / ".write_test"
        try:
            test_file.write_text("test")
            test_file.unlink()
        except PermissionError:
            raise StartupCheckError(
                f"Storage directory exists but is not writable: {storage_dir}",
                f"Fix permissions: chmod u+w {storage_dir}",
            )
    except StartupCheckError:
        raise
    except OSError as e:
        raise StartupCheckError(
            f"Cannot create storage directory: {storage_dir}\nError: {str(e)}",
            "Check STORAGE_ROOT and parent directory permissions",
        ) from e


def run_all_startup_checks() -> None:
    """
    Execute all startup dependency checks.

    Runs checks in order of dependency:
    1. Environment variables
    2. Database connection
    3. Database migrations
    4. Storage directory

    Tracks timing metrics for each check.

    Raises:
        SystemExit: After printing the failed check
    """
    startup_start = time.time()

    checks = [
        ("Environment Variables", check_required_environment, "environment_check_ms"),
        ("Database Connection", check_database_connection, "database_check_ms"),
        ("Database Migrations", check_database_migrations, "migrations_check_ms"),
        ("Storage Directory", check_storage_directory, "storage_check_ms"),
    ]

    print("\n" + "=" * 70)
    print("🚀 Starting ConvoSpace API - Running Startup Checks")
    print("=" * 70 + "\n")

    for check_name, check_func, metric_name in checks:
        check_start = time.time()
        try:
            print(f"  Checking {check_name}...", end=" ", flush=True)
            check_func()
            check_duration = (time.time() - check_start) * 1000
            setattr(startup_metrics, metric_name, check_duration)
            print(f"✅ PASS ({check_duration:.1f}ms)")
        except StartupCheckError as e:
            check_duration = (time.time() - check_start) * 1000
            setattr(startup_metrics, metric_name, check_duration)
            print(f"❌ FAIL ({check_duration:.1f}ms)")
            print(str(e))
            sys.exit(1)

    startup_metrics.completed_at = _utcnow()
    startup_metrics.total_duration_ms = (time.time() - startup_start) * 1000
    startup_metrics.checks_passed = True
    startup_metrics.last_check_time = _utcnow()

    print("\n" + "=" * 70)
    print(
        f"✅ All startup checks passed - Server is ready ({startup_metrics.total_duration_ms:.1f}ms)"
    )
    print("=" * 70 + "\n")


def check_readiness() -> tuple[bool, dict]:
    """
    Quick readiness check for load balancer probes.

    Returns:
        tuple: (is_ready, details) where details holds the database status,
            whether startup completed and uptime
    """
    db_ready = False
    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
            db_ready = True
    except Exception:
        db_ready = False

    uptime = (_utcnow() - startup_metrics.started_at).total_seconds()

    ready = startup_metrics.checks_passed and db_ready
    details = {
        "ready": ready,
        "database": "healthy" if db_ready else "unhealthy",
        "startup_completed": startup_metrics.checks_passed,
        "uptime_seconds": uptime,
        "startup_metrics": {
            "total_duration_ms": startup_metrics.total_duration_ms,
            "database_check_ms": startup_metrics.database_check_ms,
            "migrations_check_ms": startup_metrics.migrations_check_ms,
            "started_at": startup_metrics.started_at.isoformat(),
            "completed_at": (
                startup_metrics.completed_at.isoformat()
                if startup_metrics.completed_at
                else None
            ),
        },
    }

    return ready, details
