"""
Database provisioner — one isolated database per project.

Engines:
    mysql   database + localhost-scoped user with a fresh random secret,
            written to a ``.env.db`` sidecar in the project directory
    mongo   database made observable by upserting one sentinel document
    sqlite  empty database file inside the project directory

The secret reaches the mysql client through stdin and the sidecar
through a filesystem action marked secret; it never appears in argv,
logs or audit entries.

A database already in the registry for the same project is reported
back without running any engine command; one registered to another
project is a conflict.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
import secrets
import shutil
import unicodedata
from datetime import UTC, datetime
from pathlib import Path

from pydantic import SecretStr

from devstack.core.engine.executor import ActionExecutor
from devstack.core.errors import DatabaseProvisionError, ResourceConflictError, ValidationError
from devstack.core.models.database import DbCredential, DbEngine
from devstack.core.models.resource import ResourceKind
from devstack.core.persistence.registry_store import ResourceRegistry
from devstack.core.services.capabilities import ServiceManager, Which

logger = logging.getLogger(__name__)

SIDECAR_NAME = ".env.db"
SQLITE_FILE = "database.sqlite"
SECRET_BYTES = 18
MAX_USER_LENGTH = 32

_MYSQL_UNIT = "mysql"


def sanitize_identifier(name: str) -> str:
    """Reduce ``name`` to ``[a-z0-9_]``.

    Accents are folded, separators become ``_``, everything else is
    dropped. Names with alphanumerics that fold away entirely (e.g.
    non-Latin scripts) get a stable hash-based identifier.

        >>> sanitize_identifier("My Cool App!")
        'my_cool_app'
    """
    folded = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    ident = re.sub(r"[\s\-.]+", "_", folded.strip().lower())
    ident = re.sub(r"[^a-z0-9_]", "", ident)
    ident = re.sub(r"_{2,}", "_", ident).strip("_")
    if not ident and any(ch.isalnum() for ch in name):
        ident = "db_" + hashlib.sha1(name.encode("utf-8")).hexdigest()[:8]
    return ident


def _identifier(project_name: str) -> str:
    ident = sanitize_identifier(project_name)
    if not ident:
        raise ValidationError(f"Cannot derive a database name from '{project_name}'")
    return ident


def generate_secret() -> str:
    """Fresh random secret, base64 of SECRET_BYTES bytes."""
    return base64.urlsafe_b64encode(secrets.token_bytes(SECRET_BYTES)).decode("ascii")


def _mysql_script(database: str, user: str, secret: str, reset: bool = True) -> str:
    """SQL that creates the database and user.

    ``reset`` forces the password of an existing account to ``secret``;
    it is only wanted when no sidecar holds the current one.
    """
    account = f"'{user}'@'localhost'"
    lines = [
        f"CREATE DATABASE IF NOT EXISTS `{database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;",
        f"CREATE USER IF NOT EXISTS {account} IDENTIFIED BY '{secret}';",
    ]
    if reset:
        lines.append(f"ALTER USER {account} IDENTIFIED BY '{secret}';")
    lines += [
        f"GRANT ALL PRIVILEGES ON `{database}`.* TO {account};",
        "FLUSH PRIVILEGES;",
        "",
    ]
    return "\n".join(lines)


class DatabaseProvisioner:
    """Create databases and credentials through the engines' CLI clients.

    With a ``registry`` the provisioner knows which databases it created
    earlier and for which project directory.
    """

    def __init__(
        self,
        executor: ActionExecutor,
        services: ServiceManager | None = None,
        mongo_clients: list[str] | None = None,
        which: Which = shutil.which,
        registry: ResourceRegistry | None = None,
    ):
        self._executor = executor
        self._services = services
        self._mongo_clients = mongo_clients or ["mongosh", "mongo"]
        self._which = which
        self._registry = registry

    def provision(self, engine: DbEngine | str, project_name: str, project_dir: Path) -> DbCredential:
        """Create the database for ``project_name``.

        Returns the existing credential (``created`` False) when this
        project's database is already registered and its sidecar or file
        is still in place.

        Raises:
            ValidationError: The name sanitizes to nothing.
            ResourceConflictError: The identifier is registered to another
                project or engine.
            DatabaseProvisionError: The engine's client is missing or refused.
        """
        engine = DbEngine(engine)
        ident = _identifier(project_name)

        existing = self._existing(engine, ident, project_dir)
        if existing is not None:
            logger.info("%s database %s already exists", engine.value, ident)
            return existing

        handler = {
            DbEngine.MYSQL: self._provision_mysql,
            DbEngine.MONGO: self._provision_mongo,
            DbEngine.SQLITE: self._provision_sqlite,
        }[engine]
        credential = handler(ident, project_dir)
        logger.info("Provisioned %s database %s", engine.value, credential.database)
        return credential

    def check_available(self, engine: DbEngine | str, project_name: str, project_dir: Path) -> str:
        """Raise ResourceConflictError now if ``provision`` would; returns the identifier."""
        engine = DbEngine(engine)
        ident = _identifier(project_name)
        self._existing(engine, ident, project_dir)
        return ident

    def _existing(self, engine: DbEngine, ident: str, project_dir: Path) -> DbCredential | None:
        if self._registry is None:
            return None
        entry = self._registry.get(ResourceKind.DATABASE, ident)
        if entry is None:
            return None

        owner = entry.details.get("project")
        owner_engine = entry.details.get("engine")
        if owner is None or Path(owner) != project_dir or owner_engine != engine.value:
            raise ResourceConflictError(
                f"Database '{ident}' is already registered for {owner or 'another project'} ({owner_engine})",
                resource_key=ident,
            )

        if engine == DbEngine.MYSQL:
            sidecar = project_dir / SIDECAR_NAME
            if not sidecar.is_file():
                logger.warning("Sidecar %s is gone; %s will be re-keyed", sidecar, ident)
                return None
            return DbCredential(
                engine=engine,
                database=ident,
                username=ident[:MAX_USER_LENGTH],
                sidecar_path=sidecar,
                created=False,
            )
        if engine == DbEngine.SQLITE:
            path = project_dir / SQLITE_FILE
            if not path.is_file():
                return None
            return DbCredential(engine=engine, database=ident, host="", path=path, created=False)
        return DbCredential(engine=engine, database=ident, created=False)

    # ── Engines ─────────────────────────────────────────────────

    def _provision_mysql(self, ident: str, project_dir: Path) -> DbCredential:
        self._need("mysql", ident)
        if self._services is not None:
            self._services.ensure_running(_MYSQL_UNIT)

        user = ident[:MAX_USER_LENGTH]
        sidecar = project_dir / SIDECAR_NAME
        secret = self._sidecar_secret(sidecar, ident)
        reuse = secret is not None
        if secret is None:
            secret = generate_secret()

        receipt = self._executor.run(
            f"db.mysql.create.{ident}",
            f"Create MySQL database {ident} and user {user}",
            ["mysql", "--batch"],
            stdin=_mysql_script(ident, user, secret, reset=not reuse),
        )
        self._executor.require(receipt, tool="mysql", resource_key=ident, error_cls=DatabaseProvisionError)

        if not reuse:
            receipt = self._executor.fs(
                f"db.mysql.sidecar.{ident}",
                f"Write credentials to {sidecar}",
                "write",
                sidecar,
                content=f"DB_NAME={ident}\nDB_USER={user}\nDB_PASS={secret}\n",
                mode=0o600,
                secret=True,
            )
            self._executor.require(receipt, tool="filesystem", resource_key=ident, error_cls=DatabaseProvisionError)

        return DbCredential(
            engine=DbEngine.MYSQL,
            database=ident,
            username=user,
            secret=SecretStr(secret),
            sidecar_path=sidecar,
        )

    def _sidecar_secret(self, sidecar: Path, ident: str) -> str | None:
        """DB_PASS from an existing sidecar, so re-runs keep the account's password."""
        if not sidecar.is_file():
            return None
        receipt = self._executor.fs(f"db.mysql.sidecar.read.{ident}", f"Read {sidecar}", "read", sidecar)
        self._executor.require(receipt, tool="filesystem", resource_key=ident, error_cls=DatabaseProvisionError)
        for line in receipt.output.splitlines():
            key, _, value = line.partition("=")
            if key.strip() == "DB_PASS" and value.strip():
                return value.strip()
        return None

    def _provision_mongo(self, ident: str, project_dir: Path) -> DbCredential:
        client = self._mongo_client(ident)
        script = (
            f'db.getSiblingDB("{ident}").init.updateOne('
            '{_id: "devstack"}, '
            '{$setOnInsert: {createdBy: "devstack", createdAt: new Date()}}, '
            "{upsert: true})"
        )
        receipt = self._executor.run(
            f"db.mongo.create.{ident}",
            f"Initialize MongoDB database {ident}",
            [client, "--quiet", "--eval", script],
        )
        self._executor.require(receipt, tool=client, resource_key=ident, error_cls=DatabaseProvisionError)
        return DbCredential(engine=DbEngine.MONGO, database=ident)

    def _provision_sqlite(self, ident: str, project_dir: Path) -> DbCredential:
        path = project_dir / SQLITE_FILE
        if not path.exists():
            receipt = self._executor.fs(
                f"db.sqlite.create.{ident}", f"Create SQLite database {path}", "write", path, content=""
            )
            self._executor.require(receipt, tool="filesystem", resource_key=ident, error_cls=DatabaseProvisionError)
        return DbCredential(engine=DbEngine.SQLITE, database=ident, host="", path=path)

    # ── Backup / restore ────────────────────────────────────────

    def backup(self, engine: DbEngine | str, database: str, backup_dir: Path) -> Path:
        """Dump ``database`` into a timestamped file under ``backup_dir``."""
        engine = DbEngine(engine)
        stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
        self._executor.require(
            self._executor.fs("db.backup.mkdir", f"Create {backup_dir}", "mkdir", backup_dir),
            tool="filesystem",
        )

        if engine == DbEngine.MYSQL:
            self._need("mysqldump", database)
            target = backup_dir / f"{database}-{stamp}.sql"
            argv = ["mysqldump", "--single-transaction", f"--result-file={target}", database]
        elif engine == DbEngine.MONGO:
            self._need("mongodump", database)
            target = backup_dir / f"{database}-{stamp}.archive.gz"
            argv = ["mongodump", f"--db={database}", f"--archive={target}", "--gzip"]
        else:
            raise ValidationError(f"Backup is not supported for {engine.value}; copy the file instead")

        receipt = self._executor.run(f"db.backup.{database}", f"Back up {database} to {target}", argv)
        self._executor.require(receipt, tool=argv[0], resource_key=database, error_cls=DatabaseProvisionError)
        return target

    def restore(self, engine: DbEngine | str, database: str, source: Path) -> None:
        engine = DbEngine(engine)
        if not source.is_file():
            raise ValidationError(f"Backup file not found: {source}")

        if engine == DbEngine.MYSQL:
            self._need("mysql", database)
            argv = ["mysql", database, "-e", f"source {source}"]
        elif engine == DbEngine.MONGO:
            self._need("mongorestore", database)
            argv = ["mongorestore", f"--archive={source}", "--gzip", f"--nsInclude={database}.*"]
        else:
            raise ValidationError(f"Restore is not supported for {engine.value}")

        receipt = self._executor.run(f"db.restore.{database}", f"Restore {database} from {source}", argv)
        self._executor.require(receipt, tool=argv[0], resource_key=database, error_cls=DatabaseProvisionError)

    # ── Helpers ─────────────────────────────────────────────────

    def _need(self, binary: str, resource_key: str) -> None:
        if self._which(binary) is None:
            raise DatabaseProvisionError(
                f"{binary} client not found; is the database server installed?",
                tool=binary,
                resource_key=resource_key,
            )

    def _mongo_client(self, resource_key: str) -> str:
        for client in self._mongo_clients:
            if self._which(client):
                return client
        raise DatabaseProvisionError(
            f"No MongoDB client found (tried {', '.join(self._mongo_clients)})",
            tool=self._mongo_clients[0],
            resource_key=resource_key,
        )
