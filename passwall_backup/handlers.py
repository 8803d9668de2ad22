"""
HTTP handlers: aiohttp routes exposing the transfer engines.

Failures are answered with the uniform envelope
``{"code": <status>, "status": "Error", "message": <text>}``.
"""
import logging
from typing import Any, Awaitable, Callable

import orjson
from aiohttp import web
from pydantic import ValidationError

from .backup import BackupEngine
from .conf import TransferConfig
from .crypto import EncryptionProvider
from .exceptions import TransferError
from .migrations import migrate_tables
from .models import Response, RestoreRequest
from .restore import RestoreEngine
from .store import Store
from .transfer import ImportExportEngine
from .upload import UploadIntake

logger = logging.getLogger("passwall.backup")

EXPORT_FILENAME = "PassWall.csv"

STORE_KEY = web.AppKey("passwall_store", Store)
INTAKE_KEY = web.AppKey("passwall_intake", UploadIntake)
TRANSFER_KEY = web.AppKey("passwall_transfer", ImportExportEngine)
BACKUP_KEY = web.AppKey("passwall_backup", BackupEngine)
RESTORE_KEY = web.AppKey("passwall_restore", RestoreEngine)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def respond(code: int, status: str, message: str) -> web.Response:
    """Build the JSON envelope response."""
    body = Response(code=code, status=status, message=message)
    return web.json_response(body.model_dump(), status=code, dumps=_dumps)


def respond_error(code: int, message: str) -> web.Response:
    return respond(code, "Error", message)


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Turn TransferError into an error envelope with its status code."""
    try:
        return await handler(request)
    except TransferError as err:
        logger.warning(
            "%s %s failed: %s (%s)",
            request.method, request.path, err.message, type(err).__name__,
        )
        return respond_error(err.status_code, err.message)


async def import_logins(request: web.Request) -> web.Response:
    """Import a multipart CSV upload; form fields supply defaults."""
    engine = request.app[TRANSFER_KEY]
    async with request.app[INTAKE_KEY].staged(request) as artifact:
        await engine.import_csv(
            artifact.file,
            url=artifact.fields.get("url", ""),
            username=artifact.fields.get("username", ""),
            password=artifact.fields.get("password", ""),
        )
    return respond(200, "Success", "Import finished successfully!")


async def export_logins(request: web.Request) -> web.Response:
    """Download every login as a CSV attachment."""
    data = await request.app[TRANSFER_KEY].export_csv()
    return web.Response(
        body=data,
        content_type="text/csv",
        headers={
            "Content-Disposition": f"attachment;filename={EXPORT_FILENAME}",
        },
    )


async def create_backup(request: web.Request) -> web.Response:
    await request.app[BACKUP_KEY].backup()
    return respond(200, "Success", "Backup completed successfully!")


async def list_backups(request: web.Request) -> web.Response:
    descriptors = request.app[BACKUP_KEY].list_backups()
    return web.json_response(
        [descriptor.to_json() for descriptor in descriptors], dumps=_dumps,
    )


async def restore_backup(request: web.Request) -> web.Response:
    """Restore the snapshot named in the JSON body ``{"name": ...}``."""
    try:
        payload = orjson.loads(await request.read())
        restore_request = RestoreRequest.model_validate(payload)
    except (orjson.JSONDecodeError, ValidationError):
        return respond_error(422, "Invalid json provided")
    await request.app[RESTORE_KEY].restore(restore_request.name)
    return respond(200, "Success", "Restore from backup completed successfully!")


async def run_migrations(app: web.Application) -> None:
    """Startup hook: best-effort migration, failures are only logged."""
    await migrate_tables(app[STORE_KEY])


def setup_routes(
    app: web.Application,
    store: Store,
    config: TransferConfig,
    migrate_on_startup: bool = True,
) -> web.Application:
    """Wire the transfer engines and routes into an aiohttp application.

    Args:
        app: Application to configure (must not be frozen yet).
        store: Record store used by every engine.
        config: Validated transfer configuration.
        migrate_on_startup: Register the migration startup hook.
    """
    crypto = EncryptionProvider.from_config(config)
    app[STORE_KEY] = store
    app[INTAKE_KEY] = UploadIntake(config.max_upload_size, config.upload_dir)
    app[TRANSFER_KEY] = ImportExportEngine(store, crypto)
    app[BACKUP_KEY] = BackupEngine(store, crypto, config.backup_folder)
    app[RESTORE_KEY] = RestoreEngine(store, crypto, config.backup_folder)

    app.middlewares.append(error_middleware)
    app.router.add_post("/api/logins/import", import_logins)
    app.router.add_post("/api/logins/export", export_logins)
    app.router.add_post("/api/system/backup", create_backup)
    app.router.add_get("/api/system/backup", list_backups)
    app.router.add_post("/api/system/restore", restore_backup)
    if migrate_on_startup:
        app.on_startup.append(run_migrations)
    return app


def create_app(store: Store, config: TransferConfig, **kwargs) -> web.Application:
    """Build a standalone application serving the transfer routes."""
    return setup_routes(web.Application(), store, config, **kwargs)
