"""
Main entrypoint: serves the API (with the auto-sync scheduler) under uvicorn.

Usage:
    python -m attendance_sync          # serve API + scheduler
    python -m attendance_sync sync     # run one auto sync and exit
    python -m attendance_sync clear    # wipe all data rows (keeps header)
"""
import asyncio
import json
import logging
import sys

from attendance_sync.config import get_settings

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _serve() -> None:
    import uvicorn

    settings = get_settings()
    logger.info("TIPSOI Attendance Sync Server on %s:%d", settings.host, settings.port)
    uvicorn.run("attendance_sync.api.main:app", host=settings.host, port=settings.port)


async def _run_once() -> int:
    from attendance_sync.sync.service import build_sync_service

    service = build_sync_service(get_settings())
    try:
        init = await service.initialize()
        if not init.success:
            logger.error("Initialization failed: %s", init.message)
            return 1
        result = await service.run_auto_sync()
        print(json.dumps(result.model_dump(mode="json"), indent=2))
        return 0 if result.success else 1
    finally:
        await service.close()


async def _clear() -> int:
    from attendance_sync.sync.service import build_sync_service

    service = build_sync_service(get_settings())
    try:
        result = await service.clear_store()
        logger.info(result.message)
        return 0 if result.success else 1
    finally:
        await service.close()


if __name__ == "__main__":
    # Dispatch on first argument: `sync`, `clear`, or nothing to serve
    command = sys.argv[1] if len(sys.argv) > 1 else "serve"
    if command == "sync":
        sys.exit(asyncio.run(_run_once()))
    elif command == "clear":
        sys.exit(asyncio.run(_clear()))
    elif command == "serve":
        _serve()
    else:
        print(__doc__)
        sys.exit(2)
