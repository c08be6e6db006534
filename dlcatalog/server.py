"""HTTP endpoint that triggers a catalog update.

`GET /update` starts a run in the background and answers 202. Only one run
may be in flight: a second trigger is rejected with 409, never queued.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from aiohttp import web

from .config import Config
from .pipeline import run

logger = logging.getLogger(__name__)

Runner = Callable[[Config], Awaitable[object]]


class UpdateTrigger:
    """Runs at most one update at a time."""

    def __init__(self, config: Config, runner: Runner = run) -> None:
        self.config = config
        self.runner = runner
        self.task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self) -> bool:
        """Start a run; return False if one is already in flight."""
        if self.running:
            return False
        self.task = asyncio.create_task(self._run())
        return True

    async def _run(self) -> None:
        logger.info("update started")
        try:
            await self.runner(self.config)
        except Exception:
            logger.exception("update failed")
        else:
            logger.info("update complete")


TRIGGER_KEY = web.AppKey("trigger", UpdateTrigger)


async def handle_update(request: web.Request) -> web.Response:
    trigger = request.app[TRIGGER_KEY]
    if not trigger.start():
        return web.Response(status=409, text="update already running")
    return web.Response(status=202, text="update started")


def create_app(config: Config, runner: Runner = run) -> web.Application:
    app = web.Application()
    app[TRIGGER_KEY] = UpdateTrigger(config, runner)
    app.router.add_get("/update", handle_update)
    return app


def serve(config: Config) -> None:
    logger.info("listening on http://%s:%s/", config.host, config.port)
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)
