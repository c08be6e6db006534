"""Tests for the HTTP update trigger."""

import asyncio
import logging

import pytest
from aiohttp.test_utils import TestClient, TestServer

from dlcatalog.config import Config
from dlcatalog.server import TRIGGER_KEY, create_app


class TestUpdateEndpoint:
    @pytest.mark.asyncio
    async def test_second_trigger_is_rejected_while_running(self):
        gate = asyncio.Event()
        runs = []

        async def runner(config):
            runs.append(config)
            await gate.wait()

        app = create_app(Config(), runner)
        async with TestClient(TestServer(app)) as client:
            first = await client.get("/update")
            assert first.status == 202
            assert await first.text() == "update started"

            second = await client.get("/update")
            assert second.status == 409

            gate.set()
            await app[TRIGGER_KEY].task

            third = await client.get("/update")
            assert third.status == 202
            await app[TRIGGER_KEY].task

        assert len(runs) == 2

    @pytest.mark.asyncio
    async def test_failed_run_is_logged(self, caplog):
        async def runner(config):
            raise RuntimeError("boom")

        app = create_app(Config(), runner)
        with caplog.at_level(logging.ERROR):
            async with TestClient(TestServer(app)) as client:
                response = await client.get("/update")
                assert response.status == 202
                await app[TRIGGER_KEY].task

        assert "update failed" in caplog.text
        assert not app[TRIGGER_KEY].running

    @pytest.mark.asyncio
    async def test_unknown_path(self):
        async def runner(config):
            pass

        async with TestClient(TestServer(create_app(Config(), runner))) as client:
            response = await client.get("/other")
            assert response.status == 404
