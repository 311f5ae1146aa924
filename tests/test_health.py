"""
NotPasteBin Frontend — Health Check and Lifespan Tests
========================================================

What:  GET /health and the startup/shutdown sequence of the app.
How:   The lifespan is entered directly (ASGITransport does not run it);
       setup_logging is patched out so pytest's log capture stays intact.
"""

import jinja2
import pytest

from notpastebin_frontend import __version__
from notpastebin_frontend.config import Settings
from notpastebin_frontend.main import create_app, lifespan


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy_backend(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["backend"] == "available"
        assert body["version"] == __version__
        assert body["uptime_seconds"] >= 0

    @pytest.mark.asyncio
    async def test_unhealthy_backend_is_degraded(self, test_client, fake_backend):
        fake_backend.healthy = False
        response = await test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["backend"] == "unavailable"


class TestLifespan:

    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        monkeypatch.setattr("notpastebin_frontend.main.setup_logging", lambda level="INFO": None)

    @pytest.mark.asyncio
    async def test_startup_and_shutdown_with_injected_backend(self, app, fake_backend):
        async with lifespan(app):
            assert app.state.backend is fake_backend
            assert not fake_backend.closed
        assert fake_backend.closed

    @pytest.mark.asyncio
    async def test_missing_backend_addr_is_fatal(self):
        app = create_app(settings=Settings(backend_addr="", _env_file=None))
        with pytest.raises(ValueError, match="BACKEND_ADDR"):
            async with lifespan(app):
                pass

    @pytest.mark.asyncio
    async def test_missing_template_is_fatal(self, test_settings, fake_backend, tmp_path):
        settings = test_settings.model_copy(update={"template_dir": str(tmp_path)})
        app = create_app(settings=settings, backend=fake_backend)
        with pytest.raises(jinja2.TemplateNotFound):
            async with lifespan(app):
                pass
        assert fake_backend.closed

    @pytest.mark.asyncio
    async def test_grpc_backend_is_built_from_settings(self):
        app = create_app(settings=Settings(backend_addr="localhost:1", _env_file=None))
        async with lifespan(app):
            assert app.state.backend is not None
            assert app.state.note_service.backend is app.state.backend
