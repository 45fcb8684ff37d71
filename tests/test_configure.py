"""Tests for kaelum.configure: the set_config() option merger."""

import logging
import sys
import types
from importlib.machinery import ModuleSpec
from pathlib import Path

import pytest

from kaelum import configure
from kaelum.app import App
from kaelum.errors import ConfigurationError, ProviderUnavailable
from kaelum.middleware.body import FormBodyParser, JSONBodyParser
from kaelum.middleware.cors import CORSMiddleware
from kaelum.middleware.request_log import RequestLogger
from kaelum.middleware.security_headers import SecurityHeadersMiddleware
from kaelum.middleware.static import StaticFiles
from kaelum.routing.layer import LayerKind
from kaelum.testing import TestClient


def _handles(app: App) -> list[type]:
    return [type(layer.handle) for layer in app.router.layers]


class TestSnapshot:
    def test_returns_merged_copy(self) -> None:
        app = App()
        first = app.set_config({"custom": 1})
        second = app.set_config(other="x")
        assert first == {"custom": 1}
        assert second == {"custom": 1, "other": "x"}

        second["custom"] = 99
        assert app.get_config()["custom"] == 1

    def test_unknown_options_stored_without_side_effects(self) -> None:
        app = App()
        app.set_config({"featureFlag": {"beta": True}})
        assert app.get_config()["featureFlag"] == {"beta": True}
        assert app.router.layers == ()

    def test_none_options(self) -> None:
        assert App().set_config() == {}

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Options must be a mapping"):
            configure.apply_config(App(), ["cors"])  # type: ignore[arg-type]

    def test_non_string_key_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Option names must be strings"):
            App().set_config({1: True})


class TestPort:
    @pytest.mark.parametrize(("value", "expected"), [("8080", 8080), (9000, 9000), (" 80 ", 80)])
    def test_port_coerced(self, value: object, expected: int) -> None:
        app = App()
        assert app.set_config(port=value)["port"] == expected

    @pytest.mark.parametrize("value", ["http", "80.5", -1, 70000, True, 3.5])
    def test_invalid_port(self, value: object) -> None:
        app = App()
        app.set_config(port=3001)
        with pytest.raises(ConfigurationError):
            app.set_config(port=value)
        assert app.get_config()["port"] == 3001

    def test_false_clears_port(self) -> None:
        app = App()
        app.set_config(port=8080)
        assert app.set_config(port=False)["port"] is None


class TestToggles:
    def test_logs_on_then_off(self) -> None:
        app = App()
        app.set_config(logs=True)
        assert RequestLogger in _handles(app)

        snapshot = app.set_config(logs=False)
        assert RequestLogger not in _handles(app)
        assert snapshot["logs"] is False
        assert "logger" not in app.registry

    def test_logs_format(self) -> None:
        app = App()
        app.set_config(logs={"format": "tiny"})
        (layer,) = app.router.layers
        assert layer.handle.format == "tiny"

    def test_logs_replaced_not_duplicated(self) -> None:
        app = App()
        app.set_config(logs="dev")
        app.set_config(logs="combined")
        assert _handles(app).count(RequestLogger) == 1

    def test_cors_and_helmet(self) -> None:
        app = App()
        app.set_config(cors=True, helmet={"x_frame_options": "SAMEORIGIN"})
        assert _handles(app) == [CORSMiddleware, SecurityHeadersMiddleware]

        app.set_config(cors=False)
        assert _handles(app) == [SecurityHeadersMiddleware]

    def test_unrelated_features_untouched(self) -> None:
        app = App()
        app.set_config(cors=True, logs=True)
        cors_layer = app.router.layers[0]
        app.set_config(logs=False)
        assert app.router.layers == (cors_layer,)

    def test_invalid_value_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="'cors' must be True, False, or a mapping"):
            App().set_config(cors="yes")

    def test_rejected_call_changes_nothing(self) -> None:
        app = App()
        with pytest.raises(ConfigurationError, match="Unknown log format"):
            app.set_config(cors=True, logs="verbose")
        assert app.router.layers == ()
        assert app.get_config() == {}

    def test_error_handler_option(self) -> None:
        app = App()
        app.set_config(errorHandler={"expose_stack": True})
        (layer,) = app.router.layers
        assert layer.kind is LayerKind.ERROR

        app.set_config(errorHandler=False)
        assert app.router.layers == ()

    def test_enable_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="kaelum.config"):
            App().set_config(helmet=True)
        assert "helmet enabled" in caplog.text


class TestBodyParser:
    def test_idempotent(self) -> None:
        app = App()
        app.set_config(bodyParser=True)
        app.set_config(bodyParser=True)
        assert _handles(app) == [JSONBodyParser, FormBodyParser]

    def test_disable(self) -> None:
        app = App()
        app.set_config(bodyParser=True)
        app.set_config(bodyParser=False)
        assert app.router.layers == ()
        assert app.get_config()["bodyParser"] is False


class TestStatic:
    def test_path_resolved_and_installed(self, tmp_path: Path) -> None:
        app = App()
        snapshot = app.set_config(static=tmp_path)
        assert snapshot["static"] == str(tmp_path.resolve())
        (layer,) = app.router.layers
        assert isinstance(layer.handle, StaticFiles)
        assert layer.handle.directory == tmp_path.resolve()

    def test_replace_and_remove(self, tmp_path: Path) -> None:
        app = App()
        first, second = tmp_path / "a", tmp_path / "b"
        app.static(first)
        app.static(second)
        (layer,) = app.router.layers
        assert layer.handle.directory == second.resolve()
        assert app.static() == str(second.resolve())

        app.remove_static()
        assert app.router.layers == ()
        assert app.static() is None

    def test_invalid_static(self) -> None:
        with pytest.raises(ConfigurationError, match="'static' must be a directory path"):
            App().set_config(static=42)


@pytest.fixture
def kida_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    module = types.ModuleType("kida")
    module.__spec__ = ModuleSpec("kida", None)
    monkeypatch.setitem(sys.modules, "kida", module)


@pytest.fixture
def kida_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    # A None entry makes both import and find_spec report the module missing.
    monkeypatch.setitem(sys.modules, "kida", None)


class TestViews:
    @pytest.mark.usefixtures("kida_installed")
    def test_views_settings(self, tmp_path: Path) -> None:
        app = App()
        app.set_config(views={"engine": "kida", "path": str(tmp_path / "templates")})
        assert app.router.setting("view engine") == "kida"
        assert app.router.setting("views") == str((tmp_path / "templates").resolve())

    def test_views_must_be_mapping(self) -> None:
        with pytest.raises(ConfigurationError, match="'views' must be a mapping"):
            App().set_config(views="templates")


class TestDegradedProviders:
    def test_unavailable_provider_skipped_with_warning(
        self,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        def unavailable(value: object) -> object:
            raise ProviderUnavailable("cors provider not installed")

        monkeypatch.setitem(configure.PROVIDERS, "cors", unavailable)
        app = App()
        with caplog.at_level(logging.WARNING, logger="kaelum.config"):
            snapshot = app.set_config(cors=True, helmet=True)

        assert "Option 'cors' skipped" in caplog.text
        assert _handles(app) == [SecurityHeadersMiddleware]
        assert snapshot["cors"] is True

    @pytest.mark.usefixtures("kida_missing")
    def test_kida_views_skipped_without_kida(
        self,
        tmp_path: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        app = App()
        with caplog.at_level(logging.WARNING, logger="kaelum.config"):
            app.set_config(views={"engine": "kida", "path": str(tmp_path)}, helmet=True)

        assert "Option 'views' skipped" in caplog.text
        assert "pip install kaelum[views]" in caplog.text
        assert app.router.setting("view engine") is None
        assert app.router.setting("views") is None
        assert _handles(app) == [SecurityHeadersMiddleware]

    @pytest.mark.usefixtures("kida_missing")
    def test_views_path_only_still_applies(self, tmp_path: Path) -> None:
        app = App()
        app.set_config(views={"path": str(tmp_path)})
        assert app.router.setting("views") == str(tmp_path.resolve())


class TestEndToEnd:
    async def test_cors_true_allows_any_origin(self) -> None:
        app = App()
        app.set_config(cors=True)
        app.add_route("/data", lambda: {"ok": True})
        async with TestClient(app) as client:
            response = await client.get("/data", headers={"Origin": "https://a.example"})
        assert ("access-control-allow-origin", "*") in response.headers

    async def test_helmet_headers(self) -> None:
        app = App()
        app.set_config(helmet=True)
        app.add_route("/data", lambda: {"ok": True})
        async with TestClient(app) as client:
            response = await client.get("/data")
        assert ("x-content-type-options", "nosniff") in response.headers
        assert ("x-frame-options", "DENY") in response.headers
