"""Tests for CORS middleware."""

import pytest

from kaelum.app import App
from kaelum.errors import ConfigurationError
from kaelum.middleware.cors import CORSConfig, CORSMiddleware
from kaelum.testing import TestClient


def _make_cors_app(config: CORSConfig | None = None) -> App:
    """Helper: create an app with CORS middleware and a simple route."""
    app = App()
    app.set_middleware(CORSMiddleware(config))
    app.add_route(
        "/api/data",
        {
            "get": lambda: {"message": "hello"},
            "post": lambda: ("created", 201),
        },
    )
    return app


class TestCORSNonCorsRequests:
    """Requests without an Origin header should pass through unaffected."""

    async def test_no_origin_header(self) -> None:
        app = _make_cors_app(CORSConfig(allow_origins=("*",)))
        async with TestClient(app) as client:
            response = await client.get("/api/data")
            assert response.status == 200
            header_names = {name for name, _ in response.headers}
            assert "access-control-allow-origin" not in header_names


class TestCORSSimpleRequests:
    async def test_allowed_origin_gets_cors_headers(self) -> None:
        app = _make_cors_app(CORSConfig(allow_origins=("https://example.com",)))
        async with TestClient(app) as client:
            response = await client.get(
                "/api/data",
                headers={"Origin": "https://example.com"},
            )
            assert response.status == 200
            assert ("access-control-allow-origin", "https://example.com") in response.headers
            assert ("vary", "Origin") in response.headers

    async def test_disallowed_origin_no_cors_headers(self) -> None:
        app = _make_cors_app(CORSConfig(allow_origins=("https://example.com",)))
        async with TestClient(app) as client:
            response = await client.get(
                "/api/data",
                headers={"Origin": "https://evil.com"},
            )
            assert response.status == 200
            header_names = {name for name, _ in response.headers}
            assert "access-control-allow-origin" not in header_names

    async def test_wildcard_origin(self) -> None:
        app = _make_cors_app(CORSConfig(allow_origins=("*",)))
        async with TestClient(app) as client:
            response = await client.get(
                "/api/data",
                headers={"Origin": "https://anything.com"},
            )
            assert ("access-control-allow-origin", "*") in response.headers
            assert ("vary", "Origin") not in response.headers


class TestCORSPreflightRequests:
    async def test_preflight_returns_204(self) -> None:
        app = _make_cors_app(
            CORSConfig(
                allow_origins=("https://example.com",),
                allow_methods=("GET", "POST", "PUT"),
                allow_headers=("Content-Type", "Authorization"),
            )
        )
        async with TestClient(app) as client:
            response = await client.options(
                "/api/data",
                headers={
                    "Origin": "https://example.com",
                    "Access-Control-Request-Method": "POST",
                },
            )
            assert response.status == 204
            assert ("access-control-allow-origin", "https://example.com") in response.headers
            assert ("access-control-allow-methods", "GET, POST, PUT") in response.headers
            assert response.header("access-control-allow-headers") == "Content-Type, Authorization"

    async def test_preflight_max_age(self) -> None:
        app = _make_cors_app(CORSConfig(allow_origins=("*",), max_age=3600))
        async with TestClient(app) as client:
            response = await client.options(
                "/api/data",
                headers={
                    "Origin": "https://example.com",
                    "Access-Control-Request-Method": "GET",
                },
            )
            assert ("access-control-max-age", "3600") in response.headers


class TestCORSCredentials:
    async def test_credentials_echo_origin(self) -> None:
        """With credentials=True, the origin must be echoed (not *)."""
        app = _make_cors_app(
            CORSConfig(allow_origins=("*",), allow_credentials=True)
        )
        async with TestClient(app) as client:
            response = await client.get(
                "/api/data",
                headers={"Origin": "https://example.com"},
            )
            assert ("access-control-allow-credentials", "true") in response.headers
            assert ("access-control-allow-origin", "https://example.com") in response.headers
            assert ("vary", "Origin") in response.headers


class TestCORSExposeHeaders:
    async def test_expose_headers(self) -> None:
        app = _make_cors_app(
            CORSConfig(allow_origins=("*",), expose_headers=("X-Request-Id", "X-Rate-Limit"))
        )
        async with TestClient(app) as client:
            response = await client.get(
                "/api/data",
                headers={"Origin": "https://example.com"},
            )
            exposed = response.header("access-control-expose-headers") or ""
            assert "X-Request-Id" in exposed
            assert "X-Rate-Limit" in exposed


class TestCORSDefaults:
    async def test_default_config_blocks_all_origins(self) -> None:
        """Default CORSConfig has empty allow_origins: nothing is allowed."""
        app = _make_cors_app()
        async with TestClient(app) as client:
            response = await client.get(
                "/api/data",
                headers={"Origin": "https://example.com"},
            )
            header_names = {name for name, _ in response.headers}
            assert "access-control-allow-origin" not in header_names


class TestCORSFromOptions:
    def test_empty_mapping_allows_any_origin(self) -> None:
        config = CORSConfig.from_options({})
        assert config.allow_origins == ("*",)
        assert config.allow_methods == ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE")

    def test_aliases(self) -> None:
        config = CORSConfig.from_options(
            {"origin": "https://a.com", "methods": ["GET"], "credentials": 1}
        )
        assert config.allow_origins == ("https://a.com",)
        assert config.allow_methods == ("GET",)
        assert config.allow_credentials is True

    def test_max_age(self) -> None:
        assert CORSConfig.from_options({"max_age": "60"}).max_age == 60

    def test_unknown_option(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown CORS option 'maxAge'"):
            CORSConfig.from_options({"maxAge": 60})

    async def test_set_config_mapping(self) -> None:
        app = App()
        app.set_config(cors={"origins": ["https://a.com"]})
        app.add_route("/", lambda: "ok")
        async with TestClient(app) as client:
            allowed = await client.get("/", headers={"Origin": "https://a.com"})
            blocked = await client.get("/", headers={"Origin": "https://b.com"})
        assert ("access-control-allow-origin", "https://a.com") in allowed.headers
        assert blocked.header("access-control-allow-origin") is None
