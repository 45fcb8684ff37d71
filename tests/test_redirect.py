"""Tests for kaelum.endpoints.redirect."""

import pytest

from kaelum.app import App
from kaelum.endpoints.redirect import clamp_status, plan_redirects
from kaelum.errors import ConfigurationError
from kaelum.testing import TestClient


class TestClampStatus:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(301, 301), (308, 308), (200, 300), (500, 399), (None, 302), ("301", 302), (True, 302)],
    )
    def test_clamp(self, value: object, expected: int) -> None:
        assert clamp_status(value) == expected


class TestPlanRedirects:
    def test_single(self) -> None:
        (rule,) = plan_redirects("old", "/new", 301)
        assert (rule.source, rule.target, rule.status) == ("/old", "/new", 301)
        assert rule.key == "redirect:/old"

    def test_mapping_of_paths(self) -> None:
        rules = plan_redirects({"/a": "/b", "/c": "/d"}, status=308)
        assert [(r.source, r.target, r.status) for r in rules] == [
            ("/a", "/b", 308),
            ("/c", "/d", 308),
        ]

    def test_from_to_mapping(self) -> None:
        (rule,) = plan_redirects({"from": "/x", "to": "https://example.com", "status": 307})
        assert rule.target == "https://example.com"
        assert rule.status == 307

    def test_list_of_entries(self) -> None:
        rules = plan_redirects([("/a", "/b"), ("/c", "/d", 301), {"from": "/e", "to": "/f"}])
        assert [r.status for r in rules] == [302, 301, 302]

    def test_missing_target(self) -> None:
        with pytest.raises(ConfigurationError, match="must be strings"):
            plan_redirects("/old")

    def test_invalid_entry(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid redirect entry"):
            plan_redirects(["/a"])

    def test_invalid_spec(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid redirect spec"):
            plan_redirects(42)


class TestRedirectRoutes:
    async def test_redirect_response(self) -> None:
        app = App()
        app.redirect("/old", "/new", 301)
        async with TestClient(app) as client:
            response = await client.get("/old")
        assert response.status == 301
        assert ("location", "/new") in response.headers

    async def test_default_status(self) -> None:
        app = App()
        app.redirect({"/a": "/b"})
        async with TestClient(app) as client:
            assert (await client.get("/a")).status == 302

    async def test_same_source_replaced(self) -> None:
        app = App()
        app.redirect("/old", "/first")
        app.redirect("/old", "/second", 308)
        assert len(app.router.find_routes("/old")) == 1
        async with TestClient(app) as client:
            response = await client.get("/old")
        assert response.status == 308
        assert ("location", "/second") in response.headers

    def test_invalid_batch_registers_nothing(self) -> None:
        app = App()
        with pytest.raises(ConfigurationError):
            app.redirect([("/a", "/b"), ("/c", 5)])
        assert app.router.layers == ()
