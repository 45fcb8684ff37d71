"""Tests for kaelum.routing.resource: conventional CRUD routes."""

import pytest

from kaelum.app import App
from kaelum.errors import ConfigurationError
from kaelum.routing.resource import NotImplementedAction, compose_resource
from kaelum.routing.router import Router
from kaelum.testing import TestClient


class TestCrudTrue:
    async def test_five_routes_answer_not_implemented(self) -> None:
        app = App()
        app.api_route("items", True)

        expected = [
            ("GET", "/items", "list"),
            ("POST", "/items", "create"),
            ("GET", "/items/5", "show"),
            ("PUT", "/items/5", "update"),
            ("DELETE", "/items/5", "remove"),
        ]
        async with TestClient(app) as client:
            for method, path, action in expected:
                response = await client.request(method, path)
                assert response.status == 501
                assert response.json_body() == {
                    "error": "Not Implemented",
                    "action": action,
                    "resource": "/items",
                }

    def test_registers_one_layer_per_action(self) -> None:
        router = Router()
        layers = compose_resource(router, "/items/", {"crud": True})
        assert [(sorted(layer.methods)[0], layer.path) for layer in layers] == [
            ("GET", "/items"),
            ("POST", "/items"),
            ("GET", "/items/{id}"),
            ("PUT", "/items/{id}"),
            ("DELETE", "/items/{id}"),
        ]


class TestCrudActions:
    async def test_supplied_actions_replace_placeholders(self) -> None:
        def show(id: int):
            return {"id": id}

        app = App()
        app.api_route("posts", {"crud": {"list": lambda: ["a", "b"], "show": show}})

        async with TestClient(app) as client:
            listed = await client.get("/posts")
            assert listed.json_body() == ["a", "b"]
            shown = await client.get("/posts/3")
            assert shown.json_body() == {"id": 3}
            created = await client.post("/posts")
            assert created.status == 501

    async def test_extra_routes_merge_with_crud(self) -> None:
        app = App()
        app.api_route(
            "users",
            {
                "crud": {"list": lambda: "all"},
                "/{id}/avatar": lambda id: f"avatar {id}",
                "patch": lambda: "patched",
            },
        )
        async with TestClient(app) as client:
            assert (await client.get("/users/1/avatar")).text == "avatar 1"
            assert (await client.patch("/users")).text == "patched"
            assert (await client.get("/users")).text == "all"

    def test_unknown_action(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown CRUD action"):
            compose_resource(Router(), "users", {"crud": {"destroy": lambda: None}})

    def test_extra_route_colliding_with_crud(self) -> None:
        router = Router()
        with pytest.raises(ConfigurationError, match="already a CRUD action"):
            compose_resource(router, "users", {"crud": True, "/:id": {"get": lambda: None}})
        assert router.layers == ()

    def test_crud_false_registers_only_extras(self) -> None:
        router = Router()
        layers = compose_resource(router, "users", {"crud": False, "get": lambda: "x"})
        assert len(layers) == 1

    def test_invalid_crud_value(self) -> None:
        with pytest.raises(ConfigurationError, match="must be True or a mapping"):
            compose_resource(Router(), "users", {"crud": "yes"})


class TestPlainSpecs:
    async def test_handler_is_get_on_collection(self) -> None:
        app = App()
        app.api_route("status", lambda: "up")
        async with TestClient(app) as client:
            assert (await client.get("/status")).text == "up"

    async def test_nested_member_path(self) -> None:
        app = App()
        app.api_route("orgs", {"/{id}": {"get": lambda id: f"org {id}"}})
        async with TestClient(app) as client:
            assert (await client.get("/orgs/acme")).text == "org acme"

    def test_not_implemented_repr(self) -> None:
        assert repr(NotImplementedAction("show", "/items")) == "NotImplementedAction('show', '/items')"
