"""Integration tests for scene routes: CRUD, trigger conflicts, activation."""

from __future__ import annotations


async def _create(http, name: str, **fields) -> dict:
    response = await http.post("/scenes", json={"name": name, **fields})
    assert response.status_code == 201
    return response.json()


class TestSceneCrud:
    async def test_create_returns_201_with_id(self, http) -> None:
        scene = await _create(http, "Focus", devices={"lifx:d073d5000001": {"on": True, "brightness": 1}})
        assert scene["id"]
        assert scene["trigger"] == ""

    async def test_list_in_creation_order(self, http) -> None:
        for name in ("A", "B"):
            await _create(http, name)
        assert [s["name"] for s in (await http.get("/scenes")).json()] == ["A", "B"]

    async def test_get_one_and_404(self, http) -> None:
        scene = await _create(http, "Focus")
        assert (await http.get(f"/scenes/{scene['id']}")).json()["name"] == "Focus"
        assert (await http.get("/scenes/missing")).status_code == 404

    async def test_duplicate_trigger_is_409(self, http) -> None:
        await _create(http, "Call", trigger="camera_on")
        response = await http.post("/scenes", json={"name": "Again", "trigger": "camera_on"})
        assert response.status_code == 409
        assert "camera_on" in response.json()["detail"]

    async def test_unknown_trigger_is_422(self, http) -> None:
        response = await http.post("/scenes", json={"name": "x", "trigger": "motion"})
        assert response.status_code == 422

    async def test_update(self, http) -> None:
        scene = await _create(http, "Call", trigger="camera_on")
        response = await http.put(
            f"/scenes/{scene['id']}", json={"name": "Video call", "trigger": "camera_on", "global_kelvin": 3000}
        )
        assert response.status_code == 200
        assert response.json()["global_kelvin"] == 3000
        assert (await http.get(f"/scenes/{scene['id']}")).json()["name"] == "Video call"

    async def test_delete(self, http) -> None:
        scene = await _create(http, "Gone")
        assert (await http.delete(f"/scenes/{scene['id']}")).status_code == 204
        assert (await http.delete(f"/scenes/{scene['id']}")).status_code == 404


class TestSceneActivation:
    async def test_activate_applies_and_sets_active(self, http, lifx) -> None:
        scene = await _create(http, "Focus", devices={"lifx:d073d5000001": {"on": True, "brightness": 0.7}})
        response = await http.post(f"/scenes/{scene['id']}/activate")
        assert response.status_code == 200
        assert lifx.states["lifx:d073d5000001"].brightness == 0.7
        assert (await http.get("/scenes/active")).json() == {"scene_id": scene["id"]}

    async def test_no_active_scene_initially(self, http) -> None:
        assert (await http.get("/scenes/active")).json() == {"scene_id": None}

    async def test_activate_unknown_is_404(self, http) -> None:
        assert (await http.post("/scenes/missing/activate")).status_code == 404
