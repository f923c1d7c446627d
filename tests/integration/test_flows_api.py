# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Integration tests for the flow API."""

GIFT_FLOW = {
    "name": "Big gift",
    "trigger_type": "gift",
    "conditions": {"field": "coins", "operator": ">=", "value": 100},
    "actions": [
        {"type": "variable:set", "params": {"name": "last_gifter", "value": "{username}"}},
    ],
}


class TestFlowCrud:
    """Tests for flow management endpoints."""

    def test_create_and_get(self, client):
        response = client.post("/api/v1/flows", json=GIFT_FLOW)

        assert response.status_code == 201
        flow = response.json()
        assert flow["id"] == 1
        assert flow["enabled"] is True
        assert flow["continue_on_error"] is False

        fetched = client.get(f"/api/v1/flows/{flow['id']}").json()
        assert fetched["conditions"] == GIFT_FLOW["conditions"]

    def test_list_in_id_order(self, client):
        client.post("/api/v1/flows", json={**GIFT_FLOW, "name": "First"})
        client.post("/api/v1/flows", json={**GIFT_FLOW, "name": "Second"})

        names = [flow["name"] for flow in client.get("/api/v1/flows").json()]

        assert names == ["First", "Second"]

    def test_update_partial(self, client):
        flow_id = client.post("/api/v1/flows", json=GIFT_FLOW).json()["id"]

        response = client.put(f"/api/v1/flows/{flow_id}", json={"name": "Renamed"})

        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["trigger_type"] == "gift"

    def test_delete(self, client):
        flow_id = client.post("/api/v1/flows", json=GIFT_FLOW).json()["id"]

        assert client.delete(f"/api/v1/flows/{flow_id}").status_code == 200
        assert client.get(f"/api/v1/flows/{flow_id}").status_code == 404

    def test_toggle(self, client):
        flow_id = client.post("/api/v1/flows", json=GIFT_FLOW).json()["id"]

        assert client.post(f"/api/v1/flows/{flow_id}/toggle").json()["enabled"] is False
        assert client.post(f"/api/v1/flows/{flow_id}/toggle").json()["enabled"] is True

    def test_not_found(self, client):
        assert client.get("/api/v1/flows/99").status_code == 404
        assert client.put("/api/v1/flows/99", json={"name": "x"}).status_code == 404
        assert client.post("/api/v1/flows/99/test").status_code == 404


class TestFlowValidation:
    def test_unknown_trigger(self, client):
        response = client.post("/api/v1/flows", json={**GIFT_FLOW, "trigger_type": "raid"})
        assert response.status_code == 400
        assert "raid" in response.json()["detail"]

    def test_unknown_action_fails_at_run_time(self, client):
        response = client.post(
            "/api/v1/flows",
            json={**GIFT_FLOW, "actions": [{"type": "rocket:launch"}]},
        )
        assert response.status_code == 201

        result = client.post(f"/api/v1/flows/{response.json()['id']}/test").json()

        assert result["success"] is False
        assert "Unknown action type: rocket:launch" in result["execution"]["error"]

    def test_update_null_field_is_400(self, client):
        flow_id = client.post("/api/v1/flows", json=GIFT_FLOW).json()["id"]

        for field in ("name", "trigger_type", "enabled", "continue_on_error", "cooldown_seconds"):
            response = client.put(f"/api/v1/flows/{flow_id}", json={field: None})
            assert response.status_code == 400, field
            assert field in response.json()["detail"]

        assert client.get(f"/api/v1/flows/{flow_id}").json()["name"] == "Big gift"

    def test_bad_condition(self, client):
        response = client.post(
            "/api/v1/flows",
            json={**GIFT_FLOW, "conditions": {"logic": "XOR", "conditions": []}},
        )
        assert response.status_code == 400

    def test_schema_errors(self, client):
        assert client.post("/api/v1/flows", json={"name": ""}).status_code == 422
        assert client.post(
            "/api/v1/flows",
            json={**GIFT_FLOW, "cooldown_seconds": -1},
        ).status_code == 422


class TestFlowTest:
    """Tests for test executions."""

    def test_bypasses_conditions(self, client):
        flow_id = client.post("/api/v1/flows", json=GIFT_FLOW).json()["id"]

        response = client.post(
            f"/api/v1/flows/{flow_id}/test",
            json={"data": {"username": "bob", "coins": 1}},
        )

        data = response.json()
        assert data["success"] is True
        assert data["executed"] is True
        assert data["execution"]["manual"] is True
        assert data["execution"]["actions"][0]["status"] == "success"

        variables = client.get("/api/v1/automation/variables").json()["variables"]
        assert {"last_gifter": "bob"} == {v["name"]: v["value"] for v in variables}

    def test_default_sample_data(self, client):
        flow_id = client.post("/api/v1/flows", json=GIFT_FLOW).json()["id"]

        data = client.post(f"/api/v1/flows/{flow_id}/test").json()

        assert data["success"] is True
        assert data["execution"]["event"]
