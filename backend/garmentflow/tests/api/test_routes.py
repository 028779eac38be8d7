"""
API tests for the workflow routes.

Each test gets its own application backed by a fresh in-memory container.
"""

from collections.abc import Generator
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from garmentflow.api.deps import ServiceContainer
from garmentflow.api.errors import ERROR_STATUS_CODES
from garmentflow.core.config import settings
from garmentflow.domain.shared.exceptions import ErrorType
from garmentflow.main import create_app

API = settings.API_V1_STR
SUPERVISOR = {"X-Actor-Id": "sup-1", "X-Actor-Role": "supervisor"}
CUTTER = {"X-Actor-Id": "op-cut", "X-Actor-Role": "operator"}

TEMPLATE = {
    "id": "cut-join-hem",
    "name": "Shirt",
    "garment_type": "shirt",
    "operations": [
        {"id": "cut", "sequence": 1, "name": "Cut", "machine_type": "cutting",
         "estimated_time_per_piece": 1.0},
        {"id": "join", "sequence": 2, "name": "Join", "machine_type": "overlock",
         "dependencies": ["cut"]},
        {"id": "hem", "sequence": 3, "name": "Hem", "machine_type": "flatlock",
         "dependencies": ["join"]},
    ],
}


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    with TestClient(create_app(ServiceContainer())) as c:
        c.post(f"{API}/templates", json=TEMPLATE, headers=SUPERVISOR)
        c.put(
            f"{API}/operators/op-cut",
            json={"name": "Ana", "machine_capabilities": ["cutting"]},
            headers=SUPERVISOR,
        )
        c.put(
            f"{API}/operators/op-multi",
            json={"name": "Bo", "multi_skill": True},
            headers=SUPERVISOR,
        )
        yield c


def _create_lot(client: TestClient, lot_number: str = "LOT-1", pieces: int = 60) -> dict:
    response = client.post(
        f"{API}/lots",
        json={"lot_number": lot_number, "template_id": "cut-join-hem", "total_pieces": pieces},
        headers=SUPERVISOR,
    )
    assert response.status_code == 201
    return response.json()


def _cut_id(lot: dict) -> str:
    return next(i["id"] for i in lot["work_items"] if i["operation_id"] == "cut")


class TestIdentity:
    def test_missing_actor_headers(self, client: TestClient):
        response = client.post(
            f"{API}/lots",
            json={"lot_number": "LOT-1", "template_id": "cut-join-hem", "total_pieces": 10},
        )

        assert response.status_code == 401

    def test_unknown_role(self, client: TestClient):
        response = client.get(
            f"{API}/assignments/approvals",
            headers={"X-Actor-Id": "x", "X-Actor-Role": "janitor"},
        )

        assert response.status_code == 401

    def test_operator_cannot_create_lots(self, client: TestClient):
        response = client.post(
            f"{API}/lots",
            json={"lot_number": "LOT-1", "template_id": "cut-join-hem", "total_pieces": 10},
            headers=CUTTER,
        )

        assert response.status_code == 403
        assert response.json()["type"] == "not_authorized"

    def test_correlation_id_is_echoed(self, client: TestClient):
        response = client.get(f"{API}/lots", headers={"X-Correlation-ID": "req-42"})

        assert response.headers["X-Correlation-ID"] == "req-42"


class TestTemplatesAndOperators:
    def test_get_template(self, client: TestClient):
        response = client.get(f"{API}/templates/cut-join-hem")

        assert response.status_code == 200
        assert [op["id"] for op in response.json()["operations"]] == ["cut", "join", "hem"]

    def test_cyclic_template_rejected(self, client: TestClient):
        body = {
            "id": "loop",
            "operations": [
                {"id": "a", "sequence": 1, "name": "A", "machine_type": "x", "dependencies": ["b"]},
                {"id": "b", "sequence": 2, "name": "B", "machine_type": "x", "dependencies": ["a"]},
            ],
        }

        response = client.post(f"{API}/templates", json=body, headers=SUPERVISOR)

        assert response.status_code == 422
        assert response.json()["type"] == "invalid_template"

    def test_operator_roster(self, client: TestClient):
        response = client.get(f"{API}/operators", params={"machine_type": "cutting"})

        assert response.status_code == 200
        assert [op["id"] for op in response.json()] == ["op-cut", "op-multi"]

    def test_unknown_operator(self, client: TestClient):
        assert client.get(f"{API}/operators/op-ghost").status_code == 404


class TestLotRoutes:
    def test_create_and_progress(self, client: TestClient):
        lot = _create_lot(client)
        lot_id = lot["lot"]["id"]

        assert [i["status"] for i in lot["work_items"]] == ["ready", "pending", "pending"]

        progress = client.get(f"{API}/lots/{lot_id}/progress").json()
        assert progress["total"] == 3
        assert progress["progress_percentage"] == 0
        assert progress["current_operation"] == "Cut"

        summary = client.get(f"{API}/lots/wip-summary").json()
        assert summary["active_lots"] == 1
        assert summary["total_pieces"] == 180

    def test_duplicate_lot_number(self, client: TestClient):
        _create_lot(client)

        response = client.post(
            f"{API}/lots",
            json={"lot_number": "LOT-1", "template_id": "cut-join-hem", "total_pieces": 10},
            headers=SUPERVISOR,
        )

        assert response.status_code == 422
        assert response.json()["details"]["invariant"] == "LOT_NUMBER_UNIQUE"

    def test_unknown_lot(self, client: TestClient):
        assert client.get(f"{API}/lots/{uuid4()}").status_code == 404

    def test_insert_operation(self, client: TestClient):
        lot_id = _create_lot(client)["lot"]["id"]

        response = client.post(
            f"{API}/lots/{lot_id}/operations",
            json={
                "id": "press",
                "name": "Press",
                "sequence": 4,
                "machine_type": "press",
                "insertion_point": "at_end",
            },
            headers=SUPERVISOR,
        )

        assert response.status_code == 201
        assert response.json()[0]["dependencies"] == ["hem"]
        items = client.get(f"{API}/lots/{lot_id}/work-items").json()
        assert len(items) == 4


class TestWorkItemFlow:
    """Test a bundle through assignment, execution and completion."""

    def test_assign_start_progress_complete(self, client: TestClient):
        lot = _create_lot(client)
        cut_id = _cut_id(lot)

        ready = client.get(f"{API}/work-items/ready", params={"lot_id": lot["lot"]["id"]})
        assert [i["id"] for i in ready.json()] == [cut_id]

        ranking = client.get(f"{API}/work-items/{cut_id}/operators").json()
        assert ranking[0]["compatible"]

        response = client.post(
            f"{API}/assignments/assign",
            json={"work_item_id": cut_id, "operator_id": "op-cut"},
            headers=SUPERVISOR,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "assigned"

        again = client.post(
            f"{API}/assignments/assign",
            json={"work_item_id": cut_id, "operator_id": "op-multi"},
            headers=SUPERVISOR,
        )
        assert again.status_code == 409
        assert again.json()["type"] == "already_assigned"

        assert client.post(f"{API}/work-items/{cut_id}/start", headers=CUTTER).status_code == 200
        progress = client.post(
            f"{API}/work-items/{cut_id}/progress", json={"pieces": 40}, headers=CUTTER
        )
        assert progress.json()["completed_pieces"] == 40

        too_early = client.post(f"{API}/work-items/{cut_id}/complete", headers=CUTTER)
        assert too_early.status_code == 422

        done = client.post(
            f"{API}/work-items/{cut_id}/complete",
            json={"completed_pieces": 60},
            headers=CUTTER,
        )
        assert done.status_code == 200
        assert done.json()["status"] == "completed"

        items = client.get(f"{API}/lots/{lot['lot']['id']}/work-items").json()
        assert [i["status"] for i in items] == ["completed", "ready", "pending"]

        history = client.get(f"{API}/work-items/{cut_id}/assignments").json()
        assert history[0]["approval_state"] == "confirmed"
        assert history[0]["closed_at"] is not None

    def test_invalid_transition(self, client: TestClient):
        cut_id = _cut_id(_create_lot(client))

        response = client.post(f"{API}/work-items/{cut_id}/start", headers=SUPERVISOR)

        assert response.status_code == 409
        body = response.json()
        assert body["type"] == "invalid_transition"
        assert body["details"]["current_status"] == "ready"

    def test_operator_cannot_hold(self, client: TestClient):
        cut_id = _cut_id(_create_lot(client))

        response = client.post(
            f"{API}/work-items/{cut_id}/hold", json={"reason": "break"}, headers=CUTTER
        )

        assert response.status_code == 403

    def test_unknown_work_item(self, client: TestClient):
        assert client.get(f"{API}/work-items/{uuid4()}").status_code == 404

    def test_split_and_merge(self, client: TestClient):
        cut_id = _cut_id(_create_lot(client))

        bad = client.post(
            f"{API}/work-items/{cut_id}/split",
            json={"piece_counts": [20, 30]},
            headers=SUPERVISOR,
        )
        assert bad.status_code == 422
        assert bad.json()["type"] == "invariant_violation"

        split = client.post(
            f"{API}/work-items/{cut_id}/split",
            json={"piece_counts": [20, 20, 20]},
            headers=SUPERVISOR,
        )
        assert split.status_code == 200
        children = split.json()["children"]
        assert [c["status"] for c in children] == ["pending"] * 3
        assert len(split.json()["promoted_ids"]) == 3

        merged = client.post(
            f"{API}/work-items/merge",
            json={"work_item_ids": [c["id"] for c in children]},
            headers=SUPERVISOR,
        )
        assert merged.status_code == 200
        assert merged.json()["merged"]["pieces"] == 60


class TestAssignmentRoutes:
    def test_self_assign_and_approve(self, client: TestClient):
        cut_id = _cut_id(_create_lot(client))

        claim = client.post(
            f"{API}/assignments/self-assign", json={"work_item_id": cut_id}, headers=CUTTER
        )
        assert claim.json()["status"] == "self_assigned"

        queue = client.get(f"{API}/assignments/approvals", headers=SUPERVISOR).json()
        assert [i["id"] for i in queue] == [cut_id]

        approved = client.post(
            f"{API}/assignments/approvals/{cut_id}/approve", headers=SUPERVISOR
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "assigned"
        assert approved.json()["assigned_operator_id"] == "op-cut"

    def test_self_assign_reject(self, client: TestClient):
        cut_id = _cut_id(_create_lot(client))
        client.post(f"{API}/assignments/self-assign", json={"work_item_id": cut_id}, headers=CUTTER)

        rejected = client.post(
            f"{API}/assignments/approvals/{cut_id}/reject",
            json={"reason": "needed on another lot"},
            headers=SUPERVISOR,
        )

        assert rejected.json()["status"] == "ready"
        assert rejected.json()["rejection_reason"] == "needed on another lot"

    def test_bulk_confirm(self, client: TestClient):
        cut_a = _cut_id(_create_lot(client, "LOT-A"))
        proposal = client.post(
            f"{API}/assignments/proposals",
            json={"work_item_id": cut_a, "operator_id": "op-cut"},
            headers=SUPERVISOR,
        ).json()
        assert proposal["approval_state"] == "proposed"

        result = client.post(
            f"{API}/assignments/bulk-confirm",
            json={"assignment_ids": [proposal["id"], str(uuid4())]},
            headers=SUPERVISOR,
        )

        assert result.status_code == 200
        outcomes = result.json()["outcomes"]
        assert [o["success"] for o in outcomes] == [True, False]
        assert outcomes[1]["error_type"] == "not_found"

    def test_suggest(self, client: TestClient):
        _create_lot(client)

        response = client.post(f"{API}/assignments/proposals/suggest", json={}, headers=SUPERVISOR)

        assert response.status_code == 200
        assert len(response.json()) == 1
        assert response.json()[0]["method"] == "matcher"


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error_type",
        [
            ErrorType.INVALID_TEMPLATE,
            ErrorType.INVARIANT_VIOLATION,
            ErrorType.INCOMPATIBLE_ASSIGNMENT,
        ],
    )
    def test_rule_violations_map_to_422(self, error_type):
        assert ERROR_STATUS_CODES[error_type] == 422

    def test_every_error_type_has_a_status(self):
        assert set(ERROR_STATUS_CODES) == set(ErrorType)
