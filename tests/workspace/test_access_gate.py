"""可见性判定表：公开直接返回；私有内容对匿名/非成员拒绝，对成员给出跳转。"""

import pytest

from app.packages.workspace.core.exceptions import AccessDenied
from app.packages.workspace.services.access_gate import AccessGate


def _gate(members=()):
    calls = []

    def is_member(project_id, user_id):
        calls.append((project_id, user_id))
        return user_id in members

    return AccessGate(is_member, app_path="/app"), calls


def test_public_content_is_served_without_membership_lookup():
    gate, calls = _gate()
    anonymous = gate.evaluate_node(is_public=True, project_id="P", node_id="N", user_id=None)
    signed_in = gate.evaluate_node(is_public=True, project_id="P", node_id="N", user_id="u1")
    assert anonymous.serve and not anonymous.is_authenticated
    assert signed_in.serve and signed_in.is_authenticated
    assert calls == []


def test_private_content_rejects_anonymous_callers():
    gate, _ = _gate(members=("u1",))
    with pytest.raises(AccessDenied) as exc:
        gate.evaluate_node(is_public=False, project_id="P", node_id="N", user_id=None)
    assert exc.value.status_code == 403


def test_private_content_redirects_members_into_the_app():
    gate, calls = _gate(members=("u1",))
    decision = gate.evaluate_node(is_public=False, project_id="P", node_id="N", user_id="u1")
    assert not decision.serve
    assert decision.redirect_to == "/app?open=N"
    assert decision.is_authenticated
    assert calls == [("P", "u1")]

    workspace = gate.evaluate_workspace(is_public=False, workspace_id="P", user_id="u1")
    assert workspace.redirect_to == "/app?workspace=P"


def test_private_content_rejects_non_members():
    gate, _ = _gate(members=("u1",))
    with pytest.raises(AccessDenied):
        gate.evaluate_workspace(is_public=False, workspace_id="P", user_id="u2")
