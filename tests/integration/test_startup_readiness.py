import pytest
from fastapi.testclient import TestClient

from newsletter.api.http_app import build_app
from newsletter.roles import SUPPORTED_ROLES, validate_role
from newsletter.services.bootstrap import build_runtime_container
from newsletter.settings import DatabaseSettings, EmailClientSettings
from newsletter.workers.runner import WorkerRuntimeSettings


@pytest.mark.integration
@pytest.mark.parametrize("role_name", SUPPORTED_ROLES)
def test_roles_report_ready_with_in_memory_stack(role_name: str) -> None:
    role = validate_role(role_name)
    container = build_runtime_container(
        role,
        database_settings=DatabaseSettings(),
        email_settings=EmailClientSettings(),
    )
    app = build_app(
        role=role.name,
        run_id="integration",
        worker_loop=container.worker_loop,
        worker_runtime_settings=WorkerRuntimeSettings(idle_backoff_ms=5),
        api_deps=container.api_deps,
        on_shutdown=container.on_shutdown,
    )

    with TestClient(app) as client:
        response = client.get("/ready")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["role"] == role_name
    assert payload["worker_loop_enabled"] == (role_name == "worker-deliver")
    assert payload["worker_loop_ready"] is True
    assert payload["worker_metrics"]["errors_total"] == 0
