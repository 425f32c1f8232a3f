from __future__ import annotations

from dataclasses import dataclass

API_ROLE = "api"
DELIVERY_WORKER_ROLE = "worker-deliver"

SUPPORTED_ROLES = (
    API_ROLE,
    DELIVERY_WORKER_ROLE,
)


@dataclass(frozen=True)
class RuntimeRole:
    name: str

    @property
    def runs_delivery_worker(self) -> bool:
        return self.name == DELIVERY_WORKER_ROLE


def validate_role(role: str) -> RuntimeRole:
    if role in SUPPORTED_ROLES:
        return RuntimeRole(name=role)

    supported = ", ".join(SUPPORTED_ROLES)
    raise ValueError(
        f"Unsupported role '{role}'. Supported roles: {supported}. "
        "Note: schema migrations are applied externally and are not an app role."
    )
