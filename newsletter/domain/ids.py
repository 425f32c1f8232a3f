from __future__ import annotations

import importlib

ulid_module = importlib.import_module("ulid")


def new_issue_public_id() -> str:
    return f"iss_{ulid_module.new().str}"
