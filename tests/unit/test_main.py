import pytest

from newsletter.main import run


@pytest.fixture(autouse=True)
def _local_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("EMAIL_BASE_URL", raising=False)


@pytest.mark.unit
def test_cli_returns_non_zero_for_invalid_role(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = run(["--role", "bad-role", "--dry-run-startup"])
    captured = capsys.readouterr()

    assert exit_code == 2
    assert "ERROR:" in captured.err
    assert "Supported roles" in captured.err


@pytest.mark.unit
@pytest.mark.parametrize("role", ["api", "worker-deliver"])
def test_cli_dry_run_succeeds_for_valid_role(role: str) -> None:
    exit_code = run(["--role", role, "--dry-run-startup"])
    assert exit_code == 0


@pytest.mark.unit
def test_cli_rejects_invalid_sender_configuration(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("EMAIL_BASE_URL", "https://mail.newsletter.io")
    monkeypatch.setenv("EMAIL_SENDER", "not-an-email")

    exit_code = run(["--role", "worker-deliver", "--dry-run-startup"])

    assert exit_code == 2
    assert "invalid runtime configuration" in capsys.readouterr().err


@pytest.mark.unit
def test_cli_dry_run_closes_http_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EMAIL_BASE_URL", "https://mail.newsletter.io")
    monkeypatch.setenv("EMAIL_SENDER", "editor@newsletter.io")
    monkeypatch.setenv("EMAIL_AUTHORIZATION_TOKEN", "token")

    assert run(["--role", "worker-deliver", "--dry-run-startup"]) == 0
