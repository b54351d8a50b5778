"""Tests for the command-line entry point with stubbed AWS clients."""
from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

import keyprov_infra.__main__ as cli

ARN = "arn:aws:secretsmanager:us-east-1:123456789012:secret:svc-a-AbCdEf"


@pytest.fixture
def clients(monkeypatch: pytest.MonkeyPatch, tmp_path) -> tuple[MagicMock, MagicMock]:
    monkeypatch.chdir(tmp_path)
    ec2, secretsmanager = MagicMock(), MagicMock()
    ec2.import_key_pair.return_value = {"KeyPairId": "key-0123456789abcdef0", "KeyName": "svc-a"}
    secretsmanager.create_secret.return_value = {"ARN": ARN, "Name": "svc-a"}
    monkeypatch.setattr(cli, "build_clients", lambda config: (ec2, secretsmanager))
    monkeypatch.setattr(cli, "configure_logging", lambda level, fmt: None)
    return ec2, secretsmanager


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def test_parser_defaults() -> None:
    args = cli.build_parser().parse_args(["--name", "svc-a"])
    assert args.bits == 4096
    assert args.dry_run is False


def test_parser_accepts_legacy_flag_names() -> None:
    args = cli.build_parser().parse_args(["--name", "svc-a", "--bitSize", "2048", "--dryrun"])
    assert args.bits == 2048
    assert args.dry_run is True


def test_name_is_required() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2


def test_blank_name_is_usage_error(clients, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--name", " "]) == 2
    assert "invalid" in capsys.readouterr().err


def test_success_prints_identifiers(clients, capsys: pytest.CaptureFixture[str]) -> None:
    ec2, secretsmanager = clients
    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 0

    out = capsys.readouterr().out
    assert "Saved in EC2 key-0123456789abcdef0" in out
    assert f"Saved in Secrets Manager {ARN}" in out
    assert secretsmanager.create_secret.call_args.kwargs["Description"] == "SSH KEY"
    ec2.delete_key_pair.assert_not_called()


def test_dry_run_does_not_store(clients, capsys: pytest.CaptureFixture[str]) -> None:
    ec2, secretsmanager = clients
    ec2.import_key_pair.side_effect = _client_error("DryRunOperation", "ImportKeyPair")

    assert cli.main(["--name", "svc-a", "--bits", "2048", "--dry-run"]) == 0
    assert ec2.import_key_pair.call_args.kwargs["DryRun"] is True
    secretsmanager.create_secret.assert_not_called()
    assert "dry run passed" in capsys.readouterr().out


def test_store_failure_rolls_back_and_exits_1(clients, capsys: pytest.CaptureFixture[str]) -> None:
    ec2, secretsmanager = clients
    secretsmanager.create_secret.side_effect = _client_error("ResourceExistsException", "CreateSecret")

    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 1
    ec2.delete_key_pair.assert_called_once_with(KeyPairId="key-0123456789abcdef0", DryRun=False)
    assert "rolled back" in capsys.readouterr().err


def test_failed_rollback_exits_3_and_names_orphan(clients, capsys: pytest.CaptureFixture[str]) -> None:
    ec2, secretsmanager = clients
    secretsmanager.create_secret.side_effect = _client_error("AccessDeniedException", "CreateSecret")
    ec2.delete_key_pair.side_effect = _client_error("InternalError", "DeleteKeyPair")

    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 3
    err = capsys.readouterr().err
    assert "key-0123456789abcdef0" in err
    assert "orphaned" in err


def test_registry_conflict_exits_1_without_store(clients) -> None:
    ec2, secretsmanager = clients
    ec2.import_key_pair.side_effect = _client_error("InvalidKeyPair.Duplicate", "ImportKeyPair")

    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 1
    secretsmanager.create_secret.assert_not_called()
    ec2.delete_key_pair.assert_not_called()


@pytest.fixture
def no_aws_config(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    empty = tmp_path / "aws-config"
    empty.write_text("", encoding="utf-8")
    for var in ("AWS_REGION", "AWS_DEFAULT_REGION", "AWS_PROFILE", "KEYPROV_AWS_REGION", "KEYPROV_AWS_PROFILE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AWS_CONFIG_FILE", str(empty))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(empty))
    monkeypatch.setenv("AWS_EC2_METADATA_DISABLED", "true")
    monkeypatch.setattr(cli, "configure_logging", lambda level, fmt: None)


def test_missing_region_is_reported_without_traceback(no_aws_config, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 2
    err = capsys.readouterr().err
    assert "cannot create AWS clients" in err
    assert "region" in err


def test_unknown_profile_is_reported_without_traceback(
    no_aws_config, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("KEYPROV_AWS_PROFILE", "does-not-exist")
    monkeypatch.setenv("KEYPROV_AWS_REGION", "us-east-1")
    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 2
    assert "does-not-exist" in capsys.readouterr().err


def test_interrupt_with_failed_rollback_exits_3(clients, capsys: pytest.CaptureFixture[str]) -> None:
    ec2, secretsmanager = clients
    secretsmanager.create_secret.side_effect = KeyboardInterrupt()
    ec2.delete_key_pair.side_effect = _client_error("InternalError", "DeleteKeyPair")

    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 3
    err = capsys.readouterr().err
    assert "interrupted" in err
    assert "key-0123456789abcdef0" in err
    assert "orphaned" in err


def test_interrupt_with_rollback_exits_130(clients, capsys: pytest.CaptureFixture[str]) -> None:
    ec2, secretsmanager = clients
    secretsmanager.create_secret.side_effect = KeyboardInterrupt()

    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 130
    ec2.delete_key_pair.assert_called_once_with(KeyPairId="key-0123456789abcdef0", DryRun=False)
    assert "orphaned" not in capsys.readouterr().err


def test_settings_logged_after_logging_is_configured(
    clients, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG)
    records_at_configure: list[int] = []
    monkeypatch.setattr(
        cli, "configure_logging", lambda level, fmt: records_at_configure.append(len(caplog.records))
    )

    assert cli.main(["--name", "svc-a", "--bits", "2048"]) == 0

    messages = [record.getMessage() for record in caplog.records]
    assert "provisioner_config_loaded" in messages
    assert messages.index("provisioner_config_loaded") >= records_at_configure[0]
