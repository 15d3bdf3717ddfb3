"""Tests for the command-line entry point."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from intune_remover import cli
from intune_remover.api.exceptions import InvalidCredentialsError, ValidationError
from intune_remover.config import ConnectionInfo, Settings
from intune_remover.removal.domain.entities import (
    BatchResult,
    DeviceRecord,
    RecordStatus,
    RegistryType,
)


@pytest.fixture
def conn_file(tmp_path):
    path = tmp_path / "conn.json"
    path.write_text(json.dumps({
        "tenant": "contoso.onmicrosoft.com",
        "clientId": "client",
        "clientSecret": "secret",
        "objectId": "object",
        "clientSecretId": "key",
    }))
    return path


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in ("REMOVER_MAX_CONCURRENCY", "REMOVER_REQUEST_TIMEOUT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REMOVER_OUTPUT_DIR", str(tmp_path / "results"))
    return monkeypatch


def batch(*records, dry_run=False):
    return BatchResult(records=list(records), dry_run=dry_run, serial_count=len(records))


# ============================================
# Argument Parsing
# ============================================

class TestParser:

    def test_defaults(self):
        args = cli.build_parser().parse_args(["--serial", "SN1"])

        assert args.serial == ["SN1"]
        assert args.column == "Serial Number"
        assert not args.dry_run
        assert args.concurrency is None

    def test_dry_alias_and_repeated_serials(self):
        args = cli.build_parser().parse_args(["--dry", "--serial", "A", "--serial", "B"])

        assert args.dry_run
        assert args.serial == ["A", "B"]

    def test_no_serial_source_is_usage_error(self, env):
        with pytest.raises(SystemExit) as exc:
            cli.main([])
        assert exc.value.code == 2

    def test_bad_concurrency_is_usage_error(self, env):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--serial", "SN1", "--concurrency", "0"])
        assert exc.value.code == 2


# ============================================
# Removal Runs
# ============================================

class TestRemovalRun:

    def test_writes_results_and_exits_zero(self, env, conn_file, tmp_path, capsys):
        result = batch(
            DeviceRecord("SN1", RegistryType.INTUNE, RecordStatus.DRY_RUN, id="i-1"),
            dry_run=True,
        )

        with patch.object(cli, "run_batch", AsyncMock(return_value=result)) as run_batch:
            code = cli.main([
                "--connection", str(conn_file),
                "--serial", "SN1",
                "--dry-run",
                "--concurrency", "3",
            ])

        assert code == 0
        args, kwargs = run_batch.call_args
        assert args[0] == ["SN1"]
        assert args[1].tenant == "contoso.onmicrosoft.com"
        assert args[2] is True
        assert kwargs["settings"].max_concurrency == 3

        written = list((tmp_path / "results").glob("dryrun_results_*.csv"))
        assert len(written) == 1
        out = capsys.readouterr().out
        assert "REMOVAL COMPLETE (DRY RUN)" in out
        assert str(written[0]) in out

    def test_serials_from_file_then_flags(self, env, conn_file, tmp_path):
        serial_file = tmp_path / "devices.csv"
        serial_file.write_text("Serial Number\nSN1\nSN2\n")
        result = batch(DeviceRecord("SN1", RegistryType.INTUNE, RecordStatus.MISSING))

        with patch.object(cli, "run_batch", AsyncMock(return_value=result)) as run_batch:
            code = cli.main([
                "--connection", str(conn_file),
                "--input", str(serial_file),
                "--serial", "SN3",
                "--output", str(tmp_path / "custom"),
            ])

        assert code == 0
        assert run_batch.call_args.args[0] == ["SN1", "SN2", "SN3"]
        assert list((tmp_path / "custom").glob("results_*.csv"))

    def test_auth_failure_exits_one(self, env, conn_file, capsys):
        failing = AsyncMock(side_effect=InvalidCredentialsError("AADSTS7000215: bad secret"))

        with patch.object(cli, "run_batch", failing):
            code = cli.main(["--connection", str(conn_file), "--serial", "SN1"])

        assert code == 1
        assert "AADSTS7000215: bad secret" in capsys.readouterr().out

    def test_missing_connection_file_exits_one(self, env, tmp_path):
        code = cli.main(["--connection", str(tmp_path / "missing.json"), "--serial", "SN1"])
        assert code == 1

    def test_missing_column_exits_one(self, env, conn_file, tmp_path):
        serial_file = tmp_path / "devices.csv"
        serial_file.write_text("Serial\nSN1\n")

        code = cli.main(["--connection", str(conn_file), "--input", str(serial_file)])

        assert code == 1

    def test_bad_settings_exit_one(self, env, conn_file):
        env.setenv("REMOVER_MAX_CONCURRENCY", "many")
        code = cli.main(["--connection", str(conn_file), "--serial", "SN1"])
        assert code == 1


# ============================================
# Secret Check
# ============================================

class TestCheckSecret:

    def test_dispatches_secret_check(self, env, conn_file):
        with patch.object(cli, "check_secret", AsyncMock(return_value=0)) as check:
            code = cli.main(["--connection", str(conn_file), "--check-secret"])

        assert code == 0
        connection = check.call_args.args[0]
        assert connection.object_id == "object"
        assert connection.client_secret_id == "key"

    @pytest.mark.asyncio
    async def test_requires_object_and_key_ids(self):
        connection = ConnectionInfo(tenant="t", client_id="c", client_secret="s")

        with pytest.raises(ValidationError):
            await cli.check_secret(connection, Settings())

    @pytest.mark.asyncio
    async def test_prints_days_left(self, env, capsys):
        connection = ConnectionInfo(
            tenant="t", client_id="c", client_secret="s",
            object_id="object", client_secret_id="key",
        )
        token_manager = AsyncMock()
        token_manager.get_token.return_value = "token"
        client = AsyncMock()
        client.__aenter__.return_value = client

        with patch.object(cli, "TokenManager", return_value=token_manager), \
             patch.object(cli, "GraphClient", return_value=client), \
             patch.object(cli, "days_until_secret_expiry", AsyncMock(return_value=42)) as days:
            code = await cli.check_secret(connection, Settings())

        assert code == 0
        days.assert_awaited_once_with(client, "object", "key")
        assert "expires in 42 day(s)" in capsys.readouterr().out
