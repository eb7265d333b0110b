"""Tests for the ``load`` command."""

from feature_loader.cli.main import cli


class TestLoadCommand:
    """Loading modules from the command line."""

    def test_load_success(self, invoke):
        result, data = invoke("load", "codec", "--role", "employee")

        assert result.exit_code == 0
        assert data["success"] is True
        report = data["data"]
        assert report["outcomes"] == [{"module_id": "codec", "success": True, "module": "json"}]
        assert report["active_module_id"] == "codec"
        assert report["loading_states"]["codec"]["status"] == "success"
        assert report["retry_stats"]["codec"]["total_attempts"] == 1
        assert report["global_stats"]["success_rate"] == 1.0

    def test_sequential_loads_switch_active_module(self, invoke):
        _, data = invoke("load", "codec", "reports", "--role", "admin")

        report = data["data"]
        assert [o["success"] for o in report["outcomes"]] == [True, True]
        assert report["active_module_id"] == "reports"
        assert report["loading_states"]["codec"]["status"] == "idle"

    def test_permission_denied(self, invoke):
        result, data = invoke("load", "reports", "--role", "cashier")

        assert result.exit_code == 1
        assert data["success"] is False
        assert data["data"]["error_code"] == "OPERATION_FAILED"
        outcome = data["data"]["outcomes"][0]
        assert outcome["error"]["data"]["error_code"] == "FORBIDDEN"
        assert "requires Manager access" in outcome["error"]["error"]
        assert data["data"]["retry_stats"]["reports"]["total_attempts"] == 0

    def test_broken_module_is_not_retried(self, invoke):
        result, data = invoke("load", "ghost", "--role", "admin")

        assert result.exit_code == 1
        outcome = data["data"]["outcomes"][0]
        assert outcome["error"]["data"]["error_code"] == "MODULE_ERROR"
        assert outcome["error"]["data"]["retryable"] is False
        assert data["data"]["retry_stats"]["ghost"]["total_attempts"] == 1
        assert data["data"]["loading_states"]["ghost"]["status"] == "error"

    def test_partial_failure_reports_every_outcome(self, invoke):
        result, data = invoke("load", "codec", "ghost", "--role", "admin")

        assert result.exit_code == 1
        assert data["error"] == "1 of 2 module load(s) failed"
        assert [o["success"] for o in data["data"]["outcomes"]] == [True, False]
        assert data["data"]["active_module_id"] == "codec"

    def test_unknown_module(self, invoke):
        result, data = invoke("load", "payroll", "--role", "admin")

        assert result.exit_code == 1
        assert data["data"]["error_code"] == "MODULE_NOT_FOUND"
        assert data["data"]["error_type"] == "not_found"
        assert data["data"]["details"] == {"module_ids": ["payroll"]}

    def test_role_is_required(self, cli_runner, config_file):
        result = cli_runner.invoke(cli, ["--config", str(config_file), "load", "codec"])
        assert result.exit_code != 0

    def test_unknown_role_rejected(self, cli_runner, config_file):
        result = cli_runner.invoke(
            cli, ["--config", str(config_file), "load", "codec", "--role", "owner"]
        )
        assert result.exit_code != 0
