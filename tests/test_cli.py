"""
Tests for the ghupgrade command line.
"""

import pytest

from ghupgrade import cli
from ghupgrade.exceptions import TransportError
from ghupgrade.upgrade.interfaces import DownloadResult, ReleaseRecord

pytestmark = [pytest.mark.unit, pytest.mark.user_interface]

RECORD = ReleaseRecord(
    "blog",
    "1.4.0",
    "https://github.com/acme/blog/releases/download/v1.4.0/blog.zip",
    "https://api.github.com/repos/acme/blog/releases/assets/1",
    {"1.4.0": ["", "Fix login"]},
)


@pytest.fixture
def mock_logger(mocker):
    return mocker.patch("ghupgrade.log_utils.logger")


@pytest.fixture
def mock_manager(mocker):
    manager_class = mocker.patch("ghupgrade.cli.UpgradeManager")
    return manager_class.return_value


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "ghupgrade.yaml"
    path.write_text("REPOSITORIES:\n  blog: acme/blog\n")
    return str(path)


def _logged(mock_logger, level="info"):
    return [call.args[0] for call in getattr(mock_logger, level).call_args_list]


class TestVersionAndHelp:
    def test_version(self, mock_logger, mocker):
        mocker.patch("ghupgrade.cli.get_version", return_value="0.1.0")
        cli.main(["version"])
        assert "ghupgrade v0.1.0" in _logged(mock_logger)

    def test_no_command_prints_help(self, capsys, mock_manager):
        cli.main([])
        assert "usage: ghupgrade" in capsys.readouterr().out

    def test_cache_requires_subcommand(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["cache"])
        assert exc_info.value.code == 2


class TestCheckAndList:
    def test_check_logs_records(self, mock_logger, mock_manager, config_file):
        mock_manager.check_for_updates.return_value = [RECORD]

        cli.main(["--config", config_file, "check"])

        logged = _logged(mock_logger)
        assert "blog 1.4.0" in logged
        assert "  - Fix login" in logged
        mock_manager.close.assert_called_once()

    def test_check_without_results(self, mock_logger, mock_manager, config_file):
        mock_manager.check_for_updates.return_value = []
        cli.main(["--config", config_file, "check"])
        assert "No module releases found." in _logged(mock_logger)

    def test_check_transport_error_exits(self, mock_logger, mock_manager, config_file):
        mock_manager.check_for_updates.side_effect = TransportError("https://x", 111)

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", config_file, "check"])

        assert exc_info.value.code == 1
        mock_manager.close.assert_called_once()

    def test_list_reads_snapshot(self, mock_logger, mock_manager, config_file):
        mock_manager.read_snapshot.return_value = [RECORD]

        cli.main(["--config", config_file, "list"])

        mock_manager.check_for_updates.assert_not_called()
        assert "blog 1.4.0" in _logged(mock_logger)

    def test_manager_built_from_loaded_config(self, mocker, mock_logger, config_file):
        manager_class = mocker.patch("ghupgrade.cli.UpgradeManager")
        manager_class.return_value.read_snapshot.return_value = []

        cli.main(["--config", config_file, "list"])

        config = manager_class.call_args[0][0]
        assert config["REPOSITORIES"] == {"blog": "acme/blog"}


class TestDownload:
    def test_success(self, mock_logger, mock_manager, config_file):
        mock_manager.download.return_value = DownloadResult(success=True, module_name="blog")

        cli.main(["--config", config_file, "download", "blog"])

        mock_manager.download.assert_called_once_with("blog")

    def test_skipped_is_not_an_error(self, mock_logger, mock_manager, config_file):
        mock_manager.download.return_value = DownloadResult(
            success=True, module_name="shop", was_skipped=True
        )

        cli.main(["--config", config_file, "download", "shop"])

        assert any("not in the last listing" in m for m in _logged(mock_logger))

    def test_failure_exits_with_one(self, mock_logger, mock_manager, config_file):
        mock_manager.download.return_value = DownloadResult(
            success=False,
            module_name="blog",
            error_message="Both archive and asset URLs returned no content",
            error_type="download",
        )

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", config_file, "download", "blog"])

        assert exc_info.value.code == 1
        assert any("failed (download)" in m for m in _logged(mock_logger, "error"))

    def test_debug_transport_error_exits(self, mock_logger, mock_manager, config_file):
        mock_manager.download.side_effect = TransportError("https://x", "ConnectionError")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", config_file, "download", "blog"])

        assert exc_info.value.code == 1


class TestCache:
    def test_clear(self, mock_logger, mock_manager, config_file):
        mock_manager.clear_cache.return_value = True
        cli.main(["--config", config_file, "cache", "clear"])
        assert "Caches cleared." in _logged(mock_logger)

    def test_clear_failure(self, mock_logger, mock_manager, config_file):
        mock_manager.clear_cache.return_value = False
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", config_file, "cache", "clear"])
        assert exc_info.value.code == 1


class TestConfigurationHandling:
    def test_invalid_config_exits(self, tmp_path, mock_logger, mock_manager):
        path = tmp_path / "bad.yaml"
        path.write_text("- not\n- a mapping\n")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(path), "check"])

        assert exc_info.value.code == 1
        mock_manager.check_for_updates.assert_not_called()

    def test_cli_log_level(self, mocker, mock_manager, config_file):
        set_level = mocker.patch("ghupgrade.log_utils.set_log_level")
        mock_manager.read_snapshot.return_value = []

        cli.main(["--log-level", "DEBUG", "--config", config_file, "list"])

        set_level.assert_called_once_with("DEBUG")

    def test_configured_log_level_and_dir(self, tmp_path, mocker, mock_manager):
        set_level = mocker.patch("ghupgrade.log_utils.set_log_level")
        add_file = mocker.patch("ghupgrade.log_utils.add_file_logging")
        mock_manager.read_snapshot.return_value = []
        path = tmp_path / "ghupgrade.yaml"
        path.write_text(f"LOG_LEVEL: WARNING\nLOG_DIR: {tmp_path / 'logs'}\n")

        cli.main(["--config", str(path), "list"])

        set_level.assert_called_once_with("WARNING")
        add_file.assert_called_once_with(tmp_path / "logs", "WARNING")
