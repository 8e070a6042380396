import logging

import pytest
import requests

from vlcremote.config import Settings, load_settings, save_settings
from vlcremote.errors import CommandError, NotConnectedError, describe_error, is_transient
from vlcremote.logging_setup import LOGGER_NAME, setup_logging, setup_logging_from_settings


class TestSettings:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_settings(tmp_path / "nope.json") == Settings()

    def test_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        settings = Settings(poll_interval_s=3.0, search_max_concurrency=2, media_folder_keywords=["anime"])

        save_settings(settings, path)

        assert load_settings(path) == settings

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"seek_step_s": 30, "theme": "dark"}', encoding="utf-8")

        settings = load_settings(path)

        assert settings.seek_step_s == 30
        assert settings.poll_interval_s == 1.5

    def test_corrupt_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        assert load_settings(path) == Settings()


class TestErrors:
    @pytest.mark.parametrize(
        "exc,message",
        [
            (requests.Timeout("read timed out"), "Connection timed out. Is VLC running?"),
            (TimeoutError(), "Connection timed out. Is VLC running?"),
            (requests.ConnectionError("Connection refused"), "VLC not running or Web Interface not enabled"),
            (ConnectionRefusedError(), "VLC not running or Web Interface not enabled"),
            (requests.ConnectionError("No route to host"), "Cannot reach device. Check your network connection."),
            (requests.ConnectionError("Connection reset by peer"), "Connection interrupted. Try again."),
            (requests.ConnectionError("something odd"), "Network error. Check IP address and ensure VLC is running."),
            (ValueError("bad json"), "Cannot reach VLC. Check IP address and network."),
            (NotConnectedError("Not connected"), "Not connected"),
        ],
    )
    def test_describe_error(self, exc, message):
        assert describe_error(exc) == message

    def test_http_status_codes(self):
        unauthorized = requests.Response()
        unauthorized.status_code = 401
        server_error = requests.Response()
        server_error.status_code = 500

        assert describe_error(requests.HTTPError(response=unauthorized)) == (
            "Wrong password. Check VLC Web Interface settings."
        )
        assert describe_error(requests.HTTPError(response=server_error)) == "VLC returned error: 500"

    def test_is_transient(self):
        assert is_transient(requests.Timeout())
        assert is_transient(ConnectionResetError())
        assert not is_transient(ValueError())
        assert not is_transient(CommandError("seek", "rejected"))


class TestLogging:
    def test_setup_logging_with_file(self, tmp_path):
        log_file = tmp_path / "vlcremote.log"

        logger = setup_logging("warning", log_file)
        logging.getLogger(f"{LOGGER_NAME}.search.crawler").debug("listing /data")
        for handler in logger.handlers:
            handler.flush()

        assert logger.name == LOGGER_NAME
        assert len(logger.handlers) == 2
        assert "listing /data" in log_file.read_text(encoding="utf-8")
        setup_logging("INFO")

    def test_setup_logging_replaces_handlers(self):
        setup_logging("DEBUG")
        logger = setup_logging("ERROR")

        assert len(logger.handlers) == 1
        assert logger.level == logging.ERROR

    def test_setup_from_settings(self, tmp_path):
        log_file = tmp_path / "remote.log"

        logger = setup_logging_from_settings(Settings(log_level="DEBUG", log_file=str(log_file)))

        assert any(getattr(h, "baseFilename", None) == str(log_file) for h in logger.handlers)
        setup_logging("INFO")
