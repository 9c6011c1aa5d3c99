"""
Unit tests for ServerConfig and the command line overlay.
"""

from pathlib import Path

import pytest

from devserver.config import ServerConfig, MiB
from devserver.__main__ import build_parser, config_from_args


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 4221
        assert config.root_dir == "."
        assert config.uploads_dir == "uploads"
        assert config.cors_origin == "http://127.0.0.1:5500"
        assert config.max_upload_size == 10 * MiB
        assert config.ws_path == "/ws"
        assert config.etag_cache is False

    def test_from_env_empty(self):
        assert ServerConfig.from_env({}) == ServerConfig()

    def test_from_env(self):
        config = ServerConfig.from_env({
            "DEVSERVER_HOST": "0.0.0.0",
            "DEVSERVER_PORT": "8000",
            "DEVSERVER_ROOT": "dist",
            "DEVSERVER_UPLOADS": "incoming",
            "DEVSERVER_CORS_ORIGIN": "http://localhost:3000",
            "DEVSERVER_WORKERS": "3",
            "DEVSERVER_TIMEOUT": "2.5",
            "DEVSERVER_ETAG_CACHE": "Yes",
            "DEVSERVER_LOG_LEVEL": "DEBUG",
            "DEVSERVER_LOG_FORMAT": "json",
        })

        assert config.host == "0.0.0.0"
        assert config.port == 8000
        assert config.root_dir == "dist"
        assert config.uploads_dir == "incoming"
        assert config.cors_origin == "http://localhost:3000"
        assert (config.min_workers, config.max_workers) == (3, 6)
        assert config.timeout == 2.5
        assert config.etag_cache is True
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    @pytest.mark.parametrize("value", ["", "0", "no", "off"])
    def test_etag_cache_off(self, value):
        assert ServerConfig.from_env({"DEVSERVER_ETAG_CACHE": value}).etag_cache is False

    def test_from_env_bad_number(self):
        with pytest.raises(ValueError):
            ServerConfig.from_env({"DEVSERVER_PORT": "http"})

    def test_validate_ok(self, tmp_path: Path):
        ServerConfig(root_dir=str(tmp_path)).validate()

    @pytest.mark.parametrize("overrides,message", [
        ({"port": 70000}, "Invalid port"),
        ({"min_workers": 0}, "min_workers"),
        ({"min_workers": 8, "max_workers": 4}, "max_workers"),
        ({"buffer_size": 10}, "buffer_size"),
        ({"timeout": 0}, "timeout"),
        ({"max_upload_size": 0}, "max_upload_size"),
        ({"max_request_size": MiB}, "max_request_size"),
        ({"index_file": "a/index.html"}, "index_file"),
        ({"ws_path": "ws"}, "ws_path"),
        ({"log_format": "xml"}, "log_format"),
    ])
    def test_validate_rejects(self, tmp_path: Path, overrides, message):
        config = ServerConfig(root_dir=str(tmp_path), **overrides)

        with pytest.raises(ValueError, match=message):
            config.validate()

    def test_validate_missing_root(self, tmp_path: Path):
        with pytest.raises(ValueError, match="root_dir"):
            ServerConfig(root_dir=str(tmp_path / "missing")).validate()


class TestCommandLine:

    def test_no_flags_keeps_base(self):
        base = ServerConfig(port=9000)
        args = build_parser().parse_args([])

        assert config_from_args(args, base) == base

    def test_flags_override(self):
        args = build_parser().parse_args([
            "--host", "0.0.0.0",
            "-p", "8000",
            "--root", "public",
            "--uploads", "up",
            "--cors-origin", "http://localhost:3000",
            "--etag-cache",
            "-w", "2",
            "--log-level", "DEBUG",
            "--log-format", "json",
        ])

        config = config_from_args(args, ServerConfig(port=9000, log_level="ERROR"))

        assert config.host == "0.0.0.0"
        assert config.port == 8000
        assert config.root_dir == "public"
        assert config.uploads_dir == "up"
        assert config.cors_origin == "http://localhost:3000"
        assert config.etag_cache is True
        assert (config.min_workers, config.max_workers) == (2, 4)
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_flags_win_over_env(self, monkeypatch):
        monkeypatch.setenv("DEVSERVER_PORT", "8000")
        monkeypatch.setenv("DEVSERVER_ROOT", "from-env")

        config = config_from_args(build_parser().parse_args(["--port", "9001"]))

        assert config.port == 9001
        assert config.root_dir == "from-env"

    def test_invalid_choice(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-format", "xml"])
