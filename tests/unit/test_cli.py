"""
Unit Tests for CLI
==================

Tests for argument parsing, request building and exit codes.
"""

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from screenshot_api import cli


class TestBuildRequest:
    """Test cases for build_request."""

    def test_minimal(self):
        args = cli.create_parser().parse_args(
            ["submit", "--url", "https://example.com", "--callback", "https://h.example.com"]
        )

        assert cli.build_request(args) == {
            "targetUrl": "https://example.com",
            "callbackUrl": "https://h.example.com",
        }

    def test_with_options(self):
        args = cli.create_parser().parse_args(
            [
                "submit",
                "--url",
                "https://example.com",
                "--callback",
                "https://h.example.com",
                "--format",
                "jpeg",
                "--quality",
                "70",
                "--width",
                "1280",
                "--no-full-page",
            ]
        )

        assert cli.build_request(args)["options"] == {
            "viewport": {"width": 1280},
            "fullPage": False,
            "format": "jpeg",
            "quality": 70,
        }

    def test_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(
                ["submit", "--url", "u", "--callback", "c", "--format", "gif"]
            )


class TestMain:
    """Test cases for main."""

    def test_submit_success(self, capsys):
        response = (202, {"success": True, "jobId": "job-1"})
        with patch.object(cli, "submit_job", AsyncMock(return_value=response)) as submit:
            code = cli.main(
                [
                    "--api",
                    "http://api.local/",
                    "submit",
                    "--url",
                    "https://example.com",
                    "--callback",
                    "https://h.example.com",
                ]
            )

        assert code == 0
        assert submit.await_args.args[0] == "http://api.local"
        assert '"jobId": "job-1"' in capsys.readouterr().out

    def test_status_not_found(self):
        response = (404, {"success": False, "error": {"code": "JOB_NOT_FOUND"}})
        with patch.object(cli, "fetch_status", AsyncMock(return_value=response)) as fetch:
            code = cli.main(["status", "job-1", "--wait", "--interval", "0.5"])

        assert code == 1
        fetch.assert_awaited_once_with("http://localhost:3000", "job-1", True, 0.5)

    def test_unreachable_api(self, capsys):
        error = aiohttp.ClientConnectionError("refused")
        with patch.object(cli, "fetch_status", AsyncMock(side_effect=error)):
            code = cli.main(["status", "job-1"])

        assert code == 2
        assert "cannot reach" in capsys.readouterr().err

    def test_serve(self):
        with patch("screenshot_api.api.main.run_server") as run_server:
            assert cli.main(["serve"]) == 0
        run_server.assert_called_once_with()
