"""Tests for app.scripts.serve: uvicorn is started with the configured bind address."""

import unittest
from unittest.mock import patch

from app.scripts import serve

from support import make_settings


class TestServe(unittest.TestCase):
    def test_runs_uvicorn_with_settings(self) -> None:
        settings = make_settings(HOST="0.0.0.0", PORT=9090, LOG_LEVEL="warning")
        with patch.object(serve, "get_settings", return_value=settings), patch.object(
            serve.uvicorn, "run"
        ) as run, patch("sys.argv", ["stackwatch-serve"]):
            serve.main()
        run.assert_called_once_with("app.main:app", host="0.0.0.0", port=9090, log_level="warning", reload=False)

    def test_reload_flag(self) -> None:
        with patch.object(serve, "get_settings", return_value=make_settings()), patch.object(
            serve.uvicorn, "run"
        ) as run, patch("sys.argv", ["stackwatch-serve", "--reload"]):
            serve.main()
        self.assertTrue(run.call_args.kwargs["reload"])

    def test_port_out_of_range_rejected(self) -> None:
        with self.assertRaises(ValueError):
            make_settings(PORT=70000)


if __name__ == "__main__":
    unittest.main()
