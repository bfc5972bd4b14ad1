"""Tests for the exporter entry point -- argument handling and wiring."""

import contextlib
import io
import json
import os
import tempfile
import unittest
from unittest import mock

from prometheus_client import generate_latest
from prometheus_client.core import GaugeMetricFamily

import exporter
from collectors.bbk import BBKCollector
from collectors.config import DEFAULTS, load_config
from collectors.speedtest import SpeedtestCollector


class StaticCollector:
    def __init__(self, up):
        self.up = up

    def describe(self):
        yield GaugeMetricFamily("static_up", "Static collector health")

    def collect(self):
        yield GaugeMetricFamily("static_up", "Static collector health", value=self.up)


class TestArgs(unittest.TestCase):
    def test_no_flags_keep_config(self):
        config = dict(DEFAULTS, port=9100)
        merged = exporter.merge_args(config, exporter.parse_args([]))
        self.assertEqual(merged, config)

    def test_flags_override_config(self):
        args = exporter.parse_args([
            "--port", "9200",
            "--backend", "all",
            "--server-id", "5001",
            "--server-fallback",
            "--bbk-binary", "/opt/bbk_cli",
            "--log-level", "debug",
        ])
        merged = exporter.merge_args(dict(DEFAULTS), args)
        self.assertEqual(merged["port"], 9200)
        self.assertEqual(merged["backend"], "all")
        self.assertEqual(merged["server_id"], 5001)
        self.assertTrue(merged["server_fallback"])
        self.assertEqual(merged["bbk_binary"], "/opt/bbk_cli")
        self.assertEqual(merged["log_level"], "DEBUG")

    def test_no_server_fallback_overrides_config(self):
        config = dict(DEFAULTS, server_fallback=True)
        merged = exporter.merge_args(config, exporter.parse_args(["--no-server-fallback"]))
        self.assertIs(merged["server_fallback"], False)
        self.assertIs(exporter.merge_args(config, exporter.parse_args([]))["server_fallback"], True)

    def test_unknown_backend_rejected(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                exporter.parse_args(["--backend", "iperf"])


class TestWiring(unittest.TestCase):
    def test_backend_selection(self):
        cases = {
            "speedtest": [SpeedtestCollector],
            "bbk": [BBKCollector],
            "all": [SpeedtestCollector, BBKCollector],
        }
        for backend, expected in cases.items():
            with self.subTest(backend=backend):
                collectors = exporter.build_collectors(dict(DEFAULTS, backend=backend))
                self.assertEqual([type(c) for c in collectors], expected)

    def test_collector_settings(self):
        config = dict(DEFAULTS, backend="all", server_id=5001, server_fallback=True,
                      bbk_binary="/opt/bbk_cli", ping_count=3)
        speedtest, bbk = exporter.build_collectors(config)
        self.assertEqual(speedtest.runner.server_id, 5001)
        self.assertTrue(speedtest.runner.server_fallback)
        self.assertEqual(speedtest.runner.provider.ping_count, 3)
        self.assertEqual(bbk.runner.binary_path, "/opt/bbk_cli")

    def test_registry_exposes_collectors(self):
        registry = exporter.build_registry([StaticCollector(1.0)])
        text = generate_latest(registry).decode()
        self.assertIn("static_up 1.0", text)
        self.assertIn("python_info", text)


class TestRunOnce(unittest.TestCase):
    def _run(self, collectors):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = exporter.run_once(collectors, json_output=True)
        return code, json.loads(out.getvalue())

    def test_all_up(self):
        code, data = self._run([StaticCollector(1.0)])
        self.assertEqual(code, 0)
        self.assertTrue(data["up"])

    def test_table_mode_prints_header(self):
        with mock.patch("exporter.print_header") as header, \
                mock.patch("exporter.print_samples") as samples:
            code = exporter.run_once([StaticCollector(1.0)])
        self.assertEqual(code, 0)
        header.assert_called_once_with()
        self.assertEqual(samples.call_args.args[0][0]["name"], "static_up")

    def test_json_mode_has_no_header(self):
        with mock.patch("exporter.print_header") as header:
            self._run([StaticCollector(1.0)])
        header.assert_not_called()

    def test_any_down(self):
        code, data = self._run([StaticCollector(1.0), StaticCollector(0.0)])
        self.assertEqual(code, 1)
        self.assertFalse(data["up"])
        self.assertEqual(len(data["samples"]), 2)


class TestMain(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = os.path.join(self.tmp.name, "config.json")

    def test_invalid_config_exits(self):
        with mock.patch("exporter.console"):
            with self.assertRaises(SystemExit) as ctx:
                exporter.main(["--config", self.path, "--port", "0"])
        self.assertEqual(ctx.exception.code, 1)

    def test_write_config(self):
        with mock.patch("exporter.console"), mock.patch("exporter.configure_logging"):
            exporter.main(["--config", self.path, "--write-config", "--backend", "bbk"])
        self.assertEqual(load_config(self.path)["backend"], "bbk")

    def test_once_exits_with_collection_status(self):
        with mock.patch("exporter.configure_logging"), \
                mock.patch("exporter.build_collectors", return_value=[StaticCollector(0.0)]), \
                mock.patch("exporter.print_samples"), \
                mock.patch("exporter.print_header"):
            with self.assertRaises(SystemExit) as ctx:
                exporter.main(["--config", self.path, "--once"])
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
