"""Tests for collectors.bbk -- runner error handling and collector output."""

import subprocess
import sys
import time
import unittest
from unittest import mock

from collectors.bbk import COMMAND_TIMEOUT, BBKCollector, BBKRunner
from collectors.errors import (
    EmptyOutput,
    MeasurementTimeout,
    NonZeroExit,
    ParseError,
    ParseFailure,
    StartFailure,
)


def _completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=["bbk_cli"], returncode=returncode, stdout=stdout, stderr=stderr)


def _by_name(families):
    """Map metric name -> list of (labels, value)."""
    out = {}
    for family in families:
        for sample in family.samples:
            out.setdefault(sample.name, []).append((sample.labels, sample.value))
    return out


class TestBBKRunner(unittest.TestCase):
    def test_command(self):
        self.assertEqual(BBKRunner("/opt/bbk_cli").command(), ["/opt/bbk_cli", "--quiet", "--ssl"])

    def test_default_timeout(self):
        self.assertEqual(COMMAND_TIMEOUT, 120.0)
        self.assertEqual(BBKRunner("bbk_cli").timeout, 120.0)

    @mock.patch("collectors.bbk.subprocess.run")
    def test_success_uses_last_line(self, run):
        run.return_value = _completed("Start: progress\n10 5 3 old old\n150.5 20.3 12.8 srv01 ExampleISP\n\n")
        result = BBKRunner("bbk_cli").run()
        self.assertEqual(result.server, "srv01")
        self.assertEqual(result.download_mbps, 150.5)

        args, kwargs = run.call_args
        self.assertEqual(args[0], ["bbk_cli", "--quiet", "--ssl"])
        self.assertEqual(kwargs["timeout"], 120.0)

    @mock.patch("collectors.bbk.subprocess.run")
    def test_timeout(self, run):
        run.side_effect = subprocess.TimeoutExpired(cmd="bbk_cli", timeout=120.0)
        with self.assertRaises(MeasurementTimeout):
            BBKRunner("bbk_cli").run()

    @mock.patch("collectors.bbk.subprocess.run")
    def test_start_failure(self, run):
        run.side_effect = PermissionError("permission denied")
        with self.assertRaises(StartFailure):
            BBKRunner("bbk_cli").run()

    @mock.patch("collectors.bbk.subprocess.run")
    def test_non_zero_exit(self, run):
        run.return_value = _completed("", "network unreachable\n", returncode=2)
        with self.assertRaises(NonZeroExit) as ctx:
            BBKRunner("bbk_cli").run()
        self.assertEqual(ctx.exception.returncode, 2)
        self.assertIn("network unreachable", str(ctx.exception))

    @mock.patch("collectors.bbk.subprocess.run")
    def test_empty_output(self, run):
        run.return_value = _completed("\n  \n")
        with self.assertRaises(EmptyOutput):
            BBKRunner("bbk_cli").run()

    @mock.patch("collectors.bbk.subprocess.run")
    def test_parse_failure_is_chained(self, run):
        run.return_value = _completed("abc 20.3 12.8 srv01 ExampleISP\n")
        with self.assertRaises(ParseFailure) as ctx:
            BBKRunner("bbk_cli").run()
        self.assertIsInstance(ctx.exception.__cause__, ParseError)
        self.assertEqual(ctx.exception.__cause__.field, "download")

    def test_missing_binary_real(self):
        with self.assertRaises(StartFailure):
            BBKRunner("/nonexistent/path/to/bbk_cli").run()

    def test_real_process_exit_status(self):
        runner = BBKRunner(sys.executable)
        runner.command = lambda: [sys.executable, "-c", "import sys; sys.exit(3)"]
        with self.assertRaises(NonZeroExit) as ctx:
            runner.run()
        self.assertEqual(ctx.exception.returncode, 3)

    def test_real_process_output(self):
        runner = BBKRunner(sys.executable)
        runner.command = lambda: [
            sys.executable, "-c", "print('working...'); print('12.5 3.5 9 srvA ispB t1 m1')",
        ]
        result = runner.run()
        self.assertEqual(result.download_mbps, 12.5)
        self.assertEqual(result.ticket, "t1")

    def test_real_process_invalid_utf8(self):
        runner = BBKRunner(sys.executable)
        runner.command = lambda: [
            sys.executable, "-c",
            "import sys; sys.stdout.buffer.write(b'150.5 20.3 12.8 G\\xf6teborg ExampleISP\\n')",
        ]
        result = runner.run()
        self.assertEqual(result.download_mbps, 150.5)
        self.assertEqual(result.server, "G\ufffdteborg")
        self.assertEqual(result.isp, "ExampleISP")


class TestBBKCollector(unittest.TestCase):
    def _collector(self, stdout="", returncode=0, side_effect=None):
        patcher = mock.patch("collectors.bbk.subprocess.run")
        run = patcher.start()
        self.addCleanup(patcher.stop)
        if side_effect is not None:
            run.side_effect = side_effect
        else:
            run.return_value = _completed(stdout, returncode=returncode)
        return BBKCollector("bbk_cli"), run

    def test_successful_measurement(self):
        collector, _ = self._collector("150.5 20.3 12.8 srv01 ExampleISP\n")
        metrics = _by_name(collector.collect())
        labels = {"server": "srv01", "isp": "ExampleISP"}

        self.assertEqual(metrics["bbk_download_speed_Bps"], [(labels, 18_812_500.0)])
        self.assertEqual(metrics["bbk_upload_speed_Bps"][0][0], labels)
        self.assertAlmostEqual(metrics["bbk_upload_speed_Bps"][0][1], 2_537_500.0)
        self.assertAlmostEqual(metrics["bbk_latency_seconds"][0][1], 0.0128)
        self.assertEqual(metrics["bbk_up"], [({}, 1.0)])
        self.assertEqual(len(metrics["bbk_scrape_duration_seconds"]), 1)

    def test_invalid_output_reports_down(self):
        collector, _ = self._collector("abc 20.3 12.8 srv01 ExampleISP\n")
        metrics = _by_name(collector.collect())
        self.assertEqual(metrics["bbk_up"], [({}, 0.0)])
        self.assertEqual(len(metrics["bbk_scrape_duration_seconds"]), 1)
        for name in ("bbk_download_speed_Bps", "bbk_upload_speed_Bps", "bbk_latency_seconds"):
            self.assertNotIn(name, metrics)

    def test_failures_always_emit_up_and_duration(self):
        failures = [
            dict(side_effect=subprocess.TimeoutExpired(cmd="bbk_cli", timeout=120)),
            dict(side_effect=FileNotFoundError("bbk_cli")),
            dict(stdout="", returncode=1),
            dict(stdout=""),
            dict(stdout="1 2 3\n"),
        ]
        for kwargs in failures:
            with self.subTest(kwargs=kwargs):
                collector, _ = self._collector(**kwargs)
                families = list(collector.collect())
                self.assertEqual([f.name for f in families], ["bbk_up", "bbk_scrape_duration_seconds"])
                self.assertEqual(families[0].samples[0].value, 0.0)

    def test_emission_order(self):
        collector, _ = self._collector("1 2 3 s i\n")
        names = [f.name for f in collector.collect()]
        self.assertEqual(
            names,
            [
                "bbk_download_speed_Bps",
                "bbk_upload_speed_Bps",
                "bbk_latency_seconds",
                "bbk_up",
                "bbk_scrape_duration_seconds",
            ],
        )

    def test_describe_has_no_side_effects(self):
        collector, run = self._collector("1 2 3 s i\n")
        first = [f.name for f in collector.describe()]
        second = [f.name for f in collector.describe()]
        self.assertEqual(first, second)
        self.assertEqual(len(first), 5)
        run.assert_not_called()

    def test_each_collect_runs_a_fresh_measurement(self):
        collector, run = self._collector("1 2 3 s i\n")
        list(collector.collect())
        list(collector.collect())
        self.assertEqual(run.call_count, 2)

    def test_timeout_kills_process(self):
        collector = BBKCollector(sys.executable, timeout=0.5)
        collector.runner.command = lambda: [sys.executable, "-c", "import time; time.sleep(30)"]

        t0 = time.perf_counter()
        metrics = _by_name(collector.collect())
        elapsed = time.perf_counter() - t0

        self.assertLess(elapsed, 10.0)
        self.assertEqual(metrics["bbk_up"], [({}, 0.0)])
        duration = metrics["bbk_scrape_duration_seconds"][0][1]
        self.assertGreaterEqual(duration, 0.5)
        self.assertLess(duration, 10.0)
        self.assertNotIn("bbk_download_speed_Bps", metrics)

    def test_invalid_utf8_still_reports(self):
        collector = BBKCollector(sys.executable)
        collector.runner.command = lambda: [
            sys.executable, "-c",
            "import sys; sys.stdout.buffer.write(b'150.5 20.3 12.8 G\\xf6teborg ExampleISP\\n')",
        ]
        metrics = _by_name(collector.collect())
        self.assertEqual(metrics["bbk_up"], [({}, 1.0)])
        self.assertEqual(metrics["bbk_download_speed_Bps"][0][0]["server"], "G�teborg")
        self.assertEqual(len(metrics["bbk_scrape_duration_seconds"]), 1)

    def test_registers_with_prometheus_registry(self):
        from prometheus_client import CollectorRegistry, generate_latest

        collector, run = self._collector("150.5 20.3 12.8 srv01 ExampleISP\n")
        registry = CollectorRegistry()
        registry.register(collector)
        run.assert_not_called()

        text = generate_latest(registry).decode()
        line = next(l for l in text.splitlines() if l.startswith("bbk_download_speed_Bps{"))
        self.assertIn('server="srv01"', line)
        self.assertIn('isp="ExampleISP"', line)
        self.assertTrue(line.endswith(" 1.88125e+07"))
        self.assertIn("bbk_up 1.0", text)


if __name__ == "__main__":
    unittest.main()
