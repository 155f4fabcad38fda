from __future__ import annotations

from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
import io
import json
import os
import tempfile
import textwrap
import unittest
from unittest.mock import patch

from core.command_runner import RecordingCommandRunner
from bundlex import cli


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.workspace = Path(self.temp_dir.name).resolve()
        (self.workspace / "deps" / "demo").mkdir(parents=True)
        (self.workspace / "deps" / "demo" / "bundlex.toml").write_text(
            textwrap.dedent(
                """
                [project]

                [[project.natives]]
                name = "example"
                interface = ["nif", "port"]
                sources = ["example.c"]
                os_deps = { zlib = "pkg_config" }
                """
            )
        )
        (self.workspace / "bundlex-settings.toml").write_text(
            textwrap.dedent(
                """
                [global]
                target = "x86_64-unknown-linux-gnu"
                """
            )
        )
        self.previous_cwd = Path.cwd()
        os.chdir(self.workspace)

    def tearDown(self) -> None:
        os.chdir(self.previous_cwd)
        self.temp_dir.cleanup()

    def _run(self, argv: list[str], runner: RecordingCommandRunner | None = None) -> tuple[int, str]:
        runner = runner or RecordingCommandRunner(responses={"pkg-config --libs zlib": (0, "-lz")})
        buffer = io.StringIO()
        with patch("bundlex.planner.SubprocessCommandRunner", return_value=runner), redirect_stdout(
            buffer
        ), redirect_stderr(io.StringIO()):
            exit_code = cli.main(argv)
        return exit_code, buffer.getvalue()

    def test_target_command(self) -> None:
        exit_code, output = self._run(["target"])

        self.assertEqual(exit_code, 0)
        self.assertIn("triplet: x86_64-unknown-linux-gnu", output)
        self.assertIn("platform: linux", output)
        self.assertIn("abi: gnu", output)

    def test_plan_command_prints_json(self) -> None:
        exit_code, output = self._run(["plan", "demo"])

        self.assertEqual(exit_code, 0)
        plans = json.loads(output)
        self.assertEqual([plan["interface"] for plan in plans], ["nif", "port"])
        self.assertEqual(plans[0]["libs"], ["z"])
        self.assertTrue(plans[0]["output_path"].endswith(os.path.join("demo", "nif", "example.so")))

    def test_plan_single_unit(self) -> None:
        exit_code, output = self._run(["plan", "demo", "--unit", "example", "--interface", "port"])

        self.assertEqual(exit_code, 0)
        (plan,) = json.loads(output)
        self.assertEqual(plan["interface"], "port")

    def test_unknown_unit(self) -> None:
        exit_code, output = self._run(["plan", "demo", "--unit", "missing"])

        self.assertEqual(exit_code, 2)
        self.assertIn("Error: Application 'demo' declares no native or lib named 'missing'", output)

    def test_unresolvable_dependency_reports_error(self) -> None:
        runner = RecordingCommandRunner(responses={"pkg-config --cflags zlib": (1, "")})

        exit_code, output = self._run(["plan", "demo", "--log-level", "error"], runner)

        self.assertEqual(exit_code, 2)
        self.assertIn("Error: Could not resolve OS dependency 'zlib'", output)
        self.assertIn("pkg_config: zlib not found", output)

    def test_unknown_application(self) -> None:
        exit_code, output = self._run(["plan", "ghost"])

        self.assertEqual(exit_code, 2)
        self.assertIn("Unknown application 'ghost'", output)

    def test_undecodable_yaml_project_reports_error(self) -> None:
        (self.workspace / "deps" / "other").mkdir()
        (self.workspace / "deps" / "other" / "bundlex.yaml").write_text("project: {}\n")

        with patch("core.config_loader.yaml", None):
            exit_code, output = self._run(["plan", "other"])

        self.assertEqual(exit_code, 2)
        self.assertIn("Error: Invalid bundlex project specification for 'other': bundlex.yaml:", output)

    def test_explicit_config_file(self) -> None:
        config = self.workspace / "alt.toml"
        config.write_text('[global]\ntarget = "sparc-sun-solaris2.11"\n')

        exit_code, output = self._run(["target", "--config", str(config)])

        self.assertEqual(exit_code, 2)
        self.assertIn("Unsupported platform", output)


if __name__ == "__main__":
    unittest.main()
