from __future__ import annotations

from pathlib import Path
import json
import os.path
import tempfile
import textwrap
import unittest

from core.command_runner import RecordingCommandRunner
from bundlex.errors import InvalidUnitConfig, NoProviderSucceeded, UnknownUnit
from bundlex.planner import BuildPlanner, output_path, serialize_plans
from bundlex.preprocessors import register_preprocessor, resolve_preprocessor
from bundlex.project import LIBS, NATIVES, NativeInterface
from bundlex.settings import Settings
from bundlex.target import PlatformFamily, parse_target


def _add_debug_define(unit, project):
    return {"compiler_flags": [*unit.compiler_flags, f"-DAPP_{project.app.upper()}"]}


register_preprocessor("test-debug-define", _add_debug_define)


class BuildPlannerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        self._write(
            "demo/bundlex.toml",
            """
            [project]

            [[project.natives]]
            name = "example"
            interface = ["nif", "port"]
            sources = ["example.c", "util.c"]
            includes = ["include"]
            deps = { core = "helpers" }
            os_deps = { libfoo = "pkg_config" }
            docs = "example.md"
            """,
        )
        self._write(
            "core/bundlex.toml",
            """
            [project]
            src_dir = "native"

            [[project.libs]]
            name = "helpers"
            sources = ["helpers.c"]
            libs = ["m"]
            os_deps = { zlib = "pkg_config" }

            [[project.natives]]
            name = "broken"
            interface = "cnode"
            preprocessors = ["missing.module:nothing"]
            sources = ["broken.c"]

            [[project.natives]]
            name = "tuned"
            interface = "nif"
            compiler_flags = ["-O2"]
            preprocessors = ["test-debug-define"]
            sources = ["tuned.c"]

            [[project.natives]]
            name = "nosources"
            interface = "nif"
            """,
        )
        self._write(
            "bundlex-settings.toml",
            """
            [global]
            build_root = "_build"

            [applications]
            demo = "demo"
            core = "core"
            """,
        )
        self.runner = RecordingCommandRunner(
            responses={
                "pkg-config --cflags libfoo": (0, "-I/usr/include/foo -DFOO"),
                "pkg-config --libs libfoo": (0, "-L/usr/lib/foo -lfoo"),
                "pkg-config --cflags zlib": (0, ""),
                "pkg-config --libs zlib": (0, "-lz"),
            }
        )
        self.settings = Settings.from_file(self.root / "bundlex-settings.toml")
        self.planner = BuildPlanner.from_settings(
            self.settings,
            runner=self.runner,
            target=parse_target("x86_64-unknown-linux-gnu"),
        )

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _write(self, relative: str, content: str) -> None:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))

    def test_interfaces_share_flags_but_not_outputs(self) -> None:
        nif, port = self.planner.plan_unit("demo", "example")

        build_root = self.root / "_build"
        self.assertEqual(nif.output_path, str(build_root / "demo" / "nif" / "example.so"))
        self.assertEqual(port.output_path, str(build_root / "demo" / "port" / "example"))
        self.assertNotEqual(nif.output_path, port.output_path)
        for field_name in ("includes", "lib_dirs", "libs", "static_libs", "compiler_flags", "linker_flags", "sources"):
            with self.subTest(field=field_name):
                self.assertEqual(getattr(nif, field_name), getattr(port, field_name))

        # libfoo is queried once for both interfaces
        self.assertEqual(
            [command for command in self.runner.iter_formatted() if command.endswith("libfoo")],
            ["pkg-config --cflags libfoo", "pkg-config --libs libfoo"],
        )

    def test_plan_contents(self) -> None:
        plan = self.planner.plan_unit("demo", "example", "nif")[0]

        demo_src = self.root / "demo" / "c_src"
        core_src = self.root / "core" / "native"
        self.assertEqual(plan.kind, "native")
        self.assertEqual(plan.interface, "nif")
        self.assertEqual(plan.sources, [str(demo_src / "demo" / "example.c"), str(demo_src / "demo" / "util.c")])
        self.assertEqual(
            plan.includes,
            [str(demo_src), str(self.root / "demo" / "include"), str(core_src), "/usr/include/foo"],
        )
        self.assertEqual(plan.lib_dirs, ["/usr/lib/foo"])
        self.assertEqual(plan.libs, ["foo", "m", "z"])
        self.assertEqual(plan.static_libs, [str(self.root / "_build" / "core" / "lib" / "libhelpers.a")])
        self.assertEqual(plan.compiler_flags, ["-std=c11", "-DFOO"])
        self.assertEqual(plan.os_deps, {"libfoo": ["pkg_config"]})
        self.assertEqual(plan.extra, {"docs": "example.md"})

    def test_plan_project_lists_libs_before_natives(self) -> None:
        self._write(
            "solo/bundlex.toml",
            """
            [project]
            natives = [{ name = "app", interface = "nif", sources = ["app.c"] }]
            libs = [{ name = "support", sources = ["support.c"] }]
            """,
        )
        planner = BuildPlanner.from_settings(
            Settings.from_mapping({"applications": {"solo": "solo"}}, root=self.root),
            runner=self.runner,
            target=parse_target("x86_64-pc-windows-msvc"),
        )

        plans = planner.plan_project("solo")

        self.assertEqual([(plan.kind, plan.name) for plan in plans], [("lib", "support"), ("native", "app")])
        self.assertTrue(plans[0].output_path.endswith("support.lib"))
        self.assertTrue(plans[1].output_path.endswith("app.dll"))

    def test_preprocessors_rewrite_options(self) -> None:
        (plan,) = self.planner.plan_unit("core", "tuned")

        self.assertEqual(plan.compiler_flags, ["-O2", "-DAPP_CORE"])

    def test_unloadable_preprocessor(self) -> None:
        with self.assertRaises(InvalidUnitConfig) as ctx:
            self.planner.plan_unit("core", "broken")

        self.assertIn("cannot load preprocessor", str(ctx.exception))

    def test_native_without_sources(self) -> None:
        with self.assertRaises(InvalidUnitConfig):
            self.planner.plan_unit("core", "nosources")

    def test_unknown_unit(self) -> None:
        with self.assertRaises(UnknownUnit) as ctx:
            self.planner.plan_unit("demo", "missing")

        self.assertEqual((ctx.exception.app, ctx.exception.name), ("demo", "missing"))

    def test_unresolvable_os_dependency_propagates(self) -> None:
        self.runner.responses["pkg-config --cflags libfoo"] = (1, "")

        with self.assertRaises(NoProviderSucceeded) as ctx:
            self.planner.plan_unit("demo", "example", NativeInterface.NIF)

        self.assertEqual(ctx.exception.unit, "example[nif]")

    def test_serialized_plans_are_json(self) -> None:
        plans = self.planner.plan_unit("demo", "example", "port")

        (decoded,) = json.loads(serialize_plans(plans))

        self.assertEqual(decoded["name"], "example")
        self.assertEqual(decoded["interface"], "port")
        self.assertEqual(decoded["os_deps"], {"libfoo": ["pkg_config"]})


class OutputPathTests(unittest.TestCase):
    def test_layout_per_kind_and_platform(self) -> None:
        root = Path("/build")
        cases = [
            (LIBS, None, PlatformFamily.LINUX, root / "app" / "lib" / "libcore.a"),
            (LIBS, NativeInterface.NIF, PlatformFamily.LINUX, root / "app" / "lib" / "nif" / "libcore.a"),
            (LIBS, None, PlatformFamily.WINDOWS64, root / "app" / "lib" / "core.lib"),
            (NATIVES, NativeInterface.NIF, PlatformFamily.MACOS_ARM, root / "app" / "nif" / "core.so"),
            (NATIVES, NativeInterface.NIF, PlatformFamily.WINDOWS32, root / "app" / "nif" / "core.dll"),
            (NATIVES, NativeInterface.CNODE, PlatformFamily.LINUX, root / "app" / "cnode" / "core"),
            (NATIVES, NativeInterface.PORT, PlatformFamily.WINDOWS64, root / "app" / "port" / "core.exe"),
        ]
        for kind, interface, platform, expected in cases:
            with self.subTest(kind=kind, interface=interface, platform=platform):
                self.assertEqual(output_path(root, "app", "core", interface, kind=kind, platform=platform), expected)

    def test_native_requires_interface(self) -> None:
        with self.assertRaises(ValueError):
            output_path(Path("/build"), "app", "core", None, kind=NATIVES, platform=PlatformFamily.LINUX)


class PreprocessorLookupTests(unittest.TestCase):
    def test_module_reference(self) -> None:
        self.assertIs(resolve_preprocessor("os.path:join"), os.path.join)

    def test_registered_name(self) -> None:
        self.assertIs(resolve_preprocessor("test-debug-define"), _add_debug_define)

    def test_unknown_reference(self) -> None:
        with self.assertRaises(LookupError):
            resolve_preprocessor("not-registered")


if __name__ == "__main__":
    unittest.main()
