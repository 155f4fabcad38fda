from __future__ import annotations

from pathlib import Path
import tempfile
import textwrap
import unittest

from bundlex.settings import DisablePolicy, Settings


class SettingsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_defaults(self) -> None:
        settings = Settings.discover(self.root)

        self.assertEqual(settings.root, self.root)
        self.assertEqual(settings.build_root, self.root / "_build" / "bundlex")
        self.assertEqual(settings.cache_root, self.root / "_build" / "bundlex" / "precompiled")
        self.assertEqual(settings.search_paths, (self.root / "deps",))
        self.assertEqual(settings.disable_policy, DisablePolicy())
        self.assertEqual(settings.pkg_config, "pkg-config")
        self.assertEqual(settings.download_timeout, 60.0)
        self.assertEqual(settings.log_level, "none")
        self.assertIsNone(settings.target)

    def test_discovers_settings_file(self) -> None:
        (self.root / "bundlex-settings.toml").write_text(
            textwrap.dedent(
                """
                [global]
                log_level = "DEBUG"
                build_root = "out"
                cache_root = "/var/cache/bundlex"
                pkg_config = "pkgconf"
                download_timeout = 5
                target = "aarch64-apple-darwin23"

                [disable_precompiled_os_deps]
                apps = ["demo", "other"]

                [applications]
                demo = "apps/demo"

                [search]
                paths = ["vendor", "deps", "vendor"]
                """
            )
        )

        settings = Settings.discover(self.root)

        self.assertEqual(settings.log_level, "debug")
        self.assertEqual(settings.build_root, self.root / "out")
        self.assertEqual(settings.cache_root, Path("/var/cache/bundlex"))
        self.assertEqual(settings.pkg_config, "pkgconf")
        self.assertEqual(settings.download_timeout, 5.0)
        self.assertEqual(settings.target, "aarch64-apple-darwin23")
        self.assertTrue(settings.disable_policy.precompiled_disabled("demo"))
        self.assertFalse(settings.disable_policy.precompiled_disabled("core"))
        self.assertEqual(settings.applications, {"demo": self.root / "apps" / "demo"})
        self.assertEqual(settings.search_paths, (self.root / "vendor", self.root / "deps"))
        self.assertEqual(settings.console().level_name, "debug")

    def test_invalid_values(self) -> None:
        cases = [
            ({"global": {"log_level": "verbose"}}, ValueError),
            ({"global": {"download_timeout": "soon"}}, TypeError),
            ({"global": {"command_timeout": 0}}, ValueError),
            ({"disable_precompiled_os_deps": {"apps": [1]}}, TypeError),
            ({"applications": ["demo"]}, TypeError),
        ]
        for data, error in cases:
            with self.subTest(data=data):
                with self.assertRaises(error):
                    Settings.from_mapping(data, root=self.root)

    def test_multiple_settings_formats_are_rejected(self) -> None:
        (self.root / "bundlex-settings.toml").write_text("")
        (self.root / "bundlex-settings.json").write_text("{}")

        with self.assertRaises(ValueError):
            Settings.discover(self.root)


if __name__ == "__main__":
    unittest.main()
