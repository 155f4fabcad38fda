from __future__ import annotations

from pathlib import Path
import tempfile
import textwrap
import unittest
from unittest.mock import patch

from core.config_loader import (
    ConfigFormatError,
    DuplicateKeyError,
    FILE_LOADERS,
    decode_config_file,
    find_config_file,
    listify,
    load_config_file,
    normalize_string_list,
    register_loader,
    resolve_search_paths,
)

try:  # PyYAML is optional
    import yaml  # type: ignore
except ModuleNotFoundError:  # pragma: no cover - optional dependency absent
    yaml = None


class ConfigLoaderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_loads_toml_and_json(self) -> None:
        (self.root / "a.toml").write_text(
            textwrap.dedent(
                """
                [project]
                src_dir = "native"
                """
            )
        )
        (self.root / "b.json").write_text('{"project": {"src_dir": "native"}}')

        self.assertEqual(load_config_file(self.root / "a.toml"), {"project": {"src_dir": "native"}})
        self.assertEqual(load_config_file(self.root / "b.json"), {"project": {"src_dir": "native"}})

    @unittest.skipIf(yaml is None, "PyYAML not installed")
    def test_loads_yaml(self) -> None:
        (self.root / "c.yaml").write_text(
            textwrap.dedent(
                """
                project:
                  libs:
                    - name: helpers
                """
            )
        )

        self.assertEqual(load_config_file(self.root / "c.yaml"), {"project": {"libs": [{"name": "helpers"}]}})

    def test_json_duplicate_keys(self) -> None:
        (self.root / "dupe.json").write_text('{"a": 1, "a": 2}')

        with self.assertRaises(DuplicateKeyError):
            decode_config_file(self.root / "dupe.json")

    @unittest.skipIf(yaml is None, "PyYAML not installed")
    def test_yaml_duplicate_keys(self) -> None:
        (self.root / "dupe.yaml").write_text("a: 1\na: 2\n")

        with self.assertRaises(DuplicateKeyError) as ctx:
            decode_config_file(self.root / "dupe.yaml")

        self.assertEqual(str(ctx.exception), "Duplicate key 'a'")

    @unittest.skipIf(yaml is None, "PyYAML not installed")
    def test_yaml_merge_keys_may_be_overridden(self) -> None:
        (self.root / "merge.yaml").write_text(
            textwrap.dedent(
                """
                base: &base
                  language: c
                  interface: nif
                unit:
                  <<: *base
                  language: cpp
                """
            )
        )

        self.assertEqual(
            load_config_file(self.root / "merge.yaml")["unit"],
            {"language": "cpp", "interface": "nif"},
        )

    @unittest.skipIf(yaml is None, "PyYAML not installed")
    def test_malformed_yaml(self) -> None:
        (self.root / "broken.yaml").write_text("a: [1, 2\n")

        with self.assertRaises(ConfigFormatError):
            decode_config_file(self.root / "broken.yaml")

    def test_yaml_without_pyyaml(self) -> None:
        (self.root / "c.yml").write_text("a: 1\n")

        with patch("core.config_loader.yaml", None):
            with self.assertRaises(ConfigFormatError):
                decode_config_file(self.root / "c.yml")

    def test_non_mapping_root(self) -> None:
        (self.root / "list.json").write_text("[1, 2]")

        self.assertEqual(decode_config_file(self.root / "list.json"), [1, 2])
        with self.assertRaises(TypeError):
            load_config_file(self.root / "list.json")

    def test_unsupported_suffix(self) -> None:
        (self.root / "config.ini").write_text("[x]")

        with self.assertRaises(ValueError):
            decode_config_file(self.root / "config.ini")

    def test_find_config_file(self) -> None:
        self.assertIsNone(find_config_file(self.root, "bundlex"))

        (self.root / "bundlex.json").write_text("{}")
        self.assertEqual(find_config_file(self.root, "bundlex"), self.root / "bundlex.json")

        (self.root / "bundlex.toml").write_text("")
        with self.assertRaises(ValueError):
            find_config_file(self.root, "bundlex")

    def test_register_loader(self) -> None:
        self.addCleanup(FILE_LOADERS.pop, ".conf", None)
        register_loader(".CONF", lambda stream: {"lines": stream.read().splitlines()})
        (self.root / "settings.conf").write_text("a\nb\n")

        self.assertEqual(load_config_file(self.root / "settings.conf"), {"lines": ["a", "b"]})
        with self.assertRaises(ValueError):
            register_loader("conf", lambda stream: {})


class HelperTests(unittest.TestCase):
    def test_listify(self) -> None:
        self.assertEqual(listify(None), [])
        self.assertEqual(listify("nif"), ["nif"])
        self.assertEqual(listify(("nif", "port")), ["nif", "port"])
        self.assertEqual(listify({"a": 1}), [{"a": 1}])

    def test_normalize_string_list(self) -> None:
        self.assertEqual(normalize_string_list(None), [])
        self.assertEqual(normalize_string_list(" x.c "), ["x.c"])
        self.assertEqual(normalize_string_list(["a", " ", "b"]), ["a", "b"])
        with self.assertRaises(TypeError):
            normalize_string_list(["a", 1], field_name="sources")
        with self.assertRaises(TypeError):
            normalize_string_list({"a": 1})

    def test_resolve_search_paths(self) -> None:
        root = Path("/workspace")

        self.assertEqual(
            resolve_search_paths(root, ["deps", "/opt/apps", "deps"]),
            ((root / "deps").resolve(), Path("/opt/apps")),
        )


if __name__ == "__main__":
    unittest.main()
