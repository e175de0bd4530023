"""Tests for the filesystem scanner used by codebase ingestion."""

import os

import pytest

from agent_memory.services.ingestion import find_actual_file, scan_directory


@pytest.fixture
def project(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "index.ts").write_text("export const x = 1;\n")
    (tmp_path / "README.md").write_text("# demo\n")
    (tmp_path / "node_modules" / "react").mkdir(parents=True)
    (tmp_path / "node_modules" / "react" / "index.js").write_text("")
    (tmp_path / ".cache").mkdir()
    (tmp_path / ".cache" / "blob").write_text("")
    return tmp_path


class TestScanDirectory:
    def test_lists_files_and_directories(self, project):
        items = scan_directory(project, project, ["node_modules"])

        assert [(item.name, item.type) for item in items] == [
            (".", "directory"),
            ("src", "directory"),
            ("src/index.ts", "file"),
            ("README.md", "file"),
        ]
        index_ts = items[2]
        assert index_ts.language == "typescript"
        assert index_ts.parent_name == "src"
        assert index_ts.size_bytes == len("export const x = 1;\n")
        assert index_ts.path == (project / "src" / "index.ts").resolve()
        assert items[0].parent_name is None
        assert items[3].language == "markdown"

    def test_subdirectory_names_are_relative_to_root(self, project):
        items = scan_directory(project / "src", project)

        assert [item.name for item in items] == ["src", "src/index.ts"]
        assert items[0].parent_name == "."

    def test_symlinked_directory_not_followed(self, project):
        os.symlink(project / "src", project / "linked")

        names = [item.name for item in scan_directory(project, project, ["node_modules"])]

        assert "linked" not in names
        assert "linked/index.ts" not in names

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            scan_directory(tmp_path / "nope", tmp_path)

    def test_directory_outside_root(self, tmp_path):
        (tmp_path / "root").mkdir()
        (tmp_path / "other").mkdir()

        with pytest.raises(ValueError, match="must be within the project root"):
            scan_directory(tmp_path / "other", tmp_path / "root")

    def test_file_is_not_a_directory(self, project):
        with pytest.raises(ValueError, match="Not a directory"):
            scan_directory(project / "README.md", project)


class TestFindActualFile:
    def test_js_specifier_prefers_typescript_source(self, tmp_path):
        (tmp_path / "util.ts").write_text("")
        (tmp_path / "util.js").write_text("")

        assert find_actual_file(tmp_path / "util.js") == tmp_path / "util.ts"

    def test_extensionless_specifier(self, tmp_path):
        (tmp_path / "util.tsx").write_text("")

        assert find_actual_file(tmp_path / "util") == tmp_path / "util.tsx"

    def test_python_package_and_php_file(self, tmp_path):
        (tmp_path / "pkg").mkdir()
        (tmp_path / "pkg" / "__init__.py").write_text("")
        (tmp_path / "helpers.php").write_text("<?php\n")

        assert find_actual_file(tmp_path / "pkg") == tmp_path / "pkg" / "__init__.py"
        assert find_actual_file(tmp_path / "helpers") == tmp_path / "helpers.php"

    def test_unresolvable(self, tmp_path):
        assert find_actual_file(tmp_path / "missing") is None
