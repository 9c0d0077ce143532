"""Tests for .callctxignore handling and vendored-path detection."""

from pathlib import Path

import pytest

from callctx.ignore import (
    DEFAULT_TEMPLATE,
    IGNORE_FILE_NAME,
    ensure_ignore_file,
    is_vendored_path,
    load_ignore_patterns,
    should_ignore,
)


class TestIgnoreFile:
    def test_default_template_when_missing(self, tmp_path: Path):
        spec = load_ignore_patterns(tmp_path)
        assert spec.match_file("node_modules/pkg/index.py")
        assert spec.match_file("pkg/__pycache__/mod.py")
        assert not spec.match_file("src/app/main.py")

    def test_custom_patterns_replace_default(self, tmp_path: Path):
        (tmp_path / IGNORE_FILE_NAME).write_text("generated/\n")
        spec = load_ignore_patterns(tmp_path)
        assert spec.match_file("generated/x.py")
        assert not spec.match_file("node_modules/pkg/index.py")

    def test_negation_wins(self, tmp_path: Path):
        (tmp_path / IGNORE_FILE_NAME).write_text("generated/\n!generated/keep.py\n")
        assert should_ignore("generated/drop.py", tmp_path, use_gitignore=False)
        assert not should_ignore("generated/keep.py", tmp_path, use_gitignore=False)

    def test_directory_pattern_matches_directory(self, tmp_path: Path):
        spec = load_ignore_patterns(tmp_path)
        assert should_ignore("build/", tmp_path, spec, use_gitignore=False)
        assert not should_ignore("builder/", tmp_path, spec, use_gitignore=False)

    def test_absolute_paths_inside_project(self, tmp_path: Path):
        (tmp_path / IGNORE_FILE_NAME).write_text("*.gen.py\n")
        assert should_ignore(tmp_path / "a" / "b.gen.py", tmp_path, use_gitignore=False)
        assert not should_ignore(tmp_path / "a" / "b.py", tmp_path, use_gitignore=False)

    def test_ensure_ignore_file(self, tmp_path: Path):
        created, message = ensure_ignore_file(tmp_path)
        assert created
        assert (tmp_path / IGNORE_FILE_NAME).read_text() == DEFAULT_TEMPLATE

        created, message = ensure_ignore_file(tmp_path)
        assert not created
        assert "already exists" in message

    def test_ensure_ignore_file_missing_dir(self, tmp_path: Path):
        created, message = ensure_ignore_file(tmp_path / "nope")
        assert not created
        assert "does not exist" in message

    def test_written_file_drives_index(self, tmp_path: Path):
        import callctx

        (tmp_path / "app.py").write_text("def run():\n    pass\n")
        (tmp_path / "dist").mkdir()
        (tmp_path / "dist" / "app.py").write_text("def run():\n    pass\n")

        created, _ = callctx.ensure_ignore_file(tmp_path)
        assert created
        assert (tmp_path / callctx.IGNORE_FILE_NAME).is_file()

        index = callctx.SourceIndex(tmp_path, use_gitignore=False)
        files = index.list_files(callctx.Language.PYTHON)
        assert [unit.relative_path for unit in files] == ["app.py"]


class TestVendoredPaths:
    @pytest.mark.parametrize(
        "path",
        [
            "vendor/github.com/pkg/errors/errors.go",
            "lib/python3.12/site-packages/requests/api.py",
            "go/pkg/mod/golang.org/x/text@v0.3.0/doc.go",
            "third_party/lib/Util.java",
            "api/v1/service.pb.go",
            "api/zz_generated.deepcopy.go",
            "proto/service_pb2.py",
            "target/generated-sources/annotations/Gen.java",
        ],
    )
    def test_vendored(self, path):
        assert is_vendored_path(path)

    @pytest.mark.parametrize("path", ["svc/main.go", "pkg/vendors.py", "src/main/java/App.java"])
    def test_owned(self, path):
        assert not is_vendored_path(path)

    def test_relative_to_project_root(self, tmp_path: Path):
        assert is_vendored_path(tmp_path / "vendor" / "x.go", tmp_path)
        assert not is_vendored_path(tmp_path / "svc" / "x.go", tmp_path)
