"""Tests for SourceUnit and SourceIndex."""

import pytest

from callctx.errors import FileTooLargeError
from callctx.ignore import should_ignore
from callctx.models import Language
from callctx.source import SourceIndex, SourceUnit


class TestSourceUnit:
    def test_lazy_read(self, tmp_path):
        path = tmp_path / "m.py"
        path.write_text("def f():\n    pass\n")
        unit = SourceUnit(path)
        assert unit.language is Language.PYTHON
        assert unit._text is None
        assert unit.read() == "def f():\n    pass\n"
        assert unit.file_name == "m.py"

    def test_explicit_language(self, tmp_path):
        unit = SourceUnit.from_text("package x\n", path=tmp_path / "x.txt", language="go")
        assert unit.language is Language.GO
        assert unit.package_name == "x"

    def test_file_too_large(self, tmp_path, monkeypatch):
        monkeypatch.setattr("callctx.source.MAX_FILE_SIZE", 10)
        path = tmp_path / "big.py"
        path.write_text("x = 1\n" * 10)
        with pytest.raises(FileTooLargeError) as exc_info:
            SourceUnit(path).read()
        assert "CALLCTX_MAX_FILE_SIZE" in str(exc_info.value)

    def test_update_text_resets_derived_state(self):
        unit = SourceUnit.from_text("def a():\n    pass\n", path="/m.py")
        assert [d.name for d in unit.definitions] == ["a"]
        old_hash = unit.content_hash
        assert unit.update_text("def b():\n    pass\n")
        assert [d.name for d in unit.definitions] == ["b"]
        assert unit.content_hash != old_hash
        assert not unit.update_text("def b():\n    pass\n")

    def test_refresh_detects_disk_change(self, tmp_path):
        path = tmp_path / "m.py"
        path.write_text("def a():\n    pass\n")
        unit = SourceUnit(path)
        assert not unit.refresh()
        unit.read()
        assert not unit.refresh()
        path.write_text("def a():\n    return 1\n")
        assert unit.refresh()
        assert "return 1" in unit.text

    def test_offsets_with_non_ascii(self):
        unit = SourceUnit.from_text('s = "é"\nx = 1\n', path="/m.py")
        assert not unit.is_ascii
        char = unit.text.index("x")
        assert unit.byte_offset(char) == char + 1
        assert unit.char_offset(unit.byte_offset(char)) == char
        assert unit.line_of(char) == 1

    def test_masked_view(self):
        unit = SourceUnit.from_text('x = "def f(): pass"  # g()\n', path="/m.py")
        assert "def" not in unit.masked
        assert len(unit.masked) == len(unit.text)

    def test_is_project_owned(self, tmp_path):
        owned = SourceUnit.from_text("", path=tmp_path / "svc" / "a.go", root=tmp_path)
        vendored = SourceUnit.from_text("", path=tmp_path / "vendor" / "lib" / "a.go", root=tmp_path)
        assert owned.is_project_owned
        assert not vendored.is_project_owned


class TestSourceIndex:
    FILES = {
        "a.py": "def a():\n    pass\n",
        "pkg/b.py": "def b():\n    pass\n",
        "pkg/c.go": "package pkg\n",
        "node_modules/dep/d.py": "def d():\n    pass\n",
        "build/e.py": "def e():\n    pass\n",
        "skipped.py": "def s():\n    pass\n",
        ".callctxignore": "node_modules/\nbuild/\nskipped.py\n",
    }

    def test_list_files_honours_ignore(self, make_index):
        index = make_index(self.FILES)
        names = [unit.relative_path for unit in index.list_files(Language.PYTHON)]
        assert names == ["a.py", "pkg/b.py"]
        assert [unit.file_name for unit in index.list_files(Language.GO)] == ["c.go"]

    def test_respect_ignore_off(self, write_project):
        root = write_project(self.FILES)
        index = SourceIndex(root, respect_ignore=False)
        names = {unit.relative_path for unit in index.list_files(Language.PYTHON)}
        assert {"node_modules/dep/d.py", "build/e.py", "skipped.py"} <= names

    def test_get_unit_is_cached(self, make_index):
        index = make_index(self.FILES)
        assert index.get_unit("a.py") is index.get_unit(index.root / "a.py")
        assert index.get_unit("missing.py") is None
        assert index.get_unit(".callctxignore") is None

    def test_units_in_directory(self, make_index):
        index = make_index(self.FILES)
        units = index.units_in_directory(index.root / "pkg", Language.PYTHON)
        assert [unit.file_name for unit in units] == ["b.py"]

    def test_register_bumps_generation_only_on_change(self, make_index):
        index = make_index(self.FILES)
        disk = index.get_unit("a.py")
        disk.read()

        same = SourceUnit.from_text(disk.text, path=disk.path)
        index.register(same)
        assert index.generation == 0

        changed = SourceUnit.from_text("def z():\n    pass\n", path="a.py")
        index.register(changed)
        assert index.generation == 1
        assert changed.path == index.root / "a.py"
        assert index.get_unit("a.py") is changed

    def test_refresh_picks_up_new_files(self, make_index):
        index = make_index(self.FILES)
        assert len(index.list_files(Language.PYTHON)) == 2
        assert not index.refresh()

        (index.root / "pkg" / "new.py").write_text("def n():\n    pass\n")
        assert index.refresh()
        assert index.generation == 1
        assert len(index.list_files(Language.PYTHON)) == 3

    def test_refresh_reuses_ignore_decisions(self, make_index, monkeypatch):
        index = make_index(self.FILES)
        asked = []

        def counting_should_ignore(rel_path, *args, **kwargs):
            asked.append(rel_path)
            return should_ignore(rel_path, *args, **kwargs)

        monkeypatch.setattr("callctx.source.should_ignore", counting_should_ignore)
        index.list_files(Language.PYTHON)
        first_scan = len(asked)
        assert first_scan > 0

        index.refresh()
        index.refresh()
        assert len(asked) == first_scan

        (index.root / "pkg" / "new.py").write_text("def n():\n    pass\n")
        assert index.refresh()
        assert asked[first_scan:] == ["pkg/new.py"]

    def test_refresh_reloads_changed_ignore_file(self, make_index):
        index = make_index(self.FILES)
        assert [unit.relative_path for unit in index.list_files(Language.PYTHON)] == ["a.py", "pkg/b.py"]

        (index.root / ".callctxignore").write_text("node_modules/\nbuild/\nskipped.py\npkg/\n")
        assert index.refresh()
        assert [unit.relative_path for unit in index.list_files(Language.PYTHON)] == ["a.py"]
