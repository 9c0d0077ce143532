"""Tests for call-site resolution and the definition cache."""

import pytest

from callctx.adapters import get_adapter
from callctx.models import ExtractionConfig
from callctx.resolver import DefinitionCache, Resolver
from callctx.source import SourceUnit

PYTHON_PROJECT = {
    "pkg/__init__.py": "",
    "pkg/util.py": """
        def helper():
            return 1


        class Base:
            def save(self):
                return 1
    """,
    "pkg/models.py": """
        from .util import Base


        class Model(Base):
            def __init__(self):
                self.x = 1

            def run(self):
                self.save()
                self.local()

            def local(self):
                pass


        class Child(Model):
            def run(self):
                super().run()
    """,
    "pkg/app.py": """
        import pkg.util as u
        from pkg.util import helper as h
        from .models import Model


        def main():
            h()
            u.helper()
            m = Model()
            m.run()
            unknown.run()
            inner()

            def inner():
                return 2
    """,
}


def resolve_all(index, rel_path, name, config=None):
    """{call text: qualified name of target or None} for one definition."""
    unit = index.get_unit(rel_path)
    (caller,) = unit.find_definitions(name)
    resolver = Resolver(index, config or ExtractionConfig())
    resolved = {}
    for call in get_adapter(unit.language).collect_call_sites(caller):
        target = resolver.resolve(call, caller)
        resolved[call.text] = target.qualified_name if target is not None else None
    return resolved


class TestPythonResolution:
    def test_stages(self, make_index):
        index = make_index(PYTHON_PROJECT)
        resolved = resolve_all(index, "pkg/app.py", "main")
        assert resolved == {
            "h(": "helper",
            "u.helper(": "helper",
            "Model(": "Model.__init__",
            "m.run(": "Model.run",
            "unknown.run(": None,
            "inner(": "main.inner",
        }

    def test_imported_target_lives_in_imported_file(self, make_index):
        index = make_index(PYTHON_PROJECT)
        unit = index.get_unit("pkg/app.py")
        (main,) = unit.find_definitions("main")
        call = next(c for c in get_adapter("python").collect_call_sites(main) if c.name == "h")
        target = Resolver(index).resolve(call, main)
        assert target.unit.path == index.root / "pkg" / "util.py"

    def test_self_call_searches_bases(self, make_index):
        index = make_index(PYTHON_PROJECT)
        resolved = resolve_all(index, "pkg/models.py", "Model.run")
        assert resolved == {"self.save(": "Base.save", "self.local(": "Model.local"}

    def test_super_call_skips_own_class(self, make_index):
        index = make_index(PYTHON_PROJECT)
        resolved = resolve_all(index, "pkg/models.py", "Child.run")
        assert resolved == {"super().run(": "Model.run"}

    def test_include_imports_off(self, make_index):
        index = make_index(PYTHON_PROJECT)
        resolved = resolve_all(index, "pkg/app.py", "main", ExtractionConfig(include_imports=False))
        assert resolved["h("] is None
        assert resolved["Model("] is None
        assert resolved["inner("] == "main.inner"

    def test_local_definition_shadows_import(self, make_index):
        index = make_index({
            "lib.py": "def run():\n    pass\n",
            "app.py": "from lib import run\n\n\ndef run():\n    pass\n\n\ndef main():\n    run()\n",
        })
        resolved = resolve_all(index, "app.py", "main")
        unit = index.get_unit("app.py")
        assert resolved == {"run(": "run"}
        (main,) = unit.find_definitions("main")
        call = get_adapter("python").collect_call_sites(main)[0]
        assert Resolver(index).resolve(call, main).unit is unit

    def test_without_index_only_current_file(self):
        unit = SourceUnit.from_text("from x import y\n\ndef a():\n    b()\n    y()\n\ndef b():\n    pass\n", path="/m.py")
        (a,) = unit.find_definitions("a")
        resolver = Resolver()
        targets = [resolver.resolve(c, a) for c in get_adapter("python").collect_call_sites(a)]
        assert [t.name if t else None for t in targets] == ["b", None]


class TestGoResolution:
    FILES = {
        "svc/a.go": """
            package svc

            func A() {
            	B()
            	helper()
            }

            func helper() {}
        """,
        "svc/b.go": """
            package svc

            func B() {}

            func (t *T) helper() {}
        """,
        "svc/other_test.go": """
            package svc_test

            func B() {}
        """,
    }

    def test_sibling_file_of_same_package(self, make_index):
        index = make_index(self.FILES)
        unit = index.get_unit("svc/a.go")
        (a,) = unit.find_definitions("A")
        resolver = Resolver(index)
        calls = get_adapter("go").collect_call_sites(a)
        targets = [resolver.resolve(c, a) for c in calls]
        assert targets[0].unit.path.name == "b.go"
        # A plain call never resolves to a method
        assert targets[1].unit is unit
        assert targets[1].receiver_type is None


class TestDefinitionCache:
    def test_generation_tagging(self):
        cache = DefinitionCache()
        cache.put("k", 1, None)
        assert cache.get("k", 1) == (True, None)
        assert cache.get("k", 2) == (False, None)
        assert cache.get("missing", 1) == (False, None)
        assert (cache.hits, cache.misses) == (1, 2)
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0

    def test_resolver_uses_cache(self, make_index):
        index = make_index(PYTHON_PROJECT)
        cache = DefinitionCache()
        resolve_call = _first_call_resolver(index, cache)
        first = resolve_call()
        misses = cache.misses
        assert resolve_call() is first
        assert cache.hits >= 1
        assert cache.misses == misses

    def test_generation_change_invalidates(self, make_index):
        index = make_index(PYTHON_PROJECT)
        cache = DefinitionCache()
        resolve_call = _first_call_resolver(index, cache)
        resolve_call()
        misses = cache.misses

        util = index.get_unit("pkg/util.py")
        overlay = SourceUnit.from_text("def helper():\n    return 2\n", path=util.path)
        index.register(overlay)

        target = resolve_call()
        assert cache.misses > misses
        assert target.unit is overlay


def _first_call_resolver(index, cache):
    def resolve_call():
        unit = index.get_unit("pkg/app.py")
        (main,) = unit.find_definitions("main")
        call = get_adapter("python").collect_call_sites(main)[0]
        return Resolver(index, cache=cache).resolve(call, main)

    return resolve_call


@pytest.mark.parametrize("include_imports", [True, False])
def test_unresolved_is_logged(make_index, caplog, include_imports):
    import logging

    index = make_index(PYTHON_PROJECT)
    with caplog.at_level(logging.DEBUG, logger="callctx.resolver"):
        resolve_all(index, "pkg/app.py", "main", ExtractionConfig(include_imports=include_imports))
    assert "Unresolved call 'unknown.run('" in caplog.text
