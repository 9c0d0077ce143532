"""
Call-site resolution.

A Resolver maps a CallSite inside a calling Definition to the Definition it
invokes. Plain calls go through four stages and the first hit wins:

1. local scope: the enclosing definitions and the functions nested in them
   (for languages with lexical class scope, the enclosing classes' methods
   including inherited ones)
2. the current file's module-level definitions
3. sibling files of the same package
4. imported modules (skipped when ``include_imports`` is off)

Method calls are resolved against class method tables instead: ``self``
calls search the enclosing class and its bases, ``super`` calls only the
bases, and ``x.m()`` calls go through an import alias, a class named ``x`` or
the inferred type of the local ``x``. Unknown receivers stay unresolved so
that same-named methods of unrelated classes are never conflated.

Lookups are memoized in a DefinitionCache, which may outlive one analysis.
Its entries are tagged with the SourceIndex generation and ignored once any
indexed file has changed.
"""

import logging
from collections import deque
from typing import Iterable, Optional

from .adapters import LanguageAdapter, get_adapter
from .errors import FileTooLargeError
from .models import NEW, QUALIFIED, SELF, SUPER, CallSite, Definition, ExtractionConfig, ImportInfo

logger = logging.getLogger(__name__)


class DefinitionCache:
    """Memoized resolver lookups, ``None`` results included."""

    def __init__(self):
        self._entries: dict[str, tuple[int, Optional[Definition]]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str, generation: int) -> tuple[bool, Optional[Definition]]:
        entry = self._entries.get(key)
        if entry is None or entry[0] != generation:
            self.misses += 1
            return False, None
        self.hits += 1
        return True, entry[1]

    def put(self, key: str, generation: int, definition: Optional[Definition]) -> None:
        self._entries[key] = (generation, definition)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _join_module(module: str, name: str) -> str:
    return f"{module}{name}" if module.endswith(".") else f"{module}.{name}"


class Resolver:
    """Resolves call sites for one analysis run."""

    def __init__(self, index=None, config: Optional[ExtractionConfig] = None, cache: Optional[DefinitionCache] = None):
        self.index = index
        self.config = config or ExtractionConfig()
        self.cache = cache if cache is not None else DefinitionCache()
        self._classes: dict[tuple[str, str], Optional[Definition]] = {}

    @property
    def generation(self) -> int:
        return self.index.generation if self.index is not None else 0

    def resolve(self, call: CallSite, caller: Definition) -> Optional[Definition]:
        """Definition invoked by ``call`` from inside ``caller``, or None."""
        key = "|".join((
            caller.signature,
            caller.unit.content_hash,
            call.kind,
            call.qualifier,
            call.name,
            str(int(self.config.include_imports)),
        ))
        hit, target = self.cache.get(key, self.generation)
        if hit:
            return target

        adapter = get_adapter(caller.unit.language)
        if call.kind == SELF:
            target = self._resolve_self(call, caller, adapter)
        elif call.kind == SUPER:
            target = self._resolve_super(call, caller, adapter)
        elif call.kind == NEW:
            target = self._resolve_new(call, caller)
        elif call.kind == QUALIFIED:
            target = self._resolve_qualified(call, caller, adapter)
        else:
            target = self._resolve_plain(call.name, caller, adapter)

        if target is None:
            logger.debug(f"Unresolved call {call.text!r} in {caller.qualified_name} ({caller.unit.path}:{call.line})")
        self.cache.put(key, self.generation, target)
        return target

    # ------------------------------------------------------------------
    # Plain calls
    # ------------------------------------------------------------------

    def _resolve_plain(self, name: str, caller: Definition, adapter: LanguageAdapter) -> Optional[Definition]:
        stages = [self._from_local_scope, self._from_current_file, self._from_siblings]
        if self.config.include_imports:
            stages.append(self._from_imports)
        for stage in stages:
            target = stage(name, caller, adapter)
            if target is not None:
                return target
        return None

    def _from_local_scope(self, name: str, caller: Definition, adapter: LanguageAdapter) -> Optional[Definition]:
        scope = caller
        while scope is not None:
            if scope.is_class:
                if adapter.class_scope_is_lexical:
                    method = self._lookup_method(scope, name)
                    if method is not None:
                        return method
            else:
                is_member = scope.receiver_type is not None or (scope.parent is not None and scope.parent.is_class)
                if scope.name == name and (not is_member or adapter.class_scope_is_lexical):
                    return scope
                for child in scope.children:
                    if child.name == name and child.is_function:
                        return child
            scope = scope.parent
        return None

    def _match_module_level(self, name: str, definitions: Iterable[Definition]) -> Optional[Definition]:
        for definition in definitions:
            if definition.name != name:
                continue
            if definition.is_function:
                if definition.receiver_type is not None:
                    continue
                return definition
            if definition.is_class:
                return self._constructor_of(definition)
        return None

    def _from_current_file(self, name: str, caller: Definition, adapter: LanguageAdapter) -> Optional[Definition]:
        return self._match_module_level(name, adapter.module_level_definitions(caller.unit))

    def _from_siblings(self, name: str, caller: Definition, adapter: LanguageAdapter) -> Optional[Definition]:
        for unit in self._loadable(adapter.sibling_units(caller.unit, self.index)):
            target = self._match_module_level(name, adapter.module_level_definitions(unit))
            if target is not None:
                return target
        return None

    def _from_imports(self, name: str, caller: Definition, adapter: LanguageAdapter) -> Optional[Definition]:
        unit = caller.unit
        for imp in unit.imports:
            if imp.is_wildcard:
                units = self._loadable(adapter.module_candidates(imp, unit, self.index))
                if imp.is_static:
                    target = self._method_in_class_of(imp.module, name, units)
                else:
                    target = self._first_module_level(name, units, adapter)
            elif imp.local_name == name:
                units = self._loadable(adapter.module_candidates(imp, unit, self.index))
                if imp.is_static:
                    target = self._method_in_class_of(imp.module, imp.name, units)
                else:
                    target = self._first_module_level(imp.name or name, units, adapter)
            else:
                continue
            if target is not None:
                return target
        return None

    def _first_module_level(self, name: str, units: Iterable, adapter: LanguageAdapter) -> Optional[Definition]:
        for unit in units:
            target = self._match_module_level(name, adapter.module_level_definitions(unit))
            if target is not None:
                return target
        return None

    def _method_in_class_of(self, class_path: str, name: str, units: Iterable) -> Optional[Definition]:
        class_name = class_path.rpartition(".")[2]
        for unit in units:
            for definition in unit.iter_definitions():
                if definition.is_class and definition.name == class_name:
                    method = self._lookup_method(definition, name)
                    if method is not None:
                        return method
        return None

    # ------------------------------------------------------------------
    # Method calls
    # ------------------------------------------------------------------

    def _enclosing_class(self, caller: Definition) -> Optional[Definition]:
        if caller.receiver_type:
            return self.find_class(caller.receiver_type, caller.unit)
        scope = caller.parent
        while scope is not None:
            if scope.is_class:
                return scope
            scope = scope.parent
        return None

    def _resolve_self(self, call: CallSite, caller: Definition, adapter: LanguageAdapter) -> Optional[Definition]:
        class_def = self._enclosing_class(caller)
        if class_def is None:
            return None
        return self._lookup_method(class_def, call.name)

    def _resolve_super(self, call: CallSite, caller: Definition, adapter: LanguageAdapter) -> Optional[Definition]:
        class_def = self._enclosing_class(caller)
        if class_def is None:
            return None
        return self._lookup_method(class_def, call.name, include_self=False)

    def _resolve_new(self, call: CallSite, caller: Definition) -> Optional[Definition]:
        type_name = f"{call.qualifier}.{call.name}" if call.qualifier else call.name
        class_def = self.find_class(type_name, caller.unit)
        return self._constructor_of(class_def) if class_def is not None else None

    def _resolve_qualified(self, call: CallSite, caller: Definition, adapter: LanguageAdapter) -> Optional[Definition]:
        qualifier = call.qualifier
        unit = caller.unit

        if self.config.include_imports:
            for imp in unit.imports:
                if imp.is_wildcard or imp.local_name != qualifier:
                    continue
                target = self._through_import(imp, call.name, caller, adapter)
                if target is not None:
                    return target

        class_def = self.find_class(qualifier, unit)
        if class_def is not None:
            target = self._lookup_method(class_def, call.name)
            if target is not None:
                return target

        type_name = adapter.infer_variable_type(qualifier, caller)
        if type_name:
            class_def = self.find_class(type_name, unit)
            if class_def is not None:
                return self._lookup_method(class_def, call.name)
        return None

    def _through_import(
        self, imp: ImportInfo, name: str, caller: Definition, adapter: LanguageAdapter
    ) -> Optional[Definition]:
        units = self._loadable(adapter.module_candidates(imp, caller.unit, self.index))
        if imp.name is None:
            return self._first_module_level(name, units, adapter)
        for unit in units:
            for definition in unit.iter_definitions():
                if definition.is_class and definition.name == imp.name:
                    return self._lookup_method(definition, name)
        # from pkg import module
        submodule = self._loadable(adapter.module_units(_join_module(imp.module, imp.name), caller.unit, self.index))
        return self._first_module_level(name, submodule, adapter)

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def _package_units(self, unit) -> list:
        adapter = get_adapter(unit.language)
        return [unit] + self._loadable(adapter.sibling_units(unit, self.index))

    def _lookup_method(self, class_def: Definition, name: str, include_self: bool = True) -> Optional[Definition]:
        """Breadth-first search of a class and its bases for a method."""
        queue = deque([(class_def, include_self)])
        seen: set[str] = set()
        while queue:
            current, search_here = queue.popleft()
            if current.signature in seen:
                continue
            seen.add(current.signature)
            adapter = get_adapter(current.unit.language)
            if search_here:
                method = adapter.method_table(current, self._package_units(current.unit)).get(name)
                if method is not None:
                    return method
            for base in adapter.class_bases(current):
                base_def = self.find_class(base, current.unit)
                if base_def is not None:
                    queue.append((base_def, True))
        return None

    def _constructor_of(self, class_def: Definition) -> Optional[Definition]:
        adapter = get_adapter(class_def.unit.language)
        name = adapter.constructor_name(class_def)
        if name is None:
            return None
        if adapter.inherits_constructors:
            return self._lookup_method(class_def, name)
        return adapter.method_table(class_def, [class_def.unit]).get(name)

    def find_class(self, type_name: str, unit) -> Optional[Definition]:
        """Class or type named ``type_name`` as visible from ``unit``."""
        key = (str(unit.path), type_name)
        if key not in self._classes:
            self._classes[key] = self._find_class(type_name, unit)
        return self._classes[key]

    @staticmethod
    def _class_in(name: str, units: Iterable) -> Optional[Definition]:
        for unit in units:
            for definition in unit.iter_definitions():
                if definition.is_class and definition.name == name:
                    return definition
        return None

    def _find_class(self, type_name: str, unit) -> Optional[Definition]:
        adapter = get_adapter(unit.language)
        if "." in type_name:
            qualifier, _, simple = type_name.rpartition(".")
            for imp in unit.imports:
                if imp.is_wildcard or imp.local_name != qualifier:
                    continue
                units = self._loadable(adapter.module_candidates(imp, unit, self.index))
                if imp.name is not None:
                    units += self._loadable(adapter.module_units(_join_module(imp.module, imp.name), unit, self.index))
                found = self._class_in(simple, units)
                if found is not None:
                    return found
            # Fully qualified name
            return self._class_in(simple, self._loadable(adapter.module_units(qualifier, unit, self.index)))

        found = self._class_in(type_name, [unit])
        if found is not None:
            return found
        found = self._class_in(type_name, self._loadable(adapter.sibling_units(unit, self.index)))
        if found is not None:
            return found
        if not self.config.include_imports:
            return None
        for imp in unit.imports:
            if imp.is_wildcard and not imp.is_static:
                units = self._loadable(adapter.module_candidates(imp, unit, self.index))
                target_name = type_name
            elif imp.local_name == type_name:
                units = self._loadable(adapter.module_candidates(imp, unit, self.index))
                target_name = imp.name or type_name
            else:
                continue
            found = self._class_in(target_name, units)
            if found is not None:
                return found
        return None

    # ------------------------------------------------------------------

    def _loadable(self, units: Iterable) -> list:
        """Units whose text can be read; oversized files are skipped."""
        loadable = []
        for unit in units:
            try:
                unit.read()
            except FileTooLargeError as e:
                logger.warning(f"Skipping {unit.path}: {e}")
                continue
            loadable.append(unit)
        return loadable
