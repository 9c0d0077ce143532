"""
Dependency traversal.

DependencyAnalyzer walks the call graph from a root function: it emits a
FunctionContext for the root, resolves each call site in source order and
descends into every resolved target, depth first, until ``max_depth``.
Output order is first discovery (pre-order).

Each signature is emitted once per run. A target that was already visited is
attached as a dependency but not expanded again, unless it is reached at a
shallower depth than before, in which case its calls are explored again
from there. This keeps the result independent of the order in which equal
signatures are met, so a larger ``max_depth`` never loses nodes.

Usage:
    from callctx import DependencyAnalyzer, ExtractionConfig, SourceIndex

    index = SourceIndex("/path/to/project")
    analyzer = DependencyAnalyzer(index)
    unit = index.get_unit("pkg/service.py")
    result = analyzer.analyze_at_cursor(unit, offset, ExtractionConfig(max_depth=2))
"""

import logging
from typing import Iterator, Optional

from .adapters import LanguageAdapter, adapter_for, get_adapter
from .errors import CallContextError, DefinitionNotFoundError
from .models import AnalysisResult, Definition, ExtractionConfig, FunctionContext
from .resolver import DefinitionCache, Resolver
from .source import SourceIndex, SourceUnit

logger = logging.getLogger(__name__)


class DependencyAnalyzer:
    """Builds the dependency graph of a function.

    Args:
        index: Project file index used for sibling and import resolution.
            Without one only the root's own file is searched.
        cache: Resolver cache to share across runs. A private one is
            created when omitted.
    """

    def __init__(self, index: Optional[SourceIndex] = None, cache: Optional[DefinitionCache] = None):
        self.index = index
        self.cache = cache if cache is not None else DefinitionCache()
        self._depths: dict[str, int] = {}

    @property
    def processed_signatures(self) -> set[str]:
        """Signatures visited by the last run."""
        return set(self._depths)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def analyze(self, root: Optional[Definition], config: Optional[ExtractionConfig] = None) -> AnalysisResult:
        """Analyze the call graph below ``root``.

        Never raises: failures are returned in ``AnalysisResult.error``
        together with whatever was collected before them.
        """
        return self._run(root, config, refresh=True)

    def _run(self, root: Optional[Definition], config: Optional[ExtractionConfig], refresh: bool) -> AnalysisResult:
        config = config or ExtractionConfig()
        result = AnalysisResult()
        self._depths = {}
        if root is None:
            return result
        try:
            get_adapter(root.unit.language)
            if refresh and self.index is not None:
                self.index.refresh()
            resolver = Resolver(self.index, config, self.cache)
            self._traverse(root, config, resolver, result)
        except CallContextError as e:
            logger.warning(f"Analysis of {root.qualified_name} stopped: {e}")
            result.error = e
        except Exception as e:
            logger.exception(f"Unexpected error analyzing {root.qualified_name} in {root.unit.path}")
            result.error = e
        logger.debug(f"Analyzed {root.qualified_name}: {len(result)} contexts, cache {self.cache.hits}/{self.cache.misses}")
        return result

    def analyze_at_cursor(
        self, unit: SourceUnit, offset: int, config: Optional[ExtractionConfig] = None
    ) -> AnalysisResult:
        """Analyze the innermost function enclosing a character offset."""
        try:
            adapter = get_adapter(unit.language)
            self._sync_index(unit)
            root = self._enclosing_function(unit, offset, adapter)
        except CallContextError as e:
            logger.warning(f"Cannot analyze {unit.path} at offset {offset}: {e}")
            return AnalysisResult(error=e)
        except Exception as e:
            logger.exception(f"Unexpected error locating definition in {unit.path}")
            return AnalysisResult(error=e)
        return self._run(root, config, refresh=False)

    def analyze_function(self, unit: SourceUnit, name: str, config: Optional[ExtractionConfig] = None) -> AnalysisResult:
        """Analyze a function selected by name or qualified name."""
        try:
            adapter = get_adapter(unit.language)
            self._sync_index(unit)
            candidates = [d for d in unit.find_definitions(name) if adapter.is_function_definition(d)]
            if not candidates:
                raise DefinitionNotFoundError(unit.path, name)
        except CallContextError as e:
            logger.warning(f"Cannot analyze {name} in {unit.path}: {e}")
            return AnalysisResult(error=e)
        except Exception as e:
            logger.exception(f"Unexpected error locating {name} in {unit.path}")
            return AnalysisResult(error=e)
        return self._run(candidates[0], config, refresh=False)

    def _sync_index(self, unit: SourceUnit) -> None:
        """Pick up disk changes and overlay an unsaved buffer before locating the root."""
        if self.index is None:
            return
        self.index.refresh()
        if unit.in_memory:
            self.index.register(unit)

    @staticmethod
    def _enclosing_function(unit: SourceUnit, offset: int, adapter: LanguageAdapter) -> Definition:
        definition = unit.definition_at(offset)
        while definition is not None and not adapter.is_function_definition(definition):
            definition = definition.parent
        if definition is None:
            raise DefinitionNotFoundError(unit.path, offset)
        return definition

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _traverse(self, root: Definition, config: ExtractionConfig, resolver: Resolver, result: AnalysisResult) -> None:
        root_context = self._visit(root, 0, config, result, is_root=True)
        if root_context is None:
            return
        result.root = root_context

        stack: list[tuple[FunctionContext, int, Iterator[Definition]]] = []
        if config.max_depth > 0:
            stack.append((root_context, 0, self._targets(root, resolver)))
        while stack:
            context, depth, targets = stack[-1]
            target = next(targets, None)
            if target is None:
                stack.pop()
                continue

            child = self._visit(target, depth + 1, config, result)
            if child is None:
                existing = result.get(target.signature)
                if existing is not None:
                    context.add_dependency(existing)
                continue
            context.add_dependency(child)
            if depth + 1 < config.max_depth:
                stack.append((child, depth + 1, self._targets(target, resolver)))

    def _targets(self, definition: Definition, resolver: Resolver) -> Iterator[Definition]:
        """Resolved callees of a definition, in call-site order."""
        adapter = get_adapter(definition.unit.language)
        for call in adapter.collect_call_sites(definition):
            if adapter.is_builtin(call.name):
                continue
            target = resolver.resolve(call, definition)
            if target is not None and target.signature != definition.signature:
                yield target

    def _visit(
        self,
        definition: Optional[Definition],
        depth: int,
        config: ExtractionConfig,
        result: AnalysisResult,
        is_root: bool = False,
    ) -> Optional[FunctionContext]:
        """Context to expand for ``definition`` at ``depth``, or None if terminal."""
        if definition is None or depth > config.max_depth:
            return None
        adapter = adapter_for(definition.unit.language)
        if adapter is None or not adapter.is_function_definition(definition):
            return None
        if not is_root:
            if not definition.unit.is_project_owned:
                logger.debug(f"Not expanding vendored {definition.qualified_name} in {definition.unit.path}")
                return None
            if adapter.is_builtin(definition.name):
                return None

        signature = definition.signature
        seen_depth = self._depths.get(signature)
        if seen_depth is not None and seen_depth <= depth:
            return None
        self._depths[signature] = depth
        if seen_depth is not None:
            # Reached again closer to the root; expand from here
            return result.get(signature)

        if not adapter.is_relevant(definition, config):
            logger.debug(f"Skipping {definition.qualified_name}: filtered as test or trivial accessor")
            return None
        context = self._make_context(definition, adapter, config)
        result.add(context)
        return context

    @staticmethod
    def _make_context(definition: Definition, adapter: LanguageAdapter, config: ExtractionConfig) -> FunctionContext:
        unit = definition.unit
        return FunctionContext(
            name=definition.qualified_name,
            file_name=unit.file_name,
            file_path=str(unit.path),
            source_text=adapter.source_text(definition, config),
            package_name=unit.package_name,
            language=unit.language,
            is_project_owned=unit.is_project_owned,
            declaration=adapter.extract_signature(definition.text),
            start_line=definition.start_line,
            imports=adapter.relevant_imports(unit, definition) if config.include_imports else (),
        )


def analyze(
    root: Optional[Definition],
    config: Optional[ExtractionConfig] = None,
    index: Optional[SourceIndex] = None,
    cache: Optional[DefinitionCache] = None,
) -> AnalysisResult:
    """One-shot DependencyAnalyzer.analyze()."""
    return DependencyAnalyzer(index, cache).analyze(root, config)


def analyze_at_cursor(
    unit: SourceUnit,
    offset: int,
    config: Optional[ExtractionConfig] = None,
    index: Optional[SourceIndex] = None,
    cache: Optional[DefinitionCache] = None,
) -> AnalysisResult:
    """One-shot DependencyAnalyzer.analyze_at_cursor()."""
    return DependencyAnalyzer(index, cache).analyze_at_cursor(unit, offset, config)
