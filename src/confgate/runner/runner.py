"""Test runner: load policies and data, evaluate every document, collect ordered results."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from confgate.errors import CancellationError
from confgate.runner.data_loader import load_data
from confgate.runner.evaluator import evaluate
from confgate.runner.grouping import discover_inputs, group_inputs
from confgate.runner.namespaces import resolve_namespaces
from confgate.runner.policy_loader import load_policies
from confgate.runner.results import aggregate, parse_failure_result

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from confgate.config import RunnerConfig
    from confgate.engine import RuleSet
    from confgate.runner.evaluator import CellOutcome
    from confgate.runner.grouping import InputDocument
    from confgate.runner.results import CheckResult, RunResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedPolicies:
    """The read-only state shared by every evaluation in a run."""

    rule_set: RuleSet
    store: dict[str, Any]


class TestRunner:
    """Runs policy tests for a fixed configuration."""

    __test__ = False  # not a pytest test class

    def __init__(self, config: RunnerConfig) -> None:
        self.config = config

    def load(self) -> LoadedPolicies:
        """Compile the policies and load the reference data.

        Raises ``PolicyCompileError`` or ``DataLoadError``; both are fatal.
        """
        rule_set = load_policies(self.config.policy_paths)
        store = load_data(self.config.data_paths)
        return LoadedPolicies(rule_set=rule_set, store=store)

    def run(
        self, paths: Iterable[str], *, cancel: threading.Event | None = None
    ) -> RunResult:
        """Evaluate *paths* and return one CheckResult per document, in input order.

        Raises
        ------
        PolicyCompileError, DataLoadError
            When the policies or the data cannot be loaded.
        ParseError
            When an input cannot be parsed in combined mode.
        CancellationError
            When *cancel* is set before every document was evaluated.
        """
        cancel = cancel or threading.Event()
        if cancel.is_set():
            raise CancellationError

        loaded = self.load()
        files = discover_inputs(paths, self.config.ignore_pattern)
        documents = group_inputs(
            files, combine=self.config.combine, input_format=self.config.input_format
        )
        namespaces = resolve_namespaces(
            loaded.rule_set,
            self.config.namespaces,
            all_namespaces=self.config.all_namespaces,
        )

        logger.info(
            "Evaluating %d document(s) against %d namespace(s)",
            len(documents),
            len(namespaces),
        )
        return self._evaluate_all(documents, namespaces, loaded, cancel)

    def _check_document(
        self,
        document: InputDocument,
        namespaces: Sequence[str],
        loaded: LoadedPolicies,
        cancelled: Callable[[], bool],
    ) -> CheckResult:
        if document.error is not None:
            return parse_failure_result(document, namespaces)

        cells: list[CellOutcome] = []
        for namespace in namespaces:
            if cancelled():
                raise CancellationError
            cells.append(
                evaluate(
                    document.content,
                    namespace,
                    loaded.rule_set,
                    loaded.store,
                    trace=self.config.trace,
                )
            )
        return aggregate(document.path, cells)

    def _evaluate_all(
        self,
        documents: Sequence[InputDocument],
        namespaces: Sequence[str],
        loaded: LoadedPolicies,
        cancel: threading.Event,
    ) -> RunResult:
        results: list[CheckResult | None] = [None] * len(documents)

        stop = threading.Event()

        def cancelled() -> bool:
            return cancel.is_set() or stop.is_set()

        with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
            pending: dict[Future[CheckResult], int] = {}
            for index, document in enumerate(documents):
                if cancelled():
                    break
                future = pool.submit(
                    self._check_document, document, namespaces, loaded, cancelled
                )
                pending[future] = index

            try:
                while pending:
                    done, _ = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
                    if cancel.is_set():
                        raise CancellationError
                    for future in done:
                        results[pending.pop(future)] = future.result()
            except BaseException:
                stop.set()
                for future in pending:
                    future.cancel()
                raise

        if cancel.is_set() or any(r is None for r in results):
            raise CancellationError

        return tuple(r for r in results if r is not None)
