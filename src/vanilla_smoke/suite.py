"""
Dependency-ordered smoke case runner.

Cases are registered on a SmokeSuite with the cases they depend on. A run
executes them one at a time in dependency order (declaration order breaks
ties), hands each case the return values of its dependencies, and skips any
case whose dependency did not pass.

Example:
    ```python
    suite = SmokeSuite("forum")

    @suite.case
    def register(ctx):
        return ctx.api.post("/entry/register.json", {...}).body

    @suite.case(depends=["register"])
    def profile(ctx, user):
        ...

    report = suite.run(SuiteContext(api))
    ```
"""

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Type, Union

from vanilla_smoke.exceptions import SuiteDefinitionError, SuiteStateError
from vanilla_smoke.report import CaseResult, CaseStatus, SuiteReport

logger = logging.getLogger(__name__)

MessageMatcher = Union[str, "re.Pattern[str]", Callable[[str], bool]]


def error_message(exc: BaseException) -> str:
    """The error text without decorations such as the HTTP status."""
    return getattr(exc, "message", None) or str(exc)


@dataclass(frozen=True)
class ExpectedError:
    """
    A failure a negative case must end with.

    Args:
        kind: Exception class the case must raise (subclasses match)
        match: Regex searched in the error message, or a predicate over it
    """

    kind: Type[BaseException] = Exception
    match: Optional[MessageMatcher] = None

    def matches(self, exc: BaseException) -> bool:
        if not isinstance(exc, self.kind):
            return False
        if self.match is None:
            return True
        message = error_message(exc)
        if callable(self.match):
            return bool(self.match(message))
        return re.search(self.match, message) is not None

    def describe(self) -> str:
        if self.match is None:
            return self.kind.__name__
        if callable(self.match):
            return f"{self.kind.__name__} matching {getattr(self.match, '__name__', 'predicate')}"
        pattern = self.match.pattern if isinstance(self.match, re.Pattern) else self.match
        return f"{self.kind.__name__} matching {pattern!r}"


@dataclass
class SmokeCase:
    name: str
    func: Callable[..., Any]
    depends: Sequence[str] = ()
    expects: Optional[ExpectedError] = None
    description: str = ""
    order: int = 0


class SuiteContext:
    """
    State threaded through one suite run.

    ``results`` holds the return value of every passed case. ``remember``
    stores suite-wide values that may be set only once per run.
    """

    def __init__(self, api: Any = None):
        self.api = api
        self.results: Dict[str, Any] = {}
        self._state: Dict[str, Any] = {}

    def remember(self, key: str, value: Any) -> Any:
        if key in self._state:
            raise SuiteStateError(f"Suite state {key!r} is already set")
        self._state[key] = value
        return value

    def recall(self, key: str) -> Any:
        try:
            return self._state[key]
        except KeyError:
            raise SuiteStateError(f"Suite state {key!r} has not been set") from None

    def has(self, key: str) -> bool:
        return key in self._state


class SmokeSuite:
    """A named, ordered collection of smoke cases"""

    def __init__(self, name: str):
        self.name = name
        self._cases: Dict[str, SmokeCase] = {}

    def __len__(self) -> int:
        return len(self._cases)

    def __contains__(self, name: str) -> bool:
        return name in self._cases

    @property
    def cases(self) -> List[SmokeCase]:
        """Cases in declaration order."""
        return list(self._cases.values())

    def add(
        self,
        func: Callable[..., Any],
        *,
        name: Optional[str] = None,
        depends: Iterable[str] = (),
        expects: Optional[ExpectedError] = None,
    ) -> SmokeCase:
        case_name = name or func.__name__
        if case_name in self._cases:
            raise SuiteDefinitionError(f"Case {case_name!r} is already registered in suite {self.name!r}")
        doc = (func.__doc__ or "").strip()
        case = SmokeCase(
            name=case_name,
            func=func,
            depends=tuple(depends),
            expects=expects,
            description=doc.splitlines()[0] if doc else "",
            order=len(self._cases),
        )
        self._cases[case_name] = case
        return case

    def case(
        self,
        func: Optional[Callable[..., Any]] = None,
        *,
        name: Optional[str] = None,
        depends: Iterable[str] = (),
        expects: Optional[ExpectedError] = None,
    ):
        """
        Register a case function; usable bare or with arguments.

        The function is called as ``func(ctx, *values)`` where ``values`` are
        the return values of ``depends`` in the order given.
        """
        if func is not None:
            self.add(func, name=name, depends=depends, expects=expects)
            return func

        def decorator(f: Callable[..., Any]) -> Callable[..., Any]:
            self.add(f, name=name, depends=depends, expects=expects)
            return f

        return decorator

    def _with_dependencies(self, names: Iterable[str]) -> Set[str]:
        selected: Set[str] = set()
        stack = list(names)
        while stack:
            name = stack.pop()
            if name in selected:
                continue
            if name not in self._cases:
                raise SuiteDefinitionError(f"Unknown case {name!r} in suite {self.name!r}")
            selected.add(name)
            stack.extend(self._cases[name].depends)
        return selected

    def execution_order(self, only: Optional[Iterable[str]] = None) -> List[SmokeCase]:
        """
        Topologically sort the cases, breaking ties by declaration order.

        Args:
            only: Run just these cases and whatever they depend on

        Raises:
            SuiteDefinitionError: On an unknown dependency or a cycle
        """
        for case in self._cases.values():
            for dep in case.depends:
                if dep not in self._cases:
                    raise SuiteDefinitionError(f"Case {case.name!r} depends on unknown case {dep!r}")

        selected = self._with_dependencies(only) if only is not None else set(self._cases)
        pending = {name: set(self._cases[name].depends) for name in selected}

        order: List[SmokeCase] = []
        while pending:
            ready = [self._cases[name] for name, deps in pending.items() if not deps]
            if not ready:
                raise SuiteDefinitionError(
                    f"Dependency cycle among cases: {', '.join(sorted(pending))}"
                )
            case = min(ready, key=lambda c: c.order)
            order.append(case)
            del pending[case.name]
            for deps in pending.values():
                deps.discard(case.name)
        return order

    def run(self, ctx: SuiteContext, only: Optional[Iterable[str]] = None) -> SuiteReport:
        """
        Run the cases sequentially and report every outcome.

        Failures never stop the run; they only cause dependents to be skipped.
        """
        order = self.execution_order(only)
        report = SuiteReport(suite=self.name)
        results: Dict[str, CaseResult] = {}
        logger.info("Running suite %s: %d case(s)", self.name, len(order))

        for case in order:
            result = CaseResult(name=case.name, description=case.description)
            results[case.name] = result
            report.results.append(result)

            unmet = [dep for dep in case.depends if results[dep].status != CaseStatus.PASSED]
            if unmet:
                result.status = CaseStatus.SKIPPED
                result.skipped_because = unmet
                logger.warning("SKIP %s: needs %s", case.name, ", ".join(unmet))
                continue

            self._run_case(case, ctx, result)

        report.finished_at = datetime.now()
        logger.info(
            "Suite %s finished: %d passed, %d failed, %d skipped",
            self.name, report.passed, report.failed, report.skipped,
        )
        return report

    def _run_case(self, case: SmokeCase, ctx: SuiteContext, result: CaseResult) -> None:
        args = [ctx.results[dep] for dep in case.depends]
        result.status = CaseStatus.RUNNING
        logger.info("RUN  %s", case.name)
        started = time.perf_counter()
        try:
            value = case.func(ctx, *args)
        except Exception as e:
            result.duration = time.perf_counter() - started
            if case.expects is not None and case.expects.matches(e):
                result.status = CaseStatus.PASSED
                ctx.results[case.name] = None
                logger.info("PASS %s (raised %s: %s)", case.name, type(e).__name__, error_message(e))
                return
            result.status = CaseStatus.FAILED
            result.error_type = "AssertionError" if isinstance(e, AssertionError) else type(e).__name__
            result.error_message = error_message(e)
            if case.expects is not None:
                result.error_message = f"expected {case.expects.describe()}, got {type(e).__name__}: {error_message(e)}"
            logger.error("FAIL %s: %s", case.name, result.error_message, exc_info=not isinstance(e, AssertionError))
            return

        result.duration = time.perf_counter() - started
        if case.expects is not None:
            result.status = CaseStatus.FAILED
            result.error_type = "ExpectedErrorNotRaised"
            result.error_message = f"expected {case.expects.describe()}, but the case completed"
            logger.error("FAIL %s: %s", case.name, result.error_message)
            return

        result.status = CaseStatus.PASSED
        result.value = value
        ctx.results[case.name] = value
        logger.info("PASS %s (%.2fs)", case.name, result.duration)
