import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Check:
    case: str
    name: str
    passed: bool
    diagnostics: str = ""

    @property
    def label(self):
        if self.name:
            return f"{self.case} - {self.name}"
        return self.case


class Reporter(object):
    """Collects the outcome of every check made while executing test cases.

    A failing check never interrupts execution: it is recorded, logged,
    and the following checks still run.
    """

    def __init__(self):
        self.checks = []

    def __str__(self):
        return self.summary()

    def ok(self, passed, case, name=None, diag=None):
        check = Check(case, name, bool(passed), diag or "")
        self.checks.append(check)
        if check.passed:
            logger.debug("ok - %s", check.label)
        else:
            logger.warning("not ok - %s\n%s", check.label, check.diagnostics)
        return check.passed

    def equal(self, got, expected, case, name=None, diag=None):
        passed = got == expected
        if not passed:
            detail = f"got: {got!r}\nexpected: {expected!r}"
            diag = f"{diag}\n{detail}" if diag else detail
        return self.ok(passed, case, name, diag)

    def fail(self, case, name=None, diag=None):
        return self.ok(False, case, name, diag)

    @property
    def failures(self):
        return [c for c in self.checks if not c.passed]

    @property
    def passed(self):
        return not self.failures

    def summary(self):
        return f"{len(self.checks)} checks, {len(self.failures)} failed"

    def assert_all_passed(self):
        failures = self.failures
        if failures:
            lines = [self.summary()]
            for check in failures:
                lines.append(f"not ok - {check.label}")
                if check.diagnostics:
                    lines.append(check.diagnostics)
            raise AssertionError("\n".join(lines))
