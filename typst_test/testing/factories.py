"""Test factories for generating test data."""

from pathlib import Path

from polyfactory import Use
from polyfactory.factories import DataclassFactory

from typst_test.models.result import TestResult
from typst_test.models.test import TestId, TestRecord


class TestResultFactory(DataclassFactory[TestResult]):
    """Factory for TestResult."""

    __model__ = TestResult

    test_id = Use(lambda: TestId("fixture/test"))
    status = "passed"
    state = "passed"
    message = None
    diff_locations = ()


class TestRecordFactory(DataclassFactory[TestRecord]):
    """Factory for TestRecord."""

    __model__ = TestRecord

    id = Use(lambda: TestId("fixture/test"))
    kind = "compile-only"
    directory = Use(lambda: Path("tests/fixture/test"))
    annotations = ()
