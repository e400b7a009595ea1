"""
Tests for logging contract enforcement.

No kwargs to logger; only extra={"context": {...}} allowed.
"""

import ast
import json
import logging
import unittest
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List

from core.logging import ConsoleFormatter, StructuredFormatter, get_logger

PROJECT_ROOT = Path(__file__).parent.parent.parent
SCANNED_PACKAGES = ("core", "chains", "execution", "monitoring", "strategy")
LOG_METHODS = ("debug", "info", "warning", "error", "critical", "exception")


class TestLoggingContractEnforcement(unittest.TestCase):
    """AST-based tests for logging contract."""

    ALLOWED_KWARGS = {"exc_info", "extra", "stack_info", "stacklevel"}

    def _find_logger_violations(self, source_code: str) -> List[Dict[str, Any]]:
        """Find logger calls with invalid kwargs or a malformed extra."""
        violations = []
        tree = ast.parse(source_code)

        for node in ast.walk(tree):
            if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
                continue
            if node.func.attr not in LOG_METHODS:
                continue

            obj = node.func.value
            if isinstance(obj, ast.Name):
                is_logger = "log" in obj.id.lower()
            elif isinstance(obj, ast.Attribute):
                is_logger = "log" in obj.attr.lower()
            else:
                is_logger = False
            if not is_logger:
                continue

            for kw in node.keywords:
                if kw.arg and kw.arg not in self.ALLOWED_KWARGS:
                    violations.append({"line": node.lineno, "method": node.func.attr, "problem": kw.arg})
                if kw.arg == "extra" and isinstance(kw.value, ast.Dict):
                    keys = [k.value for k in kw.value.keys if isinstance(k, ast.Constant)]
                    if keys != ["context"]:
                        violations.append({"line": node.lineno, "method": node.func.attr, "problem": f"extra keys {keys}"})

        return violations

    def test_packages_have_no_invalid_kwargs(self):
        files_scanned = 0
        all_violations = []

        for package in SCANNED_PACKAGES:
            for filepath in (PROJECT_ROOT / package).rglob("*.py"):
                source = filepath.read_text(encoding="utf-8")
                for v in self._find_logger_violations(source):
                    all_violations.append(f"  {filepath.relative_to(PROJECT_ROOT)}:{v['line']}: "
                                          f"logger.{v['method']}(...) {v['problem']}")
                files_scanned += 1

        self.assertGreater(files_scanned, 0)
        if all_violations:
            self.fail(f"Found {len(all_violations)} logging violations:\n" + "\n".join(all_violations))

    def test_detector_catches_violation(self):
        source = 'logger.info("x", trade_id="t1")\nlogger.info("y", extra={"trade_id": "t1"})\n'
        self.assertEqual(len(self._find_logger_violations(source)), 2)


class TestLoggingContextCapture(unittest.TestCase):
    """Context reaches the log record and both formatters."""

    def setUp(self):
        self.captured_records = []

        class CapturingHandler(logging.Handler):
            def __init__(self, records_list):
                super().__init__()
                self.records = records_list

            def emit(self, record):
                self.records.append(record)

        self.base = logging.getLogger(f"test_capture_{id(self)}")
        self.base.setLevel(logging.DEBUG)
        self.base.handlers = []
        self.base.propagate = False
        self.base.addHandler(CapturingHandler(self.captured_records))

    def test_adapter_merges_default_context(self):
        logger = get_logger(self.base.name, component="risk")
        logger.info("Trade rejected", extra={"context": {"risk_score": 70}})

        record = self.captured_records[0]
        self.assertEqual(record.context, {"component": "risk", "risk_score": 70})

    def test_call_context_wins(self):
        logger = get_logger(self.base.name, cycle=1)
        logger.info("x", extra={"context": {"cycle": 2}})
        self.assertEqual(self.captured_records[0].context["cycle"], 2)

    def test_structured_formatter_renders_json(self):
        logger = get_logger(self.base.name)
        logger.warning("Cycle skipped", extra={"context": {"code": "NOT_PROFITABLE"}})

        line = json.loads(StructuredFormatter().format(self.captured_records[0]))
        self.assertEqual(line["level"], "WARNING")
        self.assertEqual(line["message"], "Cycle skipped")
        self.assertEqual(line["context"]["code"], "NOT_PROFITABLE")

    def test_console_formatter_truncates_context(self):
        logger = get_logger(self.base.name)
        logger.info("Many", extra={"context": {f"k{i}": i for i in range(6)}})

        text = ConsoleFormatter().format(self.captured_records[0])
        self.assertIn("k0=0", text)
        self.assertIn("(+2 more)", text)

    def test_exc_info_with_context(self):
        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(StructuredFormatter())
        self.base.addHandler(handler)

        logger = get_logger(self.base.name)
        try:
            raise ValueError("Test error")
        except ValueError:
            logger.error("Caught error", exc_info=True, extra={"context": {"operation": "test"}})

        self.assertIn("ValueError", stream.getvalue())
        self.assertEqual(self.captured_records[0].context["operation"], "test")


if __name__ == "__main__":
    unittest.main()
