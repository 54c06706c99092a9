import io
import json
import logging
import unittest

from jrdev.core.logging import EventContextFilter, EventJSONFormatter, event_context


class TestEventLogging(unittest.TestCase):
    def setUp(self):
        self.stream = io.StringIO()
        handler = logging.StreamHandler(self.stream)
        handler.addFilter(EventContextFilter())
        handler.setFormatter(
            EventJSONFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s",
                rename_fields={"asctime": "timestamp", "levelname": "level"},
            )
        )
        self.logger = logging.getLogger("jrdev.tests.logging")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        self.logger.addHandler(handler)
        self.addCleanup(self.logger.removeHandler, handler)

    def records(self):
        return [json.loads(line) for line in self.stream.getvalue().splitlines()]

    def test_bound_event_fields_are_logged(self):
        with event_context(delivery_id="delivery-1", installation_id=7):
            self.logger.info("Running job")

        record = self.records()[0]
        self.assertEqual(record["message"], "Running job")
        self.assertEqual(record["level"], "INFO")
        self.assertEqual(record["delivery_id"], "delivery-1")
        self.assertEqual(record["installation_id"], 7)

    def test_fields_are_unbound_after_the_event(self):
        with event_context(delivery_id="delivery-1", installation_id=7):
            pass
        self.logger.warning("Idle")

        record = self.records()[0]
        self.assertNotIn("delivery_id", record)
        self.assertNotIn("installation_id", record)

    def test_nested_context_keeps_outer_delivery(self):
        with event_context(delivery_id="delivery-1"):
            with event_context(installation_id=7):
                self.logger.info("inner")
            self.logger.info("outer")

        inner, outer = self.records()
        self.assertEqual(inner["delivery_id"], "delivery-1")
        self.assertEqual(inner["installation_id"], 7)
        self.assertEqual(outer["delivery_id"], "delivery-1")
        self.assertNotIn("installation_id", outer)


if __name__ == "__main__":
    unittest.main()
