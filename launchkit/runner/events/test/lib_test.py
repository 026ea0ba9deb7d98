#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import json
import logging
import unittest
from unittest.mock import MagicMock, patch

from launchkit.runner import events
from launchkit.runner.events import _get_or_create_logger, LaunchEvent, log_event, record
from launchkit.runner.events.handlers import get_logging_handler

SESSION_ID = "123"


class LaunchEventLibTest(unittest.TestCase):
    def setUp(self) -> None:
        events._events_logger = None

    def tearDown(self) -> None:
        events._events_logger = None

    @patch("launchkit.runner.events.get_logging_handler")
    def test_get_or_create_logger(self, logging_handler_mock: MagicMock) -> None:
        logging_handler_mock.return_value = logging.NullHandler()
        logger = _get_or_create_logger("test_destination")
        self.assertIsNotNone(logger)
        self.assertFalse(logger.propagate)
        self.assertEqual(1, len(logger.handlers))
        self.assertIsInstance(logger.handlers[0], logging.NullHandler)
        # only the first destination is honored
        self.assertIs(logger, _get_or_create_logger("console"))

    def test_get_logging_handler(self) -> None:
        self.assertIsInstance(get_logging_handler("null"), logging.NullHandler)
        self.assertIsInstance(get_logging_handler("console"), logging.StreamHandler)
        with self.assertRaises(ValueError):
            get_logging_handler("kafka")

    def test_event_deser(self) -> None:
        event = LaunchEvent(
            session="test_session",
            scheduler="local",
            api="stage_spec",
            app_name="app",
            run_id="r1",
            runcfg=json.dumps({"master_memory_mb": 512}),
        )
        deser_event = LaunchEvent.deserialize(event.serialize())
        self.assertEqual(event, deser_event)
        self.assertIs(event, LaunchEvent.deserialize(event))
        self.assertEqual(event.serialize(), str(event))

    @patch("launchkit.runner.events._get_or_create_logger")
    def test_record(self, get_logger_mock: MagicMock) -> None:
        event = LaunchEvent(session=SESSION_ID, scheduler="local", api="start")
        record(event)
        get_logger_mock.return_value.info.assert_called_once_with(event.serialize())

    @patch("launchkit.runner.events._get_or_create_logger")
    def test_record_unserializable(self, get_logger_mock: MagicMock) -> None:
        # pyre-ignore[6] intentionally not serializable
        event = LaunchEvent(session=SESSION_ID, scheduler="local", api=object())
        with self.assertLogs("launchkit.runner.events", level="ERROR"):
            record(event)
        get_logger_mock.return_value.info.assert_not_called()


@patch("launchkit.runner.events.record")
@patch("launchkit.runner.events.get_session_id_or_create_new")
class LogEventTest(unittest.TestCase):
    def test_create_context(
        self, get_session_id_or_create_new_mock: MagicMock, record_mock: MagicMock
    ) -> None:
        get_session_id_or_create_new_mock.return_value = SESSION_ID
        cfg = json.dumps({"test_key": "test_value"})
        context = log_event(
            "start", "local", app_name="app", run_id="r1", runcfg=cfg
        )
        self.assertEqual(
            LaunchEvent(
                SESSION_ID, "local", "start", app_name="app", run_id="r1", runcfg=cfg
            ),
            context.event,
        )

    def test_record_event(
        self, get_session_id_or_create_new_mock: MagicMock, record_mock: MagicMock
    ) -> None:
        get_session_id_or_create_new_mock.return_value = SESSION_ID
        with log_event("start", "local", app_name="app") as ctx:
            ctx.event.app_id = "app-1"

        record_mock.assert_called_once_with(ctx.event)
        self.assertEqual("app-1", ctx.event.app_id)
        self.assertIsNotNone(ctx.event.wall_time_usec)
        self.assertIsNotNone(ctx.event.cpu_time_usec)
        self.assertIsNotNone(ctx.event.start_epoch_time_usec)
        self.assertIsNone(ctx.event.exception_type)

    def test_record_event_with_exception(
        self, get_session_id_or_create_new_mock: MagicMock, record_mock: MagicMock
    ) -> None:
        get_session_id_or_create_new_mock.return_value = SESSION_ID
        with self.assertRaises(RuntimeError):
            with log_event("stage_spec", "local") as ctx:
                raise RuntimeError("test error")
        self.assertIn("test error", ctx.event.raw_exception)
        self.assertEqual("RuntimeError", ctx.event.exception_type)
        self.assertEqual("test error", ctx.event.exception_message)
        self.assertIn(
            "test_record_event_with_exception",
            json.loads(ctx.event.exception_source_location)["name"],
        )
        record_mock.assert_called_once()
