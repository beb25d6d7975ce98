"""
Tests for command-line logging setup.
"""

import io
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

from log_setup import get_logger, setup_logging


class TestSetupLogging:

    def setup_method(self):
        root = logging.getLogger()
        self._saved = (root.level, list(root.handlers))

    def teardown_method(self):
        root = logging.getLogger()
        root.setLevel(self._saved[0])
        root.handlers[:] = self._saved[1]

    def test_verbose_enables_debug(self):
        stream = io.StringIO()
        setup_logging(verbose=True, stream=stream)
        get_logger('render_buffer').debug("Read %d byte(s)", 9)
        assert "[DEBUG] render_buffer: Read 9 byte(s)" in stream.getvalue()

    def test_quiet_by_default(self):
        stream = io.StringIO()
        setup_logging(stream=stream)
        get_logger('render_buffer').debug("hidden")
        get_logger('style_resolver').warning("Ignoring unknown color")
        output = stream.getvalue()
        assert "hidden" not in output
        assert "[WARNING] style_resolver: Ignoring unknown color" in output

    def test_no_duplicate_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_default_logger_name(self):
        assert get_logger().name == 'bittable'
