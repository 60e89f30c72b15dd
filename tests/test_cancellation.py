"""
Tests for run cancellation tokens.
"""

import pytest
import threading


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_new_token_is_not_cancelled(self):
        from utils.cancellation import CancellationToken

        token = CancellationToken("run-1")

        assert token.is_cancelled is False
        assert token.request is None
        token.raise_if_cancelled(0)

    def test_cancel_records_request(self):
        """The request carries the run id and the message."""
        from utils.cancellation import CancellationToken

        token = CancellationToken("run-1")

        assert token.cancel("operator stop") is True
        assert token.is_cancelled is True
        assert token.request.simulation_id == "run-1"
        assert token.request.message == "operator stop"

    def test_first_request_wins(self):
        from utils.cancellation import CancellationToken

        token = CancellationToken("run-1")
        token.cancel("first")

        assert token.cancel("second") is False
        assert token.request.message == "first"

    def test_raise_reports_step(self):
        """The error names the run and the step that was not executed."""
        from utils.cancellation import CancellationToken, CancellationError

        token = CancellationToken("run-1")
        token.cancel("operator stop")

        with pytest.raises(CancellationError) as excinfo:
            token.raise_if_cancelled(42)

        assert excinfo.value.step == 42
        assert excinfo.value.request is token.request
        assert str(excinfo.value) == "Simulation run-1 cancelled before step 42: operator stop"

    def test_cancel_from_other_thread(self):
        """A cancel issued on another thread is seen by the polling thread."""
        from utils.cancellation import CancellationToken

        token = CancellationToken("run-1")
        worker = threading.Thread(target=token.cancel, args=("from worker",))
        worker.start()
        worker.join()

        assert token.is_cancelled
        assert token.request.message == "from worker"


class TestCancellationError:
    """Tests for CancellationError messages."""

    def test_message_without_request(self):
        from utils.cancellation import CancellationError

        assert str(CancellationError()) == "Simulation cancelled"

    def test_message_without_step(self):
        from utils.cancellation import CancellationError, CancellationRequest

        error = CancellationError(CancellationRequest("run-2"))

        assert str(error) == "Simulation run-2 cancelled"
        assert error.step is None
