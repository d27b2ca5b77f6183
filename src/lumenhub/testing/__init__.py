"""
Test doubles for lumenhub.

Usage in a conftest.py:

    from lumenhub.testing import RecordingBuilder, RecordingDriver

    @pytest.fixture
    def builder():
        return RecordingBuilder()
"""

from lumenhub.testing.mocks import (
    CallbackAction,
    CallRecord,
    ManualTrigger,
    RecordingBuilder,
    RecordingDriver,
    RecordingTransport,
)

__all__ = [
    "CallRecord",
    "RecordingTransport",
    "RecordingDriver",
    "RecordingBuilder",
    "ManualTrigger",
    "CallbackAction",
]
