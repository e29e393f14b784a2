"""
Pytest configuration for dospec tests.

Provides the shared ``random`` effect and its two-trace program used across
verifier and executor tests.
"""

import pytest

from dospec import declare, program, returns, throws, trace, yields


@pytest.fixture
def random_effect():
    return declare("random")


@pytest.fixture
def random_program(random_effect):
    """Scripted `random` effect: one trace returns 42, one raises."""

    return program(
        [
            trace([yields(random_effect.takes().returns(42)), returns(42)]),
            trace(
                [
                    yields(random_effect.takes().throws(RuntimeError("random error"))),
                    throws(RuntimeError("random error")),
                ]
            ),
        ]
    )
