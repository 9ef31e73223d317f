"""Integration tests for the self-test harness.

These tests spawn real child processes, using the running Python
interpreter as the tool under test, and drive the selftest command end
to end against test-definition files written to temporary directories.

Test Coverage:
- Process Sessions: output matching, stdin, exit codes, signals, timeouts
- Selftest Journey: full CLI runs, pass-state persistence and --changed

These tests are slower than unit tests. Select or skip them with the
integration marker:
    pytest -m integration
    pytest -m "not integration"
"""
