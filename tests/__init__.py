"""
Tests Package - Unit and Integration Tests

- test_cursor / test_ledger:   durable stores
- test_dispatcher:             renderer invocation against real subprocesses
- test_pinboard:               service client over httpx.MockTransport
- test_pipeline:               end-to-end runs with fake service and renderer
- test_scheduler / test_logging / test_config: entry point and ambient stack
"""
