"""
GPU Job Scheduler Test Suite.

- Resource monitor parsing and failure tests
- Control channel decoding, precedence and hand-off tests
- Queue, job runner and reconciler tests
- Supervisor state transition and scenario tests
- Invariant tests for queue and allow-list properties
"""
