"""Core dispatch and orchestration package.

Architectural role:
    Sits between API/CLI entrypoints and the provider adapters.

Composition:
    - `types`: shared request/result/catalog value types and wire helpers.
    - `environment`: desktop vs web runtime detection.
    - `router`: environment-aware dispatch (direct or proxied).
    - `batch`: concurrent execution with input-order results.
    - `engine`: comparison and dataset workflows.

Determinism and side effects:
    Package import itself is deterministic and side-effect free.
"""
