"""promptbench API adapter package.

Architectural role:
- Defines the external interaction boundary for the HTTP proxy and the CLI.
- Performs transport-level validation and response shaping.
- Delegates generation to the core dispatch layer.

Scope:
- `http_api`: FastAPI proxy server (the far end of `ProxyDispatcher`).
- `cli`: argparse command-line entrypoint.
"""
