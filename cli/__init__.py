"""Command-line client for the voltage telemetry service.

The typer application lives in ``cli.app``; it is not re-exported here so that
``cli.app`` keeps resolving to the module when its attributes are patched.
"""

__all__: list[str] = []
