"""Observability setup.

Configures Logfire for tracing and logging. Without a LOGFIRE_TOKEN
nothing leaves the machine; spans and logs still work locally.
"""

import logfire


def configure(service_name: str = "callboard", debug: bool = False) -> None:
    """Configure observability.

    Args:
        service_name: Name to identify this service in traces.
        debug: If True, also log to console. Default False (quiet mode).
    """
    logfire.configure(
        service_name=service_name,
        send_to_logfire="if-token-present",
        console=logfire.ConsoleOptions() if debug else False,
    )
