"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(port=3000, log_level="debug")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    root_path: str = ""

    # Development
    debug: bool = False

    # Logging (forwarded to uvicorn; wren itself only emits records)
    log_level: str = "info"
