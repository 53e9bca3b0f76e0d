"""
Runtime configuration read from environment variables
"""

import os
from dataclasses import dataclass
from typing import Optional


def parse_port(env_var: str, default: int) -> int:
    """Parse port from environment variable.

    Handles Kubernetes service discovery format like 'tcp://10.43.27.255:8080'
    as well as plain port numbers.
    """
    value = os.getenv(env_var, str(default))
    if value.startswith("tcp://"):
        # Kubernetes service discovery format: tcp://ip:port
        return int(value.split(":")[-1])
    return int(value)


def parse_bool(env_var: str, default: bool = False) -> bool:
    return os.getenv(env_var, str(default)).lower() in ("1", "true", "yes")


@dataclass
class Settings:
    """Settings of a function server"""
    function: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            function=os.getenv("FNSCOPE_FUNCTION") or None,
            host=os.getenv("HOST", "0.0.0.0"),
            port=parse_port("PORT", 8080),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
