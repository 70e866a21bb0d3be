"""
Server configuration and the two run profiles.

The bind address is a constant; there is no environment-variable surface.
"""

from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict

HOST = "127.0.0.1"
PORT = 8686

# Resolved against the working directory, like the front-end build output
STATIC_DIR = Path("static")
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


class ServerConfig(BaseModel):
    """Immutable settings for one server process"""
    model_config = ConfigDict(frozen=True)

    profile: str = "full"
    host: str = HOST
    port: int = PORT
    serve_static: bool = True
    error_pages: bool = True
    request_tracing: bool = True
    static_dir: Path = STATIC_DIR
    templates_dir: Path = TEMPLATES_DIR
    # Seconds to wait for in-flight requests on shutdown; None waits forever
    drain_timeout: Optional[float] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


FULL_PROFILE = ServerConfig(profile="full")

REDUCED_PROFILE = ServerConfig(
    profile="reduced",
    serve_static=False,
    error_pages=False,
    request_tracing=False,
)

PROFILES: Dict[str, ServerConfig] = {
    FULL_PROFILE.profile: FULL_PROFILE,
    REDUCED_PROFILE.profile: REDUCED_PROFILE,
}


def get_profile(name: str) -> ServerConfig:
    """Look up a profile by name, raising ValueError for unknown names"""
    try:
        return PROFILES[name]
    except KeyError:
        allowed = ", ".join(sorted(PROFILES))
        raise ValueError(f"Unknown profile '{name}'. Allowed profiles: {allowed}") from None
