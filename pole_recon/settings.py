"""Configuration defaults.

Values can be overridden from the environment (or a .env file) with the
POLE_RECON_* variables, and the CLI flags override both.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

DEFAULT_THRESHOLD = 5.0
MIN_THRESHOLD = 1.0
MAX_THRESHOLD = 20.0

# node_type values that count as a pole in the Katapult export (case-insensitive)
POLE_NODE_TYPES = frozenset({"pole"})

# a header row needs at least this many populated cells
HEADER_MIN_CELLS = 5

CLIENT_NAME = "Charter/Spectrum"

NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
USER_AGENT = "PoleRecon/1.0"
GEOCODER_TIMEOUT = 10.0


def check_threshold(threshold: float) -> float:
    threshold = float(threshold)
    if not MIN_THRESHOLD <= threshold <= MAX_THRESHOLD:
        raise ValueError(
            f"threshold must be between {MIN_THRESHOLD:g} and {MAX_THRESHOLD:g}, got {threshold:g}"
        )
    return threshold


@dataclass
class Settings:
    threshold: float = DEFAULT_THRESHOLD
    pole_node_types: frozenset[str] = field(default=POLE_NODE_TYPES)
    header_min_cells: int = HEADER_MIN_CELLS
    client_name: str = CLIENT_NAME
    geocoder_url: str = NOMINATIM_REVERSE_URL
    user_agent: str = USER_AGENT
    geocoder_timeout: float = GEOCODER_TIMEOUT

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            # .env next to where the tool is run, not next to the package
            load_dotenv(find_dotenv(usecwd=True))
        env = os.environ
        return cls(
            threshold=check_threshold(env.get("POLE_RECON_THRESHOLD", DEFAULT_THRESHOLD)),
            client_name=env.get("POLE_RECON_CLIENT", CLIENT_NAME),
            geocoder_url=env.get("POLE_RECON_GEOCODER_URL", NOMINATIM_REVERSE_URL),
            user_agent=env.get("POLE_RECON_USER_AGENT", USER_AGENT),
            geocoder_timeout=float(env.get("POLE_RECON_GEOCODER_TIMEOUT", GEOCODER_TIMEOUT)),
        )
