"""
Identity attached to a connection at admission time.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Identity classes the relay assigns itself; anything else comes from the backend
LOGS_VIEWER = "logs_viewer"
DEVELOPER = "dev"
DEFAULT_CLASS = "user"


@dataclass(frozen=True)
class Identity:
    """
    Result of admission: an opaque id, a coarse class tag and the user
    profile exactly as the backend returned it (forwarded to peers as `user`).
    """
    id: Optional[Any]
    identity_class: str
    profile: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def personal_room(self) -> Optional[str]:
        if self.id is None or self.id == "":
            return None
        return f"{self.identity_class}:{self.id}"

    @property
    def is_logs_viewer(self) -> bool:
        return self.identity_class == LOGS_VIEWER

    def as_user(self) -> Dict[str, Any]:
        """User payload sent on the wire."""
        user = dict(self.profile)
        user.setdefault("id", self.id)
        return user


def logs_viewer_identity() -> Identity:
    return Identity(
        id="logs-viewer",
        identity_class=LOGS_VIEWER,
        profile={"id": "logs-viewer", "type": LOGS_VIEWER, "name": "Logs Viewer"},
    )


def developer_identity() -> Identity:
    return Identity(
        id="dev-user",
        identity_class=DEVELOPER,
        profile={"id": "dev-user", "type": DEVELOPER, "name": "Dev User"},
    )
