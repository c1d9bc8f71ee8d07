"""OAuth credential models for Garmin Connect."""

import time
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


# Numeric members of the OAuth2 document
_INT_FIELDS = ('expires_at', 'refresh_token_expires_at', 'expires_in', 'refresh_token_expires_in')


@dataclass
class OAuth1Credential:
    """Long-lived (~1 year) token minted from an SSO ticket."""

    oauth_token: str
    oauth_token_secret: str
    mfa_token: Optional[str] = None
    mfa_expiration_timestamp: Optional[str] = None
    domain: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        # Optional members are omitted rather than stored as null
        return {key: value for key, value in data.items() if value not in (None, "")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OAuth1Credential":
        return cls(**_known_fields(cls, data))


@dataclass
class OAuth2Credential:
    """Short-lived bearer credential.

    ``expires_at`` and ``refresh_token_expires_at`` are absolute epoch
    seconds stamped once, when the exchange response was received.
    """

    access_token: str
    refresh_token: str = ""
    expires_at: int = 0
    refresh_token_expires_at: int = 0
    expires_in: int = 0
    refresh_token_expires_in: int = 0
    scope: str = ""
    jti: str = ""
    token_type: str = "Bearer"

    @classmethod
    def from_exchange(cls, payload: Dict[str, Any], received_at: float) -> "OAuth2Credential":
        """Build a credential from an exchange response received at ``received_at``."""
        received = int(received_at)
        expires_in = int(payload.get("expires_in", 0))
        refresh_expires_in = int(payload.get("refresh_token_expires_in", 0))
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token", ""),
            expires_in=expires_in,
            expires_at=received + expires_in,
            refresh_token_expires_in=refresh_expires_in,
            refresh_token_expires_at=received + refresh_expires_in,
            scope=payload.get("scope", ""),
            jti=payload.get("jti", ""),
            token_type=payload.get("token_type", "Bearer"),
        )

    def expired(self, now: Optional[float] = None) -> bool:
        """True once the access token lifetime has elapsed."""
        now = time.time() if now is None else now
        return now >= self.expires_at

    @property
    def bearer(self) -> str:
        return f"Bearer {self.access_token}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OAuth2Credential":
        values = _known_fields(cls, data)
        for name in _INT_FIELDS:
            if name in values:
                values[name] = int(values[name])
        return cls(**values)
