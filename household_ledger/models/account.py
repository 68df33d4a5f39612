"""Account models."""

from typing import Optional

from pydantic import BaseModel, Field


class AuthenticatedUser(BaseModel):
    """A signed-in user as returned by the authentication provider."""

    uid: str = Field(..., description="Provider user ID (localId)")
    email: str
    display_name: str = ""
    id_token: Optional[str] = Field(
        default=None,
        repr=False,
        description="Short-lived ID token for profile calls"
    )

    @property
    def label(self) -> str:
        """Name shown to other household members."""
        return self.display_name or self.email
