from typing import List, Optional

from pydantic import BaseModel, Field


class VerifierOptions(BaseModel):
    """Everything a provider verification run needs, passed explicitly."""

    provider: str
    provider_base_url: str
    pact_sources: List[str] = Field(min_length=1)

    state_setup_url: Optional[str] = None
    state_discovery_url: Optional[str] = None

    broker_url: Optional[str] = None
    broker_username: Optional[str] = None
    broker_password: Optional[str] = None
    publish_verification_results: bool = False
    provider_version: Optional[str] = None
    provider_tags: List[str] = Field(default_factory=list)

    request_timeout: float = Field(default=10.0, gt=0)
    timeout: float = Field(default=60.0, gt=0)

    def broker_auth(self):
        if self.broker_username:
            return (self.broker_username, self.broker_password or "")
        return None
