"""Remote data store connection configuration.

The API key is a secret: set PORTALSYNC_REMOTE__API_KEY in the environment,
never in TOML files.
"""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr

RemoteBackend = Literal["embedded", "http"]


class RemoteConfig(BaseModel):
    """Connection settings for the remote data store."""

    backend: RemoteBackend = Field(
        default="embedded",
        description="'embedded' runs the version-checked store in process, 'http' talks to the hosted store",
    )
    base_url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the remote store",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Project API key sent with every request",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds",
    )
    rpc_prefix: str = Field(
        default="/rest/v1/rpc",
        description="Path prefix of RPC endpoints",
    )
    table_prefix: str = Field(
        default="/rest/v1",
        description="Path prefix of table endpoints",
    )
