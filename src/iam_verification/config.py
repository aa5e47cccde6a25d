"""Provider configuration.

`IamConfig` is passed to every `validate` call. It is plain data: nothing in
the library mutates or stores it beyond the call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv


@dataclass(frozen=True, slots=True)
class IamConfig:
    """Where tokens come from and who they are for.

    Attributes:
        server_url: IAM base URL (e.g. "https://iam.example.com"). Discovery
            is fetched from ``{server_url}/.well-known/openid-configuration``.
        client_id: OAuth2 client ID, expected as the token audience.
        org_name: Organization assumed for subjects that carry no
            ``org/`` prefix.
        client_secret: Client secret for confidential clients. Not used for
            verification.
        app_name: Application name. Not used for verification.
    """

    server_url: str
    client_id: str
    org_name: str | None = None
    client_secret: str | None = None
    app_name: str | None = None

    @classmethod
    def from_env(cls, prefix: str = "IAM_") -> IamConfig:
        """Build a config from ``{prefix}SERVER_URL``, ``{prefix}CLIENT_ID`` etc.

        A ``.env`` file in the working directory is loaded first; variables
        already set in the environment win.

        Raises:
            ValueError: SERVER_URL or CLIENT_ID is missing or empty.
        """
        load_dotenv(find_dotenv(usecwd=True))

        def env(name: str) -> str | None:
            return os.environ.get(f"{prefix}{name}") or None

        server_url = env("SERVER_URL")
        client_id = env("CLIENT_ID")
        missing = [
            f"{prefix}{name}"
            for name, value in (("SERVER_URL", server_url), ("CLIENT_ID", client_id))
            if value is None
        ]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        return cls(
            server_url=server_url,  # type: ignore[arg-type]
            client_id=client_id,  # type: ignore[arg-type]
            org_name=env("ORG_NAME"),
            client_secret=env("CLIENT_SECRET"),
            app_name=env("APP_NAME"),
        )
