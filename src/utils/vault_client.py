"""
HashiCorp Vault client for fetching source credentials

Reads secrets from the KV v2 secrets engine over the HTTP API.
"""

import logging
import os
import re
from typing import Any

import requests

logger = logging.getLogger(__name__)

SAFE_SECRET_PATH = re.compile(r"^[a-zA-Z0-9/_-]+$")


class VaultClient:
    """
    HashiCorp Vault client for secrets management (KV v2).
    """

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_token: str | None = None,
        namespace: str | None = None,
        timeout: float = 10.0,
    ):
        """
        Initialize Vault client

        Args:
            vault_addr: Vault server address (default: VAULT_ADDR env var)
            vault_token: Vault token (default: VAULT_TOKEN env var)
            namespace: Vault namespace (Vault Enterprise)
            timeout: HTTP timeout in seconds

        Raises:
            ValueError: If the address or token is missing
        """
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.namespace = namespace or os.getenv("VAULT_NAMESPACE")
        self.timeout = timeout

        if not self.vault_addr:
            raise ValueError(
                "Vault address not provided. Set VAULT_ADDR or pass vault_addr."
            )
        if not self.vault_token:
            raise ValueError(
                "Vault token not provided. Set VAULT_TOKEN or pass vault_token."
            )

        self.vault_addr = self.vault_addr.rstrip("/")
        self.headers = {
            "X-Vault-Token": self.vault_token,
            "Content-Type": "application/json",
        }
        if self.namespace:
            self.headers["X-Vault-Namespace"] = self.namespace

    @staticmethod
    def _kv2_path(secret_path: str) -> str:
        if not secret_path or not isinstance(secret_path, str):
            raise ValueError("secret_path must be a non-empty string")

        if ".." in secret_path or secret_path.startswith("/"):
            raise ValueError(f"Invalid secret_path: {secret_path}")

        if not SAFE_SECRET_PATH.match(secret_path):
            raise ValueError(
                f"Invalid secret_path: {secret_path}. "
                "Only alphanumeric characters, slashes, underscores, and hyphens are allowed."
            )

        # KV v2 wants /data/ after the mount point
        if "/data/" in secret_path:
            return secret_path
        mount, _, rest = secret_path.partition("/")
        return f"{mount}/data/{rest}" if rest else f"{mount}/data"

    def get_secret(self, secret_path: str) -> dict[str, Any]:
        """
        Fetch a secret's key/value data.

        Args:
            secret_path: Path such as "secret/reconcile/primary"

        Raises:
            ValueError: If the path is invalid or the secret is missing/empty
            requests.RequestException: If the Vault request fails
        """
        path = self._kv2_path(secret_path)
        url = f"{self.vault_addr}/v1/{path}"

        logger.debug(f"Fetching secret from: {url}")
        response = requests.get(url, headers=self.headers, timeout=self.timeout)

        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {path}")
        response.raise_for_status()

        secret_data = response.json().get("data", {}).get("data", {})
        if not secret_data:
            raise ValueError(f"No data found in secret at path: {path}")

        return secret_data

    def get_source_credentials(
        self,
        secret_path: str,
        required_fields: tuple[str, ...] = ("password",),
    ) -> dict[str, Any]:
        """
        Fetch credentials for one source and check required keys are present.

        Raises:
            ValueError: If any required field is missing from the secret
        """
        secret_data = self.get_secret(secret_path)

        missing = [name for name in required_fields if name not in secret_data]
        if missing:
            raise ValueError(
                f"Missing required fields in secret {secret_path}: {', '.join(missing)}"
            )

        logger.info(f"Fetched source credentials from Vault path {secret_path}")
        return secret_data

    def health_check(self) -> bool:
        """True if Vault answers its health endpoint as active or standby."""
        try:
            response = requests.get(
                f"{self.vault_addr}/v1/sys/health", timeout=5
            )
            return response.status_code in (200, 429, 472, 473)
        except requests.RequestException as e:
            logger.error(f"Vault health check failed: {e}")
            return False
