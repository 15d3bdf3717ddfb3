"""Runtime settings and connection credentials.

Settings are read from environment variables (a ``.env`` file is honoured via
python-dotenv). Connection credentials come either from a JSON connection file
or from ``AZURE_*`` environment variables.

Environment Variables:
    GRAPH_BASE_URL: Graph API root (default: https://graph.microsoft.com/beta)
    AZURE_AUTHORITY_URL: Token authority (default: https://login.microsoftonline.com)
    GRAPH_SCOPE: OAuth2 scope (default: https://graph.microsoft.com/.default)
    REMOVER_MAX_CONCURRENCY: Serials processed at once (default: 5)
    REMOVER_GATING_PLATFORM: Operating system that triggers the Autopilot stage (default: windows)
    REMOVER_REQUEST_TIMEOUT: Total seconds per HTTP request (default: 60)
    REMOVER_OUTPUT_DIR: Directory for result files (default: current directory)
    LOG_LEVEL: Logging level for the CLI (default: INFO)

    AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET: credentials used
    when no connection file is given.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .api.auth import DEFAULT_AUTHORITY_URL, DEFAULT_GRAPH_SCOPE
from .api.client import DEFAULT_GRAPH_BASE_URL
from .api.concurrency import DEFAULT_MAX_CONCURRENCY
from .api.exceptions import ConfigurationError, ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_GATING_PLATFORM = "windows"


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}",
            details={"variable": name},
        )


class Settings:
    """Configuration loaded from environment variables."""

    def __init__(self):
        self.graph_base_url = os.getenv("GRAPH_BASE_URL", DEFAULT_GRAPH_BASE_URL).rstrip("/")
        self.authority_url = os.getenv("AZURE_AUTHORITY_URL", DEFAULT_AUTHORITY_URL).rstrip("/")
        self.graph_scope = os.getenv("GRAPH_SCOPE", DEFAULT_GRAPH_SCOPE)
        self.max_concurrency = _int_from_env("REMOVER_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY)
        self.gating_platform = os.getenv("REMOVER_GATING_PLATFORM", DEFAULT_GATING_PLATFORM)
        self.request_timeout = _int_from_env("REMOVER_REQUEST_TIMEOUT", 60)
        self.output_dir = Path(os.getenv("REMOVER_OUTPUT_DIR", "."))
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        if self.max_concurrency < 1:
            raise ConfigurationError(
                f"REMOVER_MAX_CONCURRENCY must be at least 1, got {self.max_concurrency}",
                details={"variable": "REMOVER_MAX_CONCURRENCY"},
            )
        if self.request_timeout < 1:
            raise ConfigurationError(
                f"REMOVER_REQUEST_TIMEOUT must be at least 1, got {self.request_timeout}",
                details={"variable": "REMOVER_REQUEST_TIMEOUT"},
            )

    def __repr__(self):
        return (
            f"Settings("
            f"graph={self.graph_base_url}, "
            f"concurrency={self.max_concurrency}, "
            f"gate={self.gating_platform}, "
            f"timeout={self.request_timeout}s, "
            f"output_dir={self.output_dir})"
        )


# ============================================
# Connection Credentials
# ============================================

@dataclass(frozen=True)
class ConnectionInfo:
    """Credentials of the app registration used for one batch.

    Attributes:
        tenant: Tenant name or id
        client_id: Application (client) id
        client_secret: Client secret value
        object_id: Application object id (only needed for the secret expiry check)
        client_secret_id: keyId of the client secret (only needed for the expiry check)
    """

    tenant: str
    client_id: str
    client_secret: str
    object_id: Optional[str] = None
    client_secret_id: Optional[str] = None

    def __repr__(self) -> str:
        # Never expose the secret in logs or tracebacks
        return (
            f"ConnectionInfo(tenant={self.tenant!r}, client_id={self.client_id!r}, "
            f"client_secret='***')"
        )


# Accepted spellings for each field, first match wins
_FIELD_ALIASES = {
    "tenant": ("tenant", "tenant_name_or_id", "tenantId", "tenant_id"),
    "client_id": ("clientId", "client_id"),
    "client_secret": ("clientSecret", "client_secret"),
    "object_id": ("objectId", "object_id"),
    "client_secret_id": ("clientSecretId", "client_secret_id"),
}

REQUIRED_CONNECTION_FIELDS = ("tenant", "client_id", "client_secret")


def connection_from_mapping(data: dict) -> ConnectionInfo:
    """Build a ConnectionInfo from a parsed JSON object.

    Raises:
        ValidationError: If a required field is missing or blank
    """
    if not isinstance(data, dict):
        raise ValidationError("Connection data must be a JSON object")

    values: dict[str, Optional[str]] = {}
    for name, aliases in _FIELD_ALIASES.items():
        value = next((data[a] for a in aliases if data.get(a)), None)
        values[name] = str(value).strip() if value is not None else None

    missing = [name for name in REQUIRED_CONNECTION_FIELDS if not values[name]]
    if missing:
        raise ValidationError(
            f"Missing fields in connection data: {', '.join(missing)}",
            field=missing[0],
            details={"missing_fields": missing},
        )

    return ConnectionInfo(**values)


def load_connection_file(path: str | Path) -> ConnectionInfo:
    """Load and validate a JSON connection file.

    Expected format::

        {"tenant": "contoso.onmicrosoft.com", "clientId": "...", "clientSecret": "..."}

    Raises:
        ValidationError: If the file is unreadable, not JSON, or incomplete
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError(f"Cannot read connection file {path.name}: {e}", cause=e)

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Connection file {path.name} is not valid JSON: {e}", cause=e)

    connection = connection_from_mapping(data)
    logger.info(f"Loaded connection for tenant {connection.tenant} from {path.name}")
    return connection


def connection_from_env() -> ConnectionInfo:
    """Build a ConnectionInfo from AZURE_* environment variables.

    Raises:
        ConfigurationError: If any required variable is missing
    """
    env = {
        "AZURE_TENANT_ID": os.getenv("AZURE_TENANT_ID"),
        "AZURE_CLIENT_ID": os.getenv("AZURE_CLIENT_ID"),
        "AZURE_CLIENT_SECRET": os.getenv("AZURE_CLIENT_SECRET"),
    }
    missing = [key for key, value in env.items() if not value]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing_keys=missing,
        )

    return ConnectionInfo(
        tenant=env["AZURE_TENANT_ID"],
        client_id=env["AZURE_CLIENT_ID"],
        client_secret=env["AZURE_CLIENT_SECRET"],
        object_id=os.getenv("AZURE_APP_OBJECT_ID") or None,
        client_secret_id=os.getenv("AZURE_CLIENT_SECRET_ID") or None,
    )
