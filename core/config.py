"""Company connection settings from the environment.

Reads SAP_B1_* variables (a .env file next to the repository root is loaded
first if present) and builds a CompanyConfig.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from connectors.erp_base import CompanyConfig

ENV_PATH = Path(__file__).resolve().parents[1] / ".env"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def load_company_config(connector_type: Optional[str] = None, env_path: Optional[Path] = None) -> CompanyConfig:
    """Build a CompanyConfig from environment variables.

    Reads:
    - SAP_B1_CONNECTOR: "service_layer" (default) or "sandbox"
    - SAP_B1_SERVER: Database / Service Layer host
    - SAP_B1_SERVICE_LAYER_URL: Full Service Layer URL (overrides SAP_B1_SERVER)
    - SAP_B1_DB_SERVER_TYPE: e.g. "dst_MSSQL2016", "dst_HANADB"
    - SAP_B1_DB_USERNAME / SAP_B1_DB_PASSWORD / SAP_B1_USE_TRUSTED
    - SAP_B1_COMPANY_DB: Company database name
    - SAP_B1_USERNAME / SAP_B1_PASSWORD: Company user
    - SAP_B1_LICENSE_SERVER: Alternate license server (usually empty)
    - SAP_B1_VERIFY_SSL: Verify the Service Layer certificate (default: true)
    - SAP_B1_TIMEOUT_SECONDS: Per-request timeout (default: 60)

    Raises:
        ValueError: If a variable required by the chosen connector is missing
    """
    path = env_path or ENV_PATH
    if path.exists():
        load_dotenv(path)

    connector = connector_type or os.getenv("SAP_B1_CONNECTOR", "service_layer")

    config = CompanyConfig(
        connector_type=connector,
        server=os.getenv("SAP_B1_SERVER", ""),
        db_server_type=os.getenv("SAP_B1_DB_SERVER_TYPE", "dst_MSSQL2016"),
        db_username=os.getenv("SAP_B1_DB_USERNAME"),
        db_password=os.getenv("SAP_B1_DB_PASSWORD"),
        use_trusted=_flag("SAP_B1_USE_TRUSTED", False),
        company_db=os.getenv("SAP_B1_COMPANY_DB", ""),
        username=os.getenv("SAP_B1_USERNAME", ""),
        password=os.getenv("SAP_B1_PASSWORD", ""),
        license_server=os.getenv("SAP_B1_LICENSE_SERVER") or None,
        service_layer_url=os.getenv("SAP_B1_SERVICE_LAYER_URL") or None,
        verify_ssl=_flag("SAP_B1_VERIFY_SSL", True),
        timeout_seconds=int(os.getenv("SAP_B1_TIMEOUT_SECONDS", "60")),
    )

    if config.connector_type == "service_layer":
        if not config.service_layer_url and not config.server:
            raise ValueError(
                "SAP_B1_SERVICE_LAYER_URL or SAP_B1_SERVER environment variable not set. "
                "Set to your Service Layer URL (e.g., 'https://b1server:50000/b1s/v1')"
            )
        missing = [
            name for name, value in (
                ("SAP_B1_COMPANY_DB", config.company_db),
                ("SAP_B1_USERNAME", config.username),
                ("SAP_B1_PASSWORD", config.password),
            ) if not value
        ]
        if missing:
            raise ValueError(f"Missing environment variable(s): {', '.join(missing)}")

    return config
