"""Temporal client factory.

Creates connections to Temporal Cloud or a local dev server using settings from environment.
"""

import os
from pathlib import Path
from typing import Union

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client
from temporalio.service import TLSConfig


DEFAULT_ENDPOINT = "localhost:7233"


def _tls_config(api_key: str, cert_path: str, key_path: str) -> Union[bool, TLSConfig]:
    if cert_path:
        return TLSConfig(
            client_cert=Path(cert_path).read_bytes(),
            client_private_key=Path(key_path or cert_path).read_bytes(),
        )
    # Temporal Cloud API keys require TLS with system certificates
    return bool(api_key)


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Temporal endpoint (default: "localhost:7233")
    - TEMPORAL_NAMESPACE: Namespace (default: "default")
    - TEMPORAL_API_KEY: API key for Temporal Cloud (omit for a local dev server)
    - TEMPORAL_CERT_PATH: Path to client certificate (optional, for mTLS)
    - TEMPORAL_KEY_PATH: Path to the client private key (defaults to TEMPORAL_CERT_PATH)

    Returns:
        Connected Temporal client
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT", DEFAULT_ENDPOINT)
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY") or None
    cert_path = os.getenv("TEMPORAL_CERT_PATH") or None
    key_path = os.getenv("TEMPORAL_KEY_PATH") or None

    client = await Client.connect(
        target_host=endpoint,
        namespace=namespace,
        tls=_tls_config(api_key, cert_path, key_path),
        api_key=api_key,
    )

    return client
