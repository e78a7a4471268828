"""Connection management for the document chain.

Owns the session to the document store for one run and the release of the
business object handles leased from it.
"""

from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from connectors.erp_base import (
    BoObjectType,
    BusinessObject,
    CompanyConfig,
    DocumentStore,
    create_store,
)
from core.errors import ConnectError
from core.observability.logging import get_logger

logger = get_logger(__name__)


def release(handle: Optional[BusinessObject]) -> bool:
    """Release a handle, best effort.

    Returns True if the handle was released by this call. None and already
    released handles are ignored; release failures are logged, never raised.
    """
    if handle is None or handle.released:
        return False
    try:
        handle.release()
    except Exception as e:
        logger.warning(
            f"Could not release {handle!r}: {e}",
            extra_fields={"error_type": type(e).__name__},
        )
        return False
    return True


@contextmanager
def leased(connection: DocumentStore, object_type: BoObjectType) -> Iterator[BusinessObject]:
    """Lease a business object for the duration of a block.

    The handle is released on every exit path.
    """
    handle = connection.get_business_object(object_type)
    try:
        yield handle
    finally:
        release(handle)


class ConnectionManager:
    """Connect / disconnect a document store for one run.

    Usage:
        manager = ConnectionManager()
        connection = await manager.connect(config)
        try:
            ...
        finally:
            await manager.disconnect(connection)
    """

    def __init__(self, store_factory: Callable[[CompanyConfig], DocumentStore] = create_store):
        self._store_factory = store_factory
        self._connection: Optional[DocumentStore] = None

    @property
    def connection(self) -> Optional[DocumentStore]:
        return self._connection

    async def connect(self, config: CompanyConfig) -> DocumentStore:
        """Return a live connection, opening a session only if there is none.

        Raises:
            ConnectError: The store rejected the login or could not be reached
        """
        if self._connection is not None and self._connection.connected:
            logger.debug("Connection already live, reusing it")
            return self._connection

        if self._connection is None:
            try:
                self._connection = self._store_factory(config)
            except ValueError as e:
                raise ConnectError(str(e)) from e

        logger.info("Connecting to company database", extra_fields=config.describe())

        try:
            code = await self._connection.connect()
        except Exception as e:
            raise ConnectError(f"{type(e).__name__}: {e}") from e

        if code != 0:
            message = self._connection.get_last_error_description() or f"Connection failed with code {code}"
            raise ConnectError(message, code)

        logger.info(f"Connected ({self._connection.get_connector_name()})")
        return self._connection

    async def disconnect(self, connection: Optional[DocumentStore] = None) -> None:
        """End the session if it is live and release the connection's resources.

        Safe to call on a connection that is already torn down or never connected.
        """
        connection = connection or self._connection
        if connection is None:
            return

        if connection.connected:
            try:
                await connection.disconnect()
                logger.info("Disconnected")
            except Exception as e:
                logger.warning(f"Logout failed: {type(e).__name__}: {e}")

        try:
            await connection.close()
        except Exception as e:
            logger.warning(f"Could not release connection resources: {type(e).__name__}: {e}")

        if connection is self._connection:
            self._connection = None

    def release(self, handle: Optional[BusinessObject]) -> bool:
        return release(handle)
