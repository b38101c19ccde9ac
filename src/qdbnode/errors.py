from __future__ import annotations


class ConnectorError(RuntimeError):
    """Base class for every error raised by the connector."""


class ConfigurationError(ConnectorError):
    pass


class QdbConnectionError(ConnectorError, ConnectionError):
    """The driver could not open a connection. The driver error is chained as `__cause__`."""


class UnsupportedOperationError(ConnectorError):
    def __init__(self, operation: str) -> None:
        self.operation = str(operation)
        super().__init__(f'The operation "{self.operation}" is not supported!')


class DriverError(ConnectorError):
    """A statement failed on the database side; message is the driver's, verbatim."""
