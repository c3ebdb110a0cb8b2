"""
geoshare.exceptions
~~~~~~~~~~~~~~~~~~~

This module contains the exceptions raised by the system.
"""


class GeoShareError(Exception):
    """ Base class for all errors raised by the system. """


class StoreError(GeoShareError):
    """ Raised when the record store rejects a call.

    :param operation: The store operation that failed, e.g. `query`.
    :param entity: The entity the operation targeted.
    :param message: The store's own description of the failure.
    """

    def __init__(self, operation: str, entity: str, message: str):
        self.operation = operation
        self.entity = entity
        self.message = message
        super().__init__(f"{operation} on {entity} failed: {message}")


class ShareRecordError(GeoShareError):
    """ Raised to the host when an invocation is aborted. """
