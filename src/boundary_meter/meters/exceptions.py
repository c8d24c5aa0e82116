"""Errors raised while talking to the Boundary meters API."""

from enum import Enum


class FailureKind(str, Enum):
    """Why a meter operation failed."""

    # Network/TLS error or a non-2xx HTTP status
    TRANSPORT_FAILURE = "transport_failure"
    # Search returned no meter where exactly one was expected
    NOT_FOUND = "not_found"
    # Response body is not JSON or lacks an expected field
    MALFORMED_RESPONSE = "malformed_response"
    # HTTP verb the transport does not support
    UNSUPPORTED_OPERATION = "unsupported_operation"


class MeterAPIError(Exception):
    """Error from a Boundary meters API operation."""

    kind: FailureKind = FailureKind.TRANSPORT_FAILURE

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportFailure(MeterAPIError):
    """The request could not be completed or returned a non-2xx status."""

    kind = FailureKind.TRANSPORT_FAILURE


class MeterNotFound(MeterAPIError):
    """No meter matches the requested name."""

    kind = FailureKind.NOT_FOUND


class MalformedResponse(MeterAPIError):
    """The API answered with a body we cannot interpret."""

    kind = FailureKind.MALFORMED_RESPONSE


class UnsupportedOperation(MeterAPIError):
    """An HTTP method the transport does not know how to send."""

    kind = FailureKind.UNSUPPORTED_OPERATION


ERRORS_BY_KIND: dict[FailureKind, type[MeterAPIError]] = {
    FailureKind.TRANSPORT_FAILURE: TransportFailure,
    FailureKind.NOT_FOUND: MeterNotFound,
    FailureKind.MALFORMED_RESPONSE: MalformedResponse,
    FailureKind.UNSUPPORTED_OPERATION: UnsupportedOperation,
}


class ProvisioningAborted(Exception):
    """A fatal condition that ends the provisioning run."""

    def __init__(self, message: str, cause: MeterAPIError | None = None):
        super().__init__(message)
        self.cause = cause
