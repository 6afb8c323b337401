"""
Exceptions raised by the provisioning pipeline.
"""

from typing import Optional


class LxcifyError(Exception):
    """Base class of all errors raised while validating or provisioning a container."""


class ValidationError(LxcifyError):
    """Raised when the application template is malformed or incomplete."""


class FormatError(ValidationError):
    """Raised when the application template could not be parsed at all."""


class InvalidMount(ValidationError):
    """Raised when a mount entry is inconsistent or incomplete."""


class StateError(LxcifyError):
    """Raised when a lifecycle operation is invoked in a state that does not permit it."""


class RuntimeCallError(LxcifyError):
    """
    Raised when a call to the container runtime fails. The message names the operation and
    the parameters it was invoked with while `cause` holds the underlying exception, if any.
    """

    def __init__(self, operation: str, detail: str = "", cause: Optional[BaseException] = None):
        msg = f"{operation} failed"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.operation = operation
        self.detail = detail
        self.cause = cause


class CreateFailed(RuntimeCallError):
    """Raised when the runtime could not create the container from its template."""


class StartTimeoutError(LxcifyError, TimeoutError):
    """Raised when the container did not reach the running (or network ready) state in time."""


class FileOperationError(LxcifyError, OSError):
    """Raised when reading or writing a host file for the container fails."""

    def __init__(self, operation: str, path: str, cause: Optional[OSError] = None):
        reason = f": {cause.strerror or cause}" if cause else ""
        super().__init__(f"{operation} '{path}' failed{reason}")
        self.operation = operation
        self.path = path
        self.cause = cause


def error_chain(err: BaseException) -> list[str]:
    """
    Collect the messages of an exception and of all its causes, outermost first.

    :param err: the exception raised by the pipeline
    :return: list of messages with one entry per exception in the chain
    """
    messages: list[str] = []
    seen: set[int] = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        messages.append(str(current) or type(current).__name__)
        current = current.__cause__ or current.__context__
    return messages
