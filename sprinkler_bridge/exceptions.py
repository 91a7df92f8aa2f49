# sprinkler_bridge/exceptions.py


class SprinklerBridgeError(Exception):
    """Base exception for all sprinkler bridge errors."""
    pass


class ConfigurationError(SprinklerBridgeError):
    """Raised when required configuration is missing or invalid. Fatal at startup."""
    pass


# ===========================================================================================================
# Device errors
# ===========================================================================================================

class DeviceError(SprinklerBridgeError):
    """Base exception for errors talking to the sprinkler controller."""
    pass


class TransportError(DeviceError):
    """
    Exception raised when a request to the controller does not complete with a 2xx response.
    Attributes:
        endpoint (str): The endpoint that was requested.
        status_code (int | None): HTTP status code, None when no response was received (timeout, refused connection).
        body (str): Response body text, or the underlying error description.
    """
    def __init__(self, endpoint: str, status_code: int | None, body: str):
        if status_code is None:
            message = f"Request to {endpoint} failed. Message: {body}"
        else:
            message = f"Request to {endpoint} failed. Status Code: {status_code} Message: {body}"
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body


class ProtocolError(DeviceError):
    """Raised when the controller's payload is malformed or has an unexpected shape."""
    pass


class CommandRejectedError(DeviceError):
    """
    Exception raised when the controller answered but declined the command.
    Attributes:
        result_code (int | None): The result code returned by the controller.
    """
    def __init__(self, message: str, result_code: int | None = None):
        super().__init__(message)
        self.result_code = result_code


# ===========================================================================================================
# Worker thread errors
# ===========================================================================================================

class WorkerThreadError(SprinklerBridgeError):
    """Base exception for worker thread management."""
    pass


class WorkerThreadAlreadyExistsError(WorkerThreadError):
    """Raised when a worker with the same name is already running."""
    pass
