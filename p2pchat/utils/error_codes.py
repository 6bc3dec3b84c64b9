class ErrorCodes:
    ERR_NETWORK = 101
    ERR_BACKEND = 102
    ERR_VALIDATION = 201
    ERR_NOT_FOUND = 301
    ERR_PROTOCOL = 401
    ERR_INVALID_TRANSITION = 402


class ChatClientError(Exception):
    def __init__(self, code, message):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ConnectivityError(ChatClientError):
    def __init__(self, message="Backend unreachable"):
        super().__init__(ErrorCodes.ERR_NETWORK, message)


class BackendCommandError(ChatClientError):
    """The backend answered a command with an error."""

    def __init__(self, command: str, message: str):
        self.command = command
        super().__init__(ErrorCodes.ERR_BACKEND, f"{command}: {message}")


class ValidationRejection(ChatClientError):
    def __init__(self, message):
        super().__init__(ErrorCodes.ERR_VALIDATION, message)


class NotFoundError(ChatClientError):
    def __init__(self, message):
        super().__init__(ErrorCodes.ERR_NOT_FOUND, message)


class ProtocolError(ChatClientError):
    def __init__(self, message):
        super().__init__(ErrorCodes.ERR_PROTOCOL, message)


class InvalidTransitionError(ChatClientError):
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            ErrorCodes.ERR_INVALID_TRANSITION,
            f"Cannot move from {current.name} to {requested.name}",
        )
