class ApiError(Exception):
    """Failure rendered to the caller as a ``{code, message}`` envelope."""

    def __init__(self, status_code: int, code: int, message: str):
        self.status_code = status_code
        self.code = int(code)
        self.message = message
        super().__init__(message)


class SignatureError(ApiError):
    def __init__(self, message: str):
        super().__init__(status_code=401, code=401, message=message)


class BackendError(ApiError):
    """The backend answered with a non-success code in its body."""

    def __init__(self, code: int, message: str):
        status_code = code if 400 <= code <= 599 else 500
        super().__init__(status_code=status_code, code=code, message=message)


class TransportError(ApiError):
    def __init__(self, message: str):
        super().__init__(status_code=500, code=500, message=message)


class DecodeError(ApiError):
    def __init__(self, message: str):
        super().__init__(status_code=500, code=500, message=message)


class RedirectLimitError(ApiError):
    def __init__(self, limit: int):
        super().__init__(status_code=500, code=500, message=f"too many redirects (limit {limit})")
        self.limit = limit
