from __future__ import annotations


class RelayError(Exception):
    """Base class for every error raised by mystic_relay."""


class MethodNotAllowed(RelayError):
    def __init__(self, method: str):
        super().__init__(f"Method not allowed: {method}")
        self.method = method


class MissingCredentialError(RelayError):
    def __init__(self, env_var: str):
        super().__init__(f"{env_var} environment variable is required.")
        self.env_var = env_var


class UpstreamFailure(RelayError):
    """A completion request failed. Terminal for the request, never for the process."""


class UpstreamUnavailable(UpstreamFailure):
    pass


class RateLimited(UpstreamFailure):
    pass


class UpstreamError(UpstreamFailure):
    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class MalformedFrame(RelayError):
    pass


class TransportLost(RelayError):
    pass
