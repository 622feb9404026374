"""Error types raised by clients, the command proxy and the orchestrator."""


class ClawhostError(Exception):
    """Base class for all control plane errors."""


class ProviderConfigError(ClawhostError):
    """Required provider configuration (credential, org, project) is missing."""


class ProviderAPIError(ClawhostError):
    """Provider API answered with a non-2xx status or a GraphQL error payload."""

    def __init__(self, provider: str, status_code: int | None, body: str):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"{provider} API error: {body}")
        else:
            super().__init__(f"{provider} API error {status_code}: {body}")


class ProviderTimeoutError(ClawhostError):
    """A bounded wait on a provider resource exceeded its deadline."""


class ProviderTerminalStateError(ClawhostError):
    """A polled provider resource entered a state it will not recover from."""

    def __init__(self, message: str, state: str):
        self.state = state
        super().__init__(message)


class CommandProxyError(ClawhostError):
    """A command run inside an instance exited non-zero, timed out or could not start."""

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


class InstanceNotFoundError(ClawhostError):
    """No instance exists for the given id or user."""


class MissingIdentifiersError(ClawhostError):
    """Instance has no provider resource identifiers, so lifecycle calls cannot proceed."""


class DeploymentError(ClawhostError):
    """A deployment step failed; the instance has been marked ERROR."""
