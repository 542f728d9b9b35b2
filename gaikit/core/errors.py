class GaikitError(RuntimeError):
    pass


class PluginError(GaikitError):
    """Raised when a plugin is misconfigured or initialized twice."""


class ModelError(GaikitError):
    """Raised when a model call fails or a model rejects its request."""


class PromptError(GaikitError):
    """Raised when a dotprompt cannot be rendered or executed."""


class AuthError(GaikitError):
    """Raised when a flow's auth policy rejects the caller."""


class SchemaValidationError(GaikitError, ValueError):
    """Raised when a value does not conform to its JSON schema."""


class ActionNotFoundError(GaikitError, KeyError):
    """Raised when a registry key does not name a registered action."""

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return RuntimeError.__str__(self)
