"""Exception types raised by the application layer."""


class TraceError(RuntimeError):
    """A render could not be attempted, for example because no scene is configured."""


class ConfigError(ValueError):
    """A configuration file or dictionary is malformed or fails validation."""
