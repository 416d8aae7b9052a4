"""
Exception types raised by kubeclean
"""


class KubecleanError(Exception):
    """Base class for all kubeclean errors"""


class CleanupConfigError(KubecleanError):
    """Cleanup configuration could not be loaded"""


class ParseError(CleanupConfigError):
    """Configuration payload is not valid YAML or has the wrong shape"""


class UnreadableFileError(CleanupConfigError):
    """Configuration file could not be read"""

    def __init__(self, path, reason):
        self.path = path
        super().__init__(f"unable to read config file {path!r}: {reason}")


class InvalidConfigError(CleanupConfigError):
    """Configuration parsed but failed validation"""


class ValidationError(CleanupConfigError):
    """A configuration value violates a model invariant"""


class InvalidBatchSizeError(ValidationError):
    pass


class MissingNameError(ValidationError):
    pass


class NonPositiveTTLError(ValidationError):
    pass


class MissingFilterError(ValidationError):
    pass


class RuleValidationError(ValidationError):
    """One or more enabled rules are invalid"""

    def __init__(self, errors):
        # list of (index, rule name, error)
        self.errors = errors
        lines = [f"rule {idx} ({name}): {err}" for idx, name, err in errors]
        super().__init__("pod cleanup config validation errors:\n" + "\n".join(lines))


class InvalidSelectorError(KubecleanError):
    """A rule's label selector cannot be turned into a Kubernetes selector"""


class KubernetesConfigError(KubecleanError):
    """No usable Kubernetes client configuration was found"""
