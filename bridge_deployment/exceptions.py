"""Errors raised while deploying the bridge contracts."""


class DeploymentError(Exception):
    """Base exception for deployment errors."""


class ConfigurationError(DeploymentError, ValueError):
    """Raised when a required configuration field is missing or invalid."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid configuration field '{field}': {message}")


class ArtifactNotFoundError(DeploymentError, LookupError):
    """Raised when no compiled artifact exists for a contract name."""


class InvalidArguments(DeploymentError, ValueError):
    """Raised when arguments cannot be encoded against a contract ABI."""


class TransactionFailure(DeploymentError):
    """Raised when a transaction is rejected, reverted or never included."""


class TransactionReverted(TransactionFailure):
    """Raised when a transaction was included but reverted; it will never take effect."""


class ProxyResolutionError(TransactionFailure):
    """Raised when a deployed proxy does not resolve an implementation address."""


class PreconditionViolation(DeploymentError):
    """Raised when an operation is invoked before its inputs exist."""


class InvalidPlan(PreconditionViolation, ValueError):
    """Raised when deployment steps are not a valid dependency ordering."""


class RecordExists(DeploymentError):
    """Raised when attempting to overwrite a deployment record."""


class LedgerCorrupted(DeploymentError, ValueError):
    """Raised when a persisted ledger cannot be read."""


class StepFailure(DeploymentError):
    """Raised when a deployment step fails; the underlying error is the cause."""

    def __init__(self, step_name: str, dependencies, args, cause: Exception):
        self.step_name = step_name
        self.dependencies = tuple(dependencies)
        self.args_attempted = args
        self.cause = cause
        depends = ", ".join(self.dependencies) or "none"
        super().__init__(
            f"Step '{step_name}' failed (dependencies: {depends}; arguments: {args}): "
            f"{type(cause).__name__}: {cause}"
        )
