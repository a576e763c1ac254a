"""Errors raised by the transference workflow.

Every stage failure is fatal: the workflow stops at the first raised error and
the CLI reports it with a non-zero exit code.
"""


class TransferenceError(Exception):
    """Base class for workflow failures."""


class ConfigError(TransferenceError):
    """Raised for missing or malformed configuration and keypair files."""


class RpcUnavailableError(TransferenceError):
    """Raised when the cluster endpoint cannot be reached or answers with an error."""


class FundingError(TransferenceError):
    """Raised when the payer balance cannot be checked or topped up."""


class DeploymentError(TransferenceError):
    """Raised when the program is missing on-chain or is not executable."""


class SubmissionError(TransferenceError):
    """Raised when a transaction fails to send or confirm."""


class AccountNotFoundError(TransferenceError):
    """Raised when an account expected on-chain does not exist."""


class DeserializationError(TransferenceError):
    """Raised when account data does not match the counter layout."""
