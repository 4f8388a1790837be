# phi_redaction/core/exceptions.py

"""Custom exception hierarchy for the PHI detection system.

This module defines the specific error types used throughout the application
to differentiate between configuration, persistence, training and runtime
errors.
"""


class PHIRedactionError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigurationError(PHIRedactionError):
    """Raised when configuration loading or validation fails."""

    pass


class FeatureSchemaError(PHIRedactionError):
    """Raised when a feature mapping contains names outside the catalog."""

    pass


class PipelineError(PHIRedactionError):
    """Raised when a specific processing step in the pipeline fails."""

    pass


class PersistenceError(PHIRedactionError):
    """Raised by storage backends when a read or write fails."""

    pass


class TrainingInProgressError(PHIRedactionError):
    """Raised when a training run is requested while another is active."""

    pass


class ResetNotConfirmedError(PHIRedactionError):
    """Raised when a destructive reset is requested without confirmation."""

    pass
