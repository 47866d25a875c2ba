"""
errors.py
---------
Failure taxonomy for the subtyping pipeline.

Fatal errors derive from SubtypingError so the scenario orchestrator can
abort one scenario and keep the others running. Missing clinical annotation
is not an error: it is reported through MissingAnnotationWarning.
"""


class SubtypingError(Exception):
    """Base class for errors that abort a replicate step or a scenario."""


class MalformedPairingError(SubtypingError):
    """Replicate columns cannot be paired 1:1 by the naming convention."""


class InsufficientDataError(SubtypingError):
    """Fewer patients than a neighbour count requires."""


class DegenerateInputError(SubtypingError):
    """No feature with non-zero variance is left to project."""


class MissingAnnotationWarning(UserWarning):
    """Patients were dropped from a subset because a biomarker is missing."""
