"""Harness error types."""


class HarnessError(Exception):
    """Base class for errors raised by the harness."""


class ManifestError(HarnessError):
    """manifest.yaml is missing, unreadable or invalid."""


class CompileError(HarnessError):
    """The source entry script could not be compiled."""


class LoadError(HarnessError):
    """The compiled script did not yield a usable factory."""


class StartPhaseError(HarnessError):
    """The start phase raised or timed out. Fatal for the run."""


class RefreshPhaseError(HarnessError):
    """The refresh phase raised or timed out. Recorded, not fatal."""


class CapabilityUnsupportedError(HarnessError):
    """A source used a capability the harness does not provide."""
