# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/errors.py
from __future__ import annotations

from typing import Optional


class RaySubmitError(RuntimeError):
    """Base class for every failure raised while submitting a Ray job."""


class ConfigError(RaySubmitError):
    """Raised for options that cannot produce a valid submission."""


class KubeConfigError(ConfigError):
    """Raised when no usable kube context can be loaded."""


class InputValidationError(RaySubmitError):
    """Raised when an input file is missing, not a file, or cannot be decoded."""


class KubeApiError(RaySubmitError):
    """Wraps an ApiException coming back from the Kubernetes API."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PollTimeoutError(RaySubmitError):
    """Raised by poll_until once the deadline has passed."""

    def __init__(
        self,
        what: str,
        timeout: float,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ):
        msg = f"timed out after {timeout}s waiting for {what} ({attempts} attempts)"
        if last_error is not None:
            msg += f": last error: {last_error}"
        super().__init__(msg)
        self.what = what
        self.timeout = timeout
        self.attempts = attempts
        self.last_error = last_error


class ClusterRefError(RaySubmitError):
    """Raised when the RayJob status never names a usable RayCluster."""


class ClusterTimeoutError(RaySubmitError):
    """Raised when the RayCluster is not ready within the cluster timeout."""


class CleanupError(RaySubmitError):
    """Raised when the compensating RayJob delete fails."""


class TunnelError(RaySubmitError):
    """Raised when the port-forward cannot start or exits on its own."""


class TunnelTimeoutError(TunnelError):
    """Raised when the dashboard is not reachable through the tunnel in time."""


class SubmitProcessError(RaySubmitError):
    """Raised when `ray job submit` cannot be launched or exits non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class JobIdNotFoundError(RaySubmitError):
    """Raised when no job id was printed before output ended or time ran out."""
