"""Exception hierarchy for tether."""


class TetherError(Exception):
    """Base exception for all tether errors."""

    exit_code = 1

    def __init__(self, message: str, exit_code: int | None = None, hint: str | None = None):
        """
        Initialize exception with optional exit code and hint.

        Args:
            message: Error message
            exit_code: Override default exit code
            hint: Helpful hint for resolving the error (uses Python 3.11+ __notes__)
        """
        super().__init__(message)
        if exit_code:
            self.exit_code = exit_code
        if hint:
            if hasattr(self, "add_note"):
                self.add_note(hint)


class ResourceError(TetherError):
    """External resources unavailable (network, files, binaries)."""

    exit_code = 75


class ConfigError(TetherError):
    """Configuration-related errors (.env, config.yaml, paths)."""

    exit_code = 78


class FileAccessError(ResourceError):
    """File system access errors."""

    exit_code = 66


class CredentialError(ResourceError):
    """Credential file missing, unreadable or lacking required fields."""

    pass


class TokenRefreshError(ResourceError):
    """Token endpoint call failed or returned an unusable response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, hint="Run 'claude login' to re-authenticate")
        self.status_code = status_code


class LockTimeoutError(ResourceError):
    """Advisory lock could not be acquired in time."""

    def __init__(self, lock_path, timeout: float):
        super().__init__(
            f"Timed out after {timeout:g}s waiting for lock: {lock_path}",
            hint="Another terminal may be refreshing the token; try again shortly",
        )
        self.lock_path = lock_path


class InstallError(ResourceError):
    """Installation step failed (network, package manager, timeout)."""

    pass
