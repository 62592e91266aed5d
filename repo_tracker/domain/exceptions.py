from typing import Optional


class TrackerException(Exception):
    """Base exception for all tracker-related errors."""
    pass

class GitHubRequestException(TrackerException):
    """Raised when a GitHub REST call fails or returns a non-success status."""
    pass

class RepositoryNotFoundException(GitHubRequestException):
    """Raised when GitHub answers 404 for a repository."""
    def __init__(self, full_name: str):
        self.full_name = full_name
        super().__init__(f"Repository '{full_name}' was not found.")

class RateLimitExceededException(GitHubRequestException):
    """Raised when the GitHub REST rate limit is hit."""
    def __init__(self, reset_at: Optional[str], message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        super().__init__(f"{message} Resets at: {reset_at}")

class DatabaseException(TrackerException):
    """Raised when a database operation fails."""
    pass

class ConfigurationException(TrackerException):
    """Raised when settings or the repository catalogue are invalid."""
    pass
