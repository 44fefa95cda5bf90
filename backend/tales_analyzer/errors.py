"""
Failure taxonomy for a review run.

Node-local failures (a single page that won't load, a screenshot that
can't be written) are logged and swallowed by the crawler. Everything
defined here that escapes the crawler is fatal to the run.
"""


class TalesAnalyzerError(Exception):
    """Base class for all run-level failures."""


class BrowserLaunchError(TalesAnalyzerError):
    pass


class NavigationError(TalesAnalyzerError):
    """A URL could not be loaded after every retry attempt."""

    def __init__(self, url: str, attempts: int, message: str = ""):
        self.url = url
        self.attempts = attempts
        super().__init__(
            f"Failed to load {url} after {attempts} attempt(s)"
            + (f": {message}" if message else "")
        )


class ScreenshotStorageError(TalesAnalyzerError):
    """The screenshot directory could not be created."""


class NoContentError(TalesAnalyzerError):
    def __init__(self, url: str):
        self.url = url
        super().__init__("No content found on the provided URL")


class LLMRequestError(TalesAnalyzerError):
    """Transport-level LLM failure: HTTP error, non-JSON body, no choices."""


class LLMResponseError(TalesAnalyzerError):
    """The model answered, but not with usable JSON."""


class SemanticContractError(LLMResponseError):
    """Projects/skills response missing or malformed."""


class AnalysisContractError(LLMResponseError):
    """Analysis or references response missing required fields."""
