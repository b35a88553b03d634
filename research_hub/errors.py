from typing import Optional


class ResearchHubError(Exception):
    pass


class FetchError(ResearchHubError):
    """Network failure, timeout or non-2xx response."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {message}")


class ExtractionError(ResearchHubError):
    """The document was fetched but yielded no usable content."""

    def __init__(self, url: str, message: str = "no usable content found"):
        self.url = url
        super().__init__(f"Failed to extract content from {url}: {message}")


class NoConfigurationError(ResearchHubError):
    def __init__(self, user_id: str, config_id: Optional[str] = None):
        self.user_id = user_id
        self.config_id = config_id
        if config_id:
            message = (
                f"AI configuration {config_id} is invalid, inactive or not owned by this user. "
                "Pick an active configuration or set a default AI configuration first."
            )
        else:
            message = "No default AI configuration found. Please set a default AI configuration first."
        super().__init__(message)


class ProviderCallError(ResearchHubError):
    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        status = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"{provider} call failed{status}: {message}")


class NoNewContentError(ResearchHubError):
    def __init__(self, workspace_id: str, summary_type: str, message: str):
        self.workspace_id = workspace_id
        self.summary_type = summary_type
        super().__init__(message)


class JsonParseError(ResearchHubError):
    def __init__(self, raw: str, message: str):
        self.raw = raw
        super().__init__(f"Model response is not valid JSON: {message}")
