# gateway.py
# Completion Gateway. The only module that talks to the model endpoint.
#
# One prompt in, one raw text reply out. No retries, no streaming. The
# credential check runs before a client is even built, so a missing key
# never produces network traffic.

import logging

from openai import OpenAI, OpenAIError

from workflow_planner.config import Settings, credential_usable
from workflow_planner.models import FailureKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GatewayError(Exception):
    """Base class for every failure surfaced by the Completion Gateway."""


class UpstreamUnavailable(GatewayError):
    """Raised when the credential is missing, blank or a placeholder. No call is made."""


class UpstreamError(GatewayError):
    """Raised on a non-success status or a transport failure."""


class UpstreamMalformed(GatewayError):
    """Raised when the call succeeded but the envelope carries no usable choice."""


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class CompletionGateway:
    """
    Wraps an OpenAI-compatible chat completion endpoint.

    Example:
        gateway = CompletionGateway(load_settings())
        text = gateway.complete("Say hi.")
    """

    def __init__(self, settings: Settings, client: OpenAI | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def configured(self) -> bool:
        return credential_usable(self._settings.api_key)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                base_url=self._settings.base_url,
                api_key=self._settings.api_key,
                timeout=self._settings.timeout,
                max_retries=0,
            )
        return self._client

    def complete(self, prompt: str) -> str:
        """
        Send `prompt` as a single user message and return the first choice's text.

        Raises UpstreamUnavailable, UpstreamError or UpstreamMalformed.
        """
        logger.info("Calling completion endpoint, prompt length: %d", len(prompt))

        if not self.configured:
            logger.error("Completion credential is not configured")
            raise UpstreamUnavailable(
                "Completion API key is not configured; set the DEEPSEEK_API_KEY environment variable."
            )

        try:
            response = self._get_client().chat.completions.create(
                model=self._settings.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
            )
        except OpenAIError as exc:
            logger.error("Completion call failed: %s", exc)
            raise UpstreamError(f"Completion call failed: {exc}") from exc

        if not response.choices:
            logger.error("Completion response has no choices")
            raise UpstreamMalformed("Completion response has no usable choices.")

        content = response.choices[0].message.content
        if content is None:
            logger.error("Completion response choice has no content")
            raise UpstreamMalformed("Completion response choice has no content.")

        logger.info("Completion call succeeded, reply length: %d", len(content))
        logger.debug("Completion reply: %s", content)
        return content


def failure_kind(exc: Exception) -> FailureKind:
    """Map a stage-level exception onto the failure taxonomy."""
    if isinstance(exc, UpstreamUnavailable):
        return FailureKind.UPSTREAM_UNAVAILABLE
    if isinstance(exc, UpstreamMalformed):
        return FailureKind.UPSTREAM_MALFORMED
    if isinstance(exc, GatewayError):
        return FailureKind.UPSTREAM_ERROR
    return FailureKind.INTERNAL_ERROR
