"""Client for the external merge service.

The merge service is an OpenAI-compatible chat-completions endpoint that
combines the two sides of a conflict section into one text.  It is just
another source of ``resolved_text``; failures surface as
``ExternalMergeError`` for the section being resolved and are never
retried automatically.
"""

from __future__ import annotations

import logging
import threading

import requests

from ..config_schema import MergeServiceConfig
from ..core.async_utils import run_sync_limited
from ..core.errors import ExternalMergeError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are helping a writer merge two versions of their text. "
    "Combine these versions into one coherent text that preserves the "
    "best of both. Maintain the author's voice and style. Do not add "
    "explanations or commentary. Return ONLY the merged text, nothing else."
)

CONNECTION_TEST_PROMPT = 'Say "OK" if you can hear me.'


def build_merge_prompt(local_text: str, remote_text: str) -> str:
    """Build the user message carrying both sides of a conflict."""
    return (
        "Please merge these two versions of text:\n\n"
        f"VERSION A (local):\n{local_text}\n\n"
        f"VERSION B (remote):\n{remote_text}\n\n"
        "Merged version:"
    )


class MergeServiceClient:
    """Synchronous chat-completions client with async wrappers.

    Args:
        settings: Merge section of the runtime configuration.
    """

    def __init__(self, settings: MergeServiceConfig):
        self.settings = settings
        self._thread_local = threading.local()

    @property
    def configured(self) -> bool:
        return bool(self.settings.api_key)

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            session = requests.Session()
            session.headers["Content-Type"] = "application/json"
            self._thread_local.session = session
        return self._thread_local.session

    def _chat(self, messages: list[dict], max_tokens: int | None = None) -> str:
        if not self.settings.api_key:
            raise ExternalMergeError("API key not configured")

        payload: dict = {
            "model": self.settings.model,
            "messages": messages,
            "temperature": self.settings.temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        try:
            response = self._get_session().post(
                self.settings.api_endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.api_key}"},
                timeout=self.settings.timeout,
            )
        except requests.RequestException as exc:
            raise ExternalMergeError(f"Request failed: {exc}") from exc

        if not response.ok:
            raise ExternalMergeError(
                f"API error: {response.status_code} - {response.text}"
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            content = None
        if not content or not content.strip():
            raise ExternalMergeError("No response from AI")
        return content.strip()

    def merge(self, local_text: str, remote_text: str) -> str:
        """Ask the service to merge *local_text* and *remote_text*.

        Raises:
            ExternalMergeError: Missing API key, HTTP failure, or an empty
                response.
        """
        logger.debug(
            "Requesting merge (%d local chars, %d remote chars)",
            len(local_text),
            len(remote_text),
        )
        return self._chat(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": build_merge_prompt(local_text, remote_text),
                },
            ]
        )

    def test_connection(self) -> str:
        """Send a trivial prompt to verify endpoint, key and model."""
        return self._chat(
            [{"role": "user", "content": CONNECTION_TEST_PROMPT}],
            max_tokens=10,
        )

    async def merge_async(self, local_text: str, remote_text: str) -> str:
        return await run_sync_limited(self.merge, local_text, remote_text)

    async def test_connection_async(self) -> str:
        return await run_sync_limited(self.test_connection)
