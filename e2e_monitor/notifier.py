"""
Notification sinks.

SlackNotifier posts the pass/fail message of a cycle to an incoming webhook;
AnalyticsClient posts the analyzed summary together with run metadata.
Neither raises on delivery problems: a lost notification must never abort
the monitor loop.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import httpx

from e2e_monitor.common.logger import get_logger
from e2e_monitor.reporter.analyzer import Summary

logger = get_logger(__name__)

MAX_FAILED_NAMES = 10


@dataclass
class RunMetadata:
    """Caller-supplied context attached to the analytics payload."""
    plugin: str
    test_suite: str
    timestamp: str
    revision: Optional[str] = None
    duration_seconds: float = 0.0


def format_cycle_message(
    plugin_id: str,
    test_suite: str,
    exit_code: int,
    summary: Optional[Summary] = None,
) -> str:
    """
    Build the chat message for a finished test run.

    Args:
        plugin_id: Plugin identifier.
        test_suite: Test-suite identifier.
        exit_code: Exit code of the test command.
        summary: Analyzed report, if one was available.

    Returns:
        Message text.
    """
    label = f"{plugin_id} E2E {test_suite}"
    if exit_code == 0:
        lines = [f"✅ {label} Ran Successfully!"]
    else:
        lines = [f"❌ {label} Failed! (exit code {exit_code})"]

    if summary is not None:
        lines.append(f"Passed: {summary.successful_tests}/{summary.total_tests}")
        if summary.failed_test_names:
            lines.append(f"Failed: {summary.failed_tests}")
            for name in summary.failed_test_names[:MAX_FAILED_NAMES]:
                lines.append(f"• {name}")
            remaining = len(summary.failed_test_names) - MAX_FAILED_NAMES
            if remaining > 0:
                lines.append(f"…and {remaining} more")
    return "\n".join(lines)


def format_error_message(plugin_id: str, error: Any) -> str:
    return f"❌ {plugin_id} Monitor Script Error!\n{error}"


class SlackNotifier:
    """
    Posts plain-text messages to a Slack incoming webhook.

    Example:
        notifier = SlackNotifier("https://hooks.slack.com/services/...")
        notifier.send("✅ all good")
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            webhook_url: Incoming webhook URL; notifications are skipped when empty.
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client (used by tests).
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._client = client

    def send(self, text: str) -> bool:
        """
        Send a message.

        Returns:
            True if the webhook accepted the message.
        """
        if not self.webhook_url:
            logger.info("No Slack webhook URL configured, skipping notification")
            return False
        return _post_json(self._client, self.webhook_url, {"text": text}, self.timeout, "Slack notification")


class AnalyticsClient:
    """Publishes run summaries to an HTTP analytics endpoint."""

    def __init__(
        self,
        url: Optional[str],
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout
        self._client = client

    @staticmethod
    def build_payload(summary: Summary, metadata: RunMetadata) -> Dict[str, Any]:
        payload = asdict(metadata)
        payload.update(summary.to_dict())
        return payload

    def publish(self, summary: Summary, metadata: RunMetadata) -> bool:
        """
        Post the summary wrapped with run metadata.

        Returns:
            True if the endpoint accepted the payload.
        """
        if not self.url:
            logger.info("No analytics URL configured, skipping publish")
            return False
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
        return _post_json(
            self._client,
            self.url,
            self.build_payload(summary, metadata),
            self.timeout,
            "Analytics publish",
            headers=headers,
        )


def _post_json(
    client: Optional[httpx.Client],
    url: str,
    payload: Dict[str, Any],
    timeout: float,
    label: str,
    headers: Optional[Dict[str, str]] = None,
) -> bool:
    try:
        if client is not None:
            response = client.post(url, json=payload, headers=headers, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as own_client:
                response = own_client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"{label} failed: {e}")
        return False

    if response.status_code >= 400:
        hint = " (rate limited)" if response.status_code == 429 else ""
        logger.error(f"{label} rejected with status {response.status_code}{hint}")
        return False

    logger.info(f"{label} sent successfully")
    return True
