# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Built-in flow actions.

Executors receive already-interpolated params and an ActionContext. They
signal failure by raising; the engine records the error on the execution.
"""

import asyncio
import ipaddress
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx

from livecompanion.automation.registries import ActionDefinition, Registry
from livecompanion.errors import ActionExecutionError

if TYPE_CHECKING:
    from livecompanion.automation.engine import AutomationEngine
    from livecompanion.automation.models import Flow
    from livecompanion.extensions.channels import ChannelHub

logger = logging.getLogger(__name__)

MAX_DELAY_MS = 60_000
MAX_FLOW_DEPTH = 5

DEFAULT_WEBHOOK_DOMAINS = [
    "webhook.site",
    "discord.com",
    "zapier.com",
    "ifttt.com",
    "make.com",
    "integromat.com",
]
BLOCKED_HOSTNAMES = ("localhost",)


def is_internal_host(hostname: str) -> bool:
    """Whether a hostname names this machine or a non-public address."""
    hostname = hostname.rstrip(".")
    if hostname in BLOCKED_HOSTNAMES or hostname.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    mapped = getattr(address, "ipv4_mapped", None)
    if mapped is not None:
        address = mapped
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
        or address.is_reserved
        or address.is_multicast
    )


class FlowStopped(Exception):
    """Raised by the ``flow:stop`` action to end a flow without error."""


class WebhookClient:
    """Outbound HTTP for the ``webhook:send`` action."""

    def __init__(
        self,
        allowed_domains: list[str] | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.allowed_domains = list(
            DEFAULT_WEBHOOK_DOMAINS if allowed_domains is None else allowed_domains
        )
        self.timeout = timeout
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def validate_url(self, url: str) -> str:
        """Check a webhook target against the allow and block lists.

        Returns:
            The target hostname

        Raises:
            ActionExecutionError: If the URL is not allowed
        """
        parsed = urlparse(url)
        hostname = (parsed.hostname or "").lower()
        if parsed.scheme not in ("http", "https") or not hostname:
            raise ActionExecutionError(f"Invalid webhook URL: {url}")

        if is_internal_host(hostname):
            raise ActionExecutionError(f"Webhook to internal network blocked: {hostname}")

        if not any(
            hostname == domain or hostname.endswith("." + domain)
            for domain in self.allowed_domains
        ):
            raise ActionExecutionError(f"Webhook URL not in whitelist: {hostname}")
        return hostname

    async def send(
        self,
        url: str,
        method: str = "POST",
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> int:
        self.validate_url(url)
        client = await self._get_client()
        try:
            response = await client.request(
                method.upper(),
                url,
                json=body,
                headers={"Content-Type": "application/json", **(headers or {})},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Webhook error: {e}")
            raise ActionExecutionError(f"Webhook request failed: {e}") from e

        logger.info(f"Webhook sent to {url}: {response.status_code}")
        return response.status_code


@dataclass
class ActionServices:
    """Host services reachable from action executors."""

    hub: "ChannelHub | None" = None
    webhooks: WebhookClient = field(default_factory=WebhookClient)
    files_dir: Path = Path("./user_data/flow_logs")


@dataclass
class ActionContext:
    """Everything an executor can see while a flow runs."""

    engine: "AutomationEngine"
    event: dict[str, Any]
    trigger: str
    flow: "Flow | None" = None
    depth: int = 0

    @property
    def services(self) -> ActionServices:
        return self.engine.services

    @property
    def variables(self):
        return self.engine.variables


def _require(params: dict[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or value == "":
        raise ActionExecutionError(f"Missing required parameter: {name}")
    return value


def _coerce(value: Any, value_type: str | None) -> Any:
    if value_type == "number":
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ActionExecutionError(f"Not a number: {value!r}") from e
        return int(number) if number.is_integer() else number
    if value_type == "boolean":
        return str(value).strip().lower() in ("true", "1", "yes", "on")
    if value_type == "string":
        return "" if value is None else str(value)
    return value


def log_write(params: dict[str, Any], context: ActionContext) -> str:
    message = str(params.get("message", ""))
    level = logging.getLevelName(str(params.get("level", "info")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    flow_name = context.flow.name if context.flow else "manual"
    logger.log(level, f"[Flow:{flow_name}] {message}")
    return message


async def delay_wait(params: dict[str, Any], context: ActionContext) -> int:
    try:
        duration = int(params.get("duration", 1000))
    except (TypeError, ValueError) as e:
        raise ActionExecutionError(f"Invalid duration: {params.get('duration')!r}") from e
    duration = max(0, min(duration, MAX_DELAY_MS))
    await asyncio.sleep(duration / 1000)
    return duration


def variable_set(params: dict[str, Any], context: ActionContext) -> Any:
    name = str(_require(params, "name"))
    value = _coerce(params.get("value"), params.get("type"))
    return context.variables.set(name, value).value


def variable_increment(params: dict[str, Any], context: ActionContext) -> Any:
    name = str(_require(params, "name"))
    amount = _coerce(params.get("amount", 1), "number")
    return context.variables.increment(name, amount).value


def variable_delete(params: dict[str, Any], context: ActionContext) -> bool:
    return context.variables.delete(str(_require(params, "name")))


async def channel_broadcast(params: dict[str, Any], context: ActionContext) -> int:
    hub = context.services.hub
    if hub is None:
        raise ActionExecutionError("No channel hub available")
    event = str(_require(params, "event"))
    data = params.get("data")
    if data is None:
        data = context.event
    return await hub.broadcast(event, data)


async def webhook_send(params: dict[str, Any], context: ActionContext) -> int:
    url = str(_require(params, "url"))
    body = params.get("body")
    if body is None:
        body = context.event
    return await context.services.webhooks.send(
        url,
        method=str(params.get("method", "POST")),
        body=body,
        headers=params.get("headers"),
    )


def _write_file(path: Path, content: str, append: bool) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if append:
        with path.open("a", encoding="utf-8") as f:
            f.write(content + "\n")
    else:
        path.write_text(content, encoding="utf-8")


async def file_append(params: dict[str, Any], context: ActionContext) -> str:
    raw_name = str(_require(params, "file_path"))
    # Only the file name is kept; directories in the parameter are ignored.
    filename = Path(raw_name.replace("\\", "/")).name
    if not filename or filename in (".", ".."):
        raise ActionExecutionError(f"Invalid file name: {raw_name}")

    base_dir = context.services.files_dir.resolve()
    target = (base_dir / filename).resolve()
    if target.parent != base_dir:
        raise ActionExecutionError(f"Path traversal attempt detected: {raw_name}")

    content = str(params.get("content", ""))
    append = params.get("append", True) is not False
    await asyncio.to_thread(_write_file, target, content, append)
    logger.info(f"Written to file: {filename} (in {base_dir})")
    return filename


async def flow_trigger(params: dict[str, Any], context: ActionContext) -> Any:
    if context.depth >= MAX_FLOW_DEPTH:
        raise ActionExecutionError(f"Flow chaining deeper than {MAX_FLOW_DEPTH} levels")
    try:
        flow_id = int(_require(params, "flow_id"))
    except (TypeError, ValueError) as e:
        raise ActionExecutionError(f"Invalid flow_id: {params.get('flow_id')!r}") from e

    data = context.event if params.get("pass_context", True) else {}
    record = await context.engine.trigger_flow(flow_id, data, depth=context.depth + 1)
    return None if record is None else record.result.value


def flow_stop(params: dict[str, Any], context: ActionContext) -> None:
    raise FlowStopped(params.get("reason") or "Stopped by flow:stop")


_BUILTINS = [
    ActionDefinition(
        type="log:write",
        executor=log_write,
        name="Write Log",
        description="Write a message to the application log",
        category="system",
        fields=[
            {"name": "message", "type": "textarea", "label": "Message"},
            {"name": "level", "type": "select", "label": "Level",
             "options": ["debug", "info", "warning", "error"], "default": "info"},
        ],
    ),
    ActionDefinition(
        type="delay:wait",
        executor=delay_wait,
        name="Wait",
        description="Pause the flow before the next action",
        category="logic",
        fields=[{"name": "duration", "type": "number", "label": "Duration (ms)",
                 "default": 1000, "min": 0, "max": MAX_DELAY_MS}],
    ),
    ActionDefinition(
        type="variable:set",
        executor=variable_set,
        name="Set Variable",
        category="variables",
        fields=[
            {"name": "name", "type": "text", "label": "Variable"},
            {"name": "value", "type": "text", "label": "Value"},
            {"name": "type", "type": "select", "label": "Type",
             "options": ["string", "number", "boolean"]},
        ],
    ),
    ActionDefinition(
        type="variable:increment",
        executor=variable_increment,
        name="Increment Variable",
        category="variables",
        fields=[
            {"name": "name", "type": "text", "label": "Variable"},
            {"name": "amount", "type": "number", "label": "Amount", "default": 1},
        ],
    ),
    ActionDefinition(
        type="variable:delete",
        executor=variable_delete,
        name="Delete Variable",
        category="variables",
        fields=[{"name": "name", "type": "text", "label": "Variable"}],
    ),
    ActionDefinition(
        type="channel:broadcast",
        executor=channel_broadcast,
        name="Broadcast",
        description="Send a message to all connected dashboard and overlay clients",
        category="overlay",
        fields=[
            {"name": "event", "type": "text", "label": "Event name"},
            {"name": "data", "type": "json", "label": "Payload"},
        ],
    ),
    ActionDefinition(
        type="webhook:send",
        executor=webhook_send,
        name="Send Webhook",
        description="Send an HTTP request to an allow-listed webhook service",
        category="integration",
        fields=[
            {"name": "url", "type": "url", "label": "URL"},
            {"name": "method", "type": "select", "label": "Method",
             "options": ["POST", "PUT", "GET"], "default": "POST"},
            {"name": "body", "type": "json", "label": "Body"},
            {"name": "headers", "type": "json", "label": "Headers"},
        ],
    ),
    ActionDefinition(
        type="file:append",
        executor=file_append,
        name="Write File",
        description="Append a line to a file in the flow log directory",
        category="system",
        fields=[
            {"name": "file_path", "type": "text", "label": "File name"},
            {"name": "content", "type": "textarea", "label": "Content"},
            {"name": "append", "type": "checkbox", "label": "Append", "default": True},
        ],
    ),
    ActionDefinition(
        type="flow:trigger",
        executor=flow_trigger,
        name="Trigger Flow",
        description="Run another flow (its conditions still apply)",
        category="logic",
        fields=[
            {"name": "flow_id", "type": "number", "label": "Flow"},
            {"name": "pass_context", "type": "checkbox", "label": "Pass event data",
             "default": True},
        ],
    ),
    ActionDefinition(
        type="flow:stop",
        executor=flow_stop,
        name="Stop Flow",
        description="Skip the remaining actions of this flow",
        category="logic",
        fields=[{"name": "reason", "type": "text", "label": "Reason"}],
    ),
]


def register_builtin_actions(registry: Registry[ActionDefinition]) -> None:
    for definition in _BUILTINS:
        registry.register(definition)
