"""
Batch orchestration: every query template against every agent of every group.

Work proceeds strictly one exchange at a time. A unit of work (one template
against one agent) that fails is recorded and the batch moves on; only a
failed login or group listing stops the run, since there is then nothing
left to iterate.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .errors import QueryClientError, SignatureError
from .inventory import Agent, Group, InventoryClient
from .protocol import (
    DigestSigner,
    DigestVerifier,
    ReadPolicy,
    SessionProtocolClient,
    SessionStore,
    TlsConnector,
    parse_address,
)
from .queries import QueryTemplate, load_query_templates
from .results import ResultWriter
from .settings import Settings


class UnitOutcome(Enum):
    SUCCEEDED = "SUCCEEDED"
    REMOTE_FAILED = "REMOTE_FAILED"  # verified response with status false
    ERROR = "ERROR"


@dataclass
class UnitResult:
    group: str
    agent: Optional[str]  # None when the group's agents could not be listed
    query: Optional[str]
    outcome: UnitOutcome
    output_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is UnitOutcome.SUCCEEDED


@dataclass
class BatchReport:
    results: list[UnitResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def ok(self) -> bool:
        return self.failed == 0


class BatchRunner:
    """
    Drives a whole batch against one query server.

    Args:
        inventory: Relay client used to log in and enumerate groups/agents
        connector: Opens a fresh TLS transport for every exchange
        protocol_client: Performs the signed exchange
        templates: Query templates to run against each agent
        writer: Persists successful results
        username: Relay login name
        password: Relay login password
        reconnect_delay: Cool-down after every unit before the next connection
        sleep: Injectable ``asyncio.sleep``
    """

    def __init__(
        self,
        inventory: InventoryClient,
        connector: TlsConnector,
        protocol_client: SessionProtocolClient,
        templates: list[QueryTemplate],
        writer: ResultWriter,
        username: str,
        password: str,
        reconnect_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.inventory = inventory
        self.connector = connector
        self.protocol_client = protocol_client
        self.templates = templates
        self.writer = writer
        self.username = username
        self.password = password
        self.reconnect_delay = reconnect_delay
        self._sleep = sleep

    async def run(self, server_address: str) -> BatchReport:
        report = BatchReport()
        await self.inventory.authenticate(self.username, self.password)
        logging.info("Fetching groups...")
        groups = await self.inventory.fetch_groups()
        logging.info("Fetched %d groups", len(groups))

        for group in groups:
            try:
                self.writer.group_dir(group)
                agents = await self.inventory.fetch_agents(group.id)
            except QueryClientError as e:
                logging.error("Skipping group %s: %s", group.name, e.message)
                report.results.append(
                    UnitResult(group.name, None, None, UnitOutcome.ERROR, error=e.message)
                )
                continue
            logging.info("Fetched %d agents for group %s", len(agents), group.name)
            for agent in agents:
                for template in self.templates:
                    report.results.append(await self.run_unit(server_address, group, agent, template))

        logging.info("All queries completed: %d succeeded, %d failed", report.succeeded, report.failed)
        return report

    async def run_unit(
        self, server_address: str, group: Group, agent: Agent, template: QueryTemplate
    ) -> UnitResult:
        logging.info("Executing query %s for agent %s", template.name, agent.name)
        try:
            result = await self._exchange(server_address, group, agent, template)
        except SignatureError as e:
            logging.error("Discarding untrusted response for %s/%s: %s", agent.name, template.name, e.message)
            result = UnitResult(group.name, agent.name, template.name, UnitOutcome.ERROR, error=e.message)
        except QueryClientError as e:
            logging.error("Query %s for agent %s failed: %s", template.name, agent.name, e.message)
            result = UnitResult(group.name, agent.name, template.name, UnitOutcome.ERROR, error=e.message)
        await self._sleep(self.reconnect_delay)
        return result

    async def _exchange(
        self, server_address: str, group: Group, agent: Agent, template: QueryTemplate
    ) -> UnitResult:
        payload = template.render(agent)
        logging.info("Connecting to server at %s...", server_address)
        transport = await self.connector.connect_with_retry(server_address)
        response = await self.protocol_client.exchange(transport, payload)
        if not response.status:
            logging.warning("Query failed: %s", response.data)
            return UnitResult(
                group.name, agent.name, template.name, UnitOutcome.REMOTE_FAILED, error=response.data
            )
        out = self.writer.write(group, template.name, agent, response.data)
        return UnitResult(group.name, agent.name, template.name, UnitOutcome.SUCCEEDED, output_path=out)


def build_connector(cfg: Settings) -> TlsConnector:
    return TlsConnector(
        server_hostname=cfg.tls_server_name,
        max_attempts=cfg.connect_max_attempts,
        delay=cfg.connect_retry_delay,
    )


def build_protocol_client(
    cfg: Settings, on_progress: Optional[Callable[[int], None]] = None
) -> SessionProtocolClient:
    return SessionProtocolClient(
        client_id=cfg.client_id,
        signer=DigestSigner(cfg.client_key.get_secret_value()),
        verifier=DigestVerifier(cfg.server_key.get_secret_value()),
        session_store=SessionStore.from_path(cfg.session_file, ttl_seconds=cfg.session_ttl_seconds),
        read_policy=ReadPolicy(
            chunk_size=cfg.read_chunk_size,
            max_bytes=cfg.read_max_bytes,
            max_duration=cfg.read_max_seconds,
        ),
        on_progress=on_progress,
    )


async def run_batch(
    cfg: Settings,
    server_address: str,
    on_progress: Optional[Callable[[int], None]] = None,
) -> BatchReport:
    """Assemble every collaborator from ``cfg`` and run one batch."""
    parse_address(server_address)
    templates = load_query_templates(cfg.queries_dir)
    logging.info("Loaded %d query templates from %s", len(templates), cfg.queries_dir)
    wazuh_url, username, password = cfg.require_inventory_credentials()
    async with InventoryClient(
        cfg.inventory_api_url,
        wazuh_url,
        max_retries=cfg.inventory_max_retries,
        retry_delay=cfg.inventory_retry_delay,
        timeout=cfg.inventory_timeout,
    ) as inventory:
        runner = BatchRunner(
            inventory=inventory,
            connector=build_connector(cfg),
            protocol_client=build_protocol_client(cfg, on_progress),
            templates=templates,
            writer=ResultWriter(cfg.output_dir),
            username=username,
            password=password,
            reconnect_delay=cfg.reconnect_delay,
        )
        return await runner.run(server_address)


__all__ = [
    "UnitOutcome",
    "UnitResult",
    "BatchReport",
    "BatchRunner",
    "build_connector",
    "build_protocol_client",
    "run_batch",
]
