# backend/retailflow/__init__.py
from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from .api_client import ApiClient
from .config import Config
from .permissions import WorkflowContext
from .services.cache_service import ResourceCache
from .services.invalidation_service import InvalidationDispatcher
from .services.mutation_service import MutationRunner
from .services.workflow_service import WorkflowOrchestrator


@dataclass
class Console:
    api: ApiClient
    cache: ResourceCache
    dispatcher: InvalidationDispatcher
    runner: MutationRunner
    orchestrator: WorkflowOrchestrator

    def close(self):
        self.api.close()


def create_console(
    config=None,
    *,
    transport: httpx.BaseTransport | None = None,
    context: WorkflowContext | None = None,
) -> Console:
    config = config or Config

    logging.getLogger(__name__).setLevel(str(config.LOG_LEVEL).upper())

    api = ApiClient(
        config.API_BASE_URL,
        token=config.API_TOKEN,
        timeout=config.REQUEST_TIMEOUT,
        transport=transport,
    )
    cache = ResourceCache()
    dispatcher = InvalidationDispatcher(cache)
    runner = MutationRunner(dispatcher)
    orchestrator = WorkflowOrchestrator(api, cache, runner, context)

    return Console(
        api=api,
        cache=cache,
        dispatcher=dispatcher,
        runner=runner,
        orchestrator=orchestrator,
    )
