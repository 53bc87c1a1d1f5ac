"""Concurrent fan-out of one relay operation over many relays."""

import asyncio
import logging
from typing import Dict, Iterable, Optional

from relaywatch.base import RelayOperation
from relaywatch.exceptions import AggregationCancelledError, ErrorKind, InvalidInputError
from relaywatch.models import QueryResult, RelayIdentity


class FanOutAggregator:
    """Run a relay operation against many relays at once.

    Every requested relay gets exactly one ``QueryResult`` in the returned
    mapping. A relay that fails is reported, never dropped, and never aborts
    the others.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None
    ):
        """Initialize the aggregator.

        Args:
            timeout: Default deadline in seconds for a whole fan-out (None: no deadline)
            max_concurrency: Cap on relay calls in flight (None: one task per relay)
        """
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.logger = logging.getLogger(__name__)

    async def _run(
        self,
        relay: RelayIdentity,
        op: RelayOperation,
        semaphore: Optional[asyncio.Semaphore]
    ) -> QueryResult:
        if semaphore is None:
            return await op(relay)
        async with semaphore:
            return await op(relay)

    async def query_all_relays(
        self,
        relays: Iterable[RelayIdentity],
        op: RelayOperation,
        timeout: Optional[float] = None
    ) -> Dict[str, QueryResult]:
        """Dispatch ``op`` to every relay concurrently and collect the results.

        Args:
            relays: Relays to query; duplicates (by name) are queried once
            op: Coroutine function taking a relay and returning its QueryResult
            timeout: Deadline for the whole fan-out, overriding the default

        Returns:
            Mapping of relay name to result, one entry per requested relay

        Raises:
            InvalidInputError: If no relay was given, or every relay rejected the input
            AggregationCancelledError: If the deadline passed before all relays answered
            asyncio.CancelledError: If the calling task was cancelled
        """
        unique: Dict[str, RelayIdentity] = {}
        for relay in relays:
            unique.setdefault(relay.name, relay)
        if not unique:
            raise InvalidInputError("At least one relay is required")

        timeout = self.timeout if timeout is None else timeout
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        tasks = {
            name: asyncio.ensure_future(self._run(relay, op, semaphore))
            for name, relay in unique.items()
        }

        try:
            _, pending = await asyncio.wait(list(tasks.values()), timeout=timeout)
            if pending:
                waiting = sorted(name for name, task in tasks.items() if task in pending)
                self.logger.warning(
                    f"Fan-out over {len(tasks)} relays cancelled after {timeout}s; "
                    f"still waiting on: {', '.join(waiting)}"
                )
                raise AggregationCancelledError(
                    f"Relay query exceeded {timeout}s waiting on {', '.join(waiting)}"
                )
        finally:
            # Nothing may outlive the call, whichever way it exits
            outstanding = [task for task in tasks.values() if not task.done()]
            for task in outstanding:
                task.cancel()
            if outstanding:
                await asyncio.wait(outstanding)

        return self._collect({name: self._outcome(task) for name, task in tasks.items()})

    @staticmethod
    def _outcome(task: asyncio.Future) -> object:
        """Result or exception of a finished task, as ``gather(return_exceptions=True)`` reports it."""
        if task.cancelled():
            return asyncio.CancelledError()
        return task.exception() or task.result()

    def _collect(self, outcomes: Dict[str, object]) -> Dict[str, QueryResult]:
        """Turn gathered outcomes into results, surfacing programming errors."""
        errors = {
            name: outcome for name, outcome in outcomes.items()
            if isinstance(outcome, BaseException)
        }

        # The same exception from every relay means the request itself is broken
        if errors and len(errors) == len(outcomes):
            kinds = {type(error) for error in errors.values()}
            if len(kinds) == 1:
                raise next(iter(errors.values()))

        results: Dict[str, QueryResult] = {}
        for name, outcome in outcomes.items():
            if isinstance(outcome, InvalidInputError):
                self.logger.warning(f"{name} rejected the query: {outcome}")
                results[name] = QueryResult.failure(name, ErrorKind.INVALID_INPUT, str(outcome))
            elif isinstance(outcome, BaseException):
                self.logger.error(
                    f"Unexpected error querying {name}: {outcome!r}",
                    exc_info=(type(outcome), outcome, outcome.__traceback__)
                )
                results[name] = QueryResult.failure(
                    name, ErrorKind.INTERNAL, f"{type(outcome).__name__}: {outcome}"
                )
            else:
                results[name] = outcome

        failed = sum(1 for result in results.values() if not result.ok)
        self.logger.info(f"Queried {len(results)} relays: {len(results) - failed} ok, {failed} failed")
        return results
