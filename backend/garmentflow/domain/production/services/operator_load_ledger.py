"""
Operator Load Ledger

Single writer of ``Operator.current_load``. Every increment or decrement goes
through one ``asyncio.Lock`` per operator so concurrent assignments against
the same operator never lose an update.
"""

import asyncio
from collections import defaultdict

from ....core.observability import get_logger
from ...shared.exceptions import NotFoundError
from ..entities.operator import Operator
from ..repositories.operator_repository import OperatorRepository

logger = get_logger(__name__)


class OperatorLoadLedger:
    """Serializes load changes per operator."""

    def __init__(self, operator_repository: OperatorRepository) -> None:
        self._operator_repository = operator_repository
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def reserve(self, operator_id: str) -> Operator:
        """
        Add one unit of load to an operator.

        Called before the work item write it belongs to; undo with
        ``release`` if that write fails.

        Returns:
            The operator with its updated load

        Raises:
            NotFoundError: If the operator doesn't exist
        """
        async with self._locks[operator_id]:
            operator = await self._get(operator_id)
            operator.current_load += 1
            operator.mark_updated()
            saved = await self._operator_repository.save(operator)

        logger.debug(
            "operator_load_reserved",
            operator_id=operator_id,
            current_load=saved.current_load,
            max_load=saved.max_load,
        )
        return saved

    async def release(self, operator_id: str) -> Operator:
        """
        Remove one unit of load from an operator.

        The load never drops below zero; an attempt to do so is logged.

        Raises:
            NotFoundError: If the operator doesn't exist
        """
        async with self._locks[operator_id]:
            operator = await self._get(operator_id)
            if operator.current_load == 0:
                logger.warning("operator_load_underflow", operator_id=operator_id)
            else:
                operator.current_load -= 1
                operator.mark_updated()
            saved = await self._operator_repository.save(operator)

        logger.debug(
            "operator_load_released",
            operator_id=operator_id,
            current_load=saved.current_load,
        )
        return saved

    async def _get(self, operator_id: str) -> Operator:
        operator = await self._operator_repository.get_by_id(operator_id)
        if operator is None:
            raise NotFoundError("Operator", operator_id)
        return operator
