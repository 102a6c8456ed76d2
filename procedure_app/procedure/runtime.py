"""
Procedure runtime.

Schedules procedures as asyncio tasks, keeps a record of every run and
turns finished procedures into program messages.
"""

import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, List, Optional

from ..core.exceptions import ProcedureCancelledError, ProcedureError
from .models import ProcedureRecord, ProcedureState
from .ports import PortRegistry
from .procedure import Err, Ok, Procedure, ProcedureContext

Tagger = Callable[[Any], Any]


class ProcedureRuntime:
    """
    Runs the procedures of one program session.

    Results are handed to ``dispatch`` after being wrapped by the tagger
    the procedure was scheduled with. ``run`` reports only successes;
    ``attempt`` reports both outcomes as ``Ok`` or ``Err``.
    """

    def __init__(
        self,
        ports: PortRegistry,
        dispatch: Callable[[Any], None],
        session_id: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        history_limit: int = 200,
    ):
        self.ports = ports
        self.session_id = session_id
        self.logger = logger or logging.getLogger(__name__)
        self.history_limit = history_limit
        self._dispatch = dispatch
        self._procedure_ids = itertools.count(1)
        self._keys = itertools.count(1)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._records: Dict[str, ProcedureRecord] = {}

    def next_key(self) -> str:
        """Channel key, unique within this runtime."""
        return f"key-{next(self._keys)}"

    def run(self, procedure: Procedure, tagger: Optional[Tagger] = None) -> str:
        """
        Schedule a procedure.

        Args:
            procedure: Procedure to execute
            tagger: Turns the result into a program message; None discards it

        Returns:
            Procedure identifier
        """
        return self._schedule(procedure, tagger, attempt=False)

    def attempt(self, procedure: Procedure, tagger: Tagger) -> str:
        """Schedule a procedure whose outcome is dispatched as ``tagger(Ok | Err)``."""
        return self._schedule(procedure, tagger, attempt=True)

    def _schedule(self, procedure: Procedure, tagger: Optional[Tagger], attempt: bool) -> str:
        procedure_id = f"proc-{next(self._procedure_ids)}"
        record = ProcedureRecord(id=procedure_id, name=procedure.name)
        self._records[procedure_id] = record
        self._trim_history()

        task = asyncio.get_running_loop().create_task(
            self._execute(record, procedure, tagger, attempt),
            name=f"{self.session_id or 'runtime'}:{procedure_id}",
        )
        self._tasks[procedure_id] = task
        task.add_done_callback(lambda _t, pid=procedure_id: self._tasks.pop(pid, None))

        self.logger.debug(
            f"Procedure scheduled: {procedure.name}",
            extra={"metadata": {"procedure_id": procedure_id, "session_id": self.session_id}},
        )
        return procedure_id

    async def _execute(
        self,
        record: ProcedureRecord,
        procedure: Procedure,
        tagger: Optional[Tagger],
        attempt: bool,
    ) -> None:
        ctx = ProcedureContext(record.id, self.ports, self._dispatch, self.next_key)
        record.state = ProcedureState.RUNNING
        try:
            value = await procedure.execute(ctx)
        except asyncio.CancelledError:
            record.finish(ProcedureState.CANCELLED)
            raise
        except ProcedureCancelledError:
            record.finish(ProcedureState.CANCELLED)
            return
        except ProcedureError as e:
            self._fail(record, e.reason if e.reason is not None else e.message)
            if attempt and tagger is not None:
                self._report(record, tagger, Err(e.reason))
            return
        except Exception as e:
            self.logger.exception(
                f"Procedure crashed: {record.name}",
                extra={"metadata": {"procedure_id": record.id, "session_id": self.session_id}},
            )
            self._fail(record, e)
            if attempt and tagger is not None:
                self._report(record, tagger, Err(e))
            return
        finally:
            ctx.close()

        record.finish(ProcedureState.COMPLETED)
        self.logger.debug(
            f"Procedure completed: {record.name}",
            extra={
                "metadata": {
                    "procedure_id": record.id,
                    "session_id": self.session_id,
                    "duration": record.duration,
                }
            },
        )
        if tagger is not None:
            self._report(record, tagger, Ok(value) if attempt else value)

    def _report(self, record: ProcedureRecord, tagger: Tagger, result: Any) -> None:
        try:
            self._dispatch(tagger(result))
        except Exception:
            self.logger.exception(
                f"Procedure result dispatch failed: {record.name}",
                extra={"metadata": {"procedure_id": record.id, "session_id": self.session_id}},
            )

    def _fail(self, record: ProcedureRecord, reason: Any) -> None:
        record.finish(ProcedureState.FAILED, error=repr(reason))
        self.logger.warning(
            f"Procedure failed: {record.name}",
            extra={
                "metadata": {
                    "procedure_id": record.id,
                    "session_id": self.session_id,
                    "error": repr(reason),
                }
            },
        )

    def _finish_pending(self, procedure_id: str) -> None:
        # A task cancelled before its first step never enters _execute.
        record = self._records.get(procedure_id)
        if record is not None and record.state is ProcedureState.PENDING:
            record.finish(ProcedureState.CANCELLED)

    def _trim_history(self) -> None:
        if len(self._records) <= self.history_limit:
            return
        for procedure_id, record in list(self._records.items()):
            if len(self._records) <= self.history_limit:
                break
            if record.is_finished:
                del self._records[procedure_id]

    def cancel(self, procedure_id: str) -> bool:
        """Cancel a running procedure. Returns False if it is not running."""
        task = self._tasks.get(procedure_id)
        if task is None or task.done():
            return False
        task.cancel()
        self._finish_pending(procedure_id)
        return True

    async def cancel_all(self) -> None:
        tasks = list(self._tasks.values())
        for procedure_id, task in list(self._tasks.items()):
            task.cancel()
            self._finish_pending(procedure_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def wait(self, procedure_id: str) -> ProcedureRecord:
        """Wait for a procedure to finish and return its record."""
        task = self._tasks.get(procedure_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._records[procedure_id]

    def get_record(self, procedure_id: str) -> Optional[ProcedureRecord]:
        return self._records.get(procedure_id)

    def records(self) -> List[ProcedureRecord]:
        return list(self._records.values())

    @property
    def running(self) -> List[str]:
        return [pid for pid, task in self._tasks.items() if not task.done()]
