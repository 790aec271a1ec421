"""RuleEngine -- runs a board's rules against each activity event.

For every event the engine lists the board's enabled rules in creation
order, matches each trigger, and dispatches the action of every matching
rule in turn. A failing rule is recorded and never stops the rules after
it. Every dispatch is written to the audit log when one is configured.

Events of one board are processed one at a time (a lock per board).
Events raised while the current thread is already processing an event,
typically by a collaborator reacting to a rule's own mutation, are queued
and processed afterwards, up to ``max_chained_events`` per top-level event.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from wekan_rules.actions.dispatcher import DispatchContext
from wekan_rules.exceptions import StorageError, WekanRulesError
from wekan_rules.models.config import RulesConfig
from wekan_rules.models.results import ActionResult, RuleOutcome

if TYPE_CHECKING:
    from wekan_rules.actions.dispatcher import ActionDispatcher
    from wekan_rules.models.activity import ActivityEvent
    from wekan_rules.models.rule import Rule
    from wekan_rules.protocols import BoardDirectory, BoardMutationAPI, MailAPI
    from wekan_rules.rules.store import RuleStore
    from wekan_rules.storage.repositories import RuleLogRepository
    from wekan_rules.storage.unit import StorageUnit
    from wekan_rules.triggers.matcher import TriggerMatcher

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RuleEngine:
    """Matches activity events against stored rules and dispatches actions.

    Args:
        rules: Source of the board's rules.
        matcher: Trigger evaluation.
        dispatcher: Action execution.
        board_api: Board/card mutation collaborator.
        directory: Name-to-id lookups.
        mail_api: Mail collaborator; mail actions fail without one.
        log_repo: Audit log; with *storage*, one row per dispatched rule.
        storage: Transaction scope for audit writes.
        config: Engine limits and the service actor.
        on_failure: Called with each failed RuleOutcome and its event.
    """

    def __init__(
        self,
        rules: RuleStore,
        matcher: TriggerMatcher,
        dispatcher: ActionDispatcher,
        *,
        board_api: BoardMutationAPI,
        directory: BoardDirectory,
        mail_api: MailAPI | None = None,
        log_repo: RuleLogRepository | None = None,
        storage: StorageUnit | None = None,
        config: RulesConfig | None = None,
        on_failure: Callable[[RuleOutcome, ActivityEvent], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._rules = rules
        self._matcher = matcher
        self._dispatcher = dispatcher
        self._board_api = board_api
        self._directory = directory
        self._mail_api = mail_api
        self._log_repo = log_repo
        self._storage = storage
        self._config = config or RulesConfig()
        self._on_failure = on_failure
        self._clock = clock

        self._paused = False
        self._locks_guard = threading.Lock()
        self._board_locks: dict[str, threading.Lock] = {}
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Pause / Resume
    # ------------------------------------------------------------------

    def pause(self) -> None:
        """Stop processing events; events received while paused are dropped."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    @property
    def is_paused(self) -> bool:
        return self._paused

    # ------------------------------------------------------------------
    # Event entry point
    # ------------------------------------------------------------------

    def on_activity(self, event: ActivityEvent) -> list[RuleOutcome]:
        """Process *event* and return one RuleOutcome per matching rule.

        Never raises. Returns an empty list when paused, and for an event
        that was queued behind the event the current thread is processing.
        """
        if self._paused:
            return []

        pending: deque[ActivityEvent] | None = getattr(self._local, "pending", None)
        if pending is not None:
            pending.append(event)
            logger.debug(
                "Queued chained %s event for board %s",
                event.activity_type,
                event.board_id,
            )
            return []

        pending = deque()
        self._local.pending = pending
        try:
            outcomes = self._process_locked(event)
            chained = 0
            while pending:
                if chained >= self._config.max_chained_events:
                    logger.warning(
                        "Dropping %d chained event(s) after %d for board %s",
                        len(pending),
                        chained,
                        event.board_id,
                    )
                    pending.clear()
                    break
                chained += 1
                self._process_locked(pending.popleft())
        finally:
            self._local.pending = None
        return outcomes

    def _board_lock(self, board_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._board_locks.get(board_id)
            if lock is None:
                lock = threading.Lock()
                self._board_locks[board_id] = lock
            return lock

    def _process_locked(self, event: ActivityEvent) -> list[RuleOutcome]:
        with self._board_lock(event.board_id):
            return self._process(event)

    # ------------------------------------------------------------------
    # Matching and dispatch
    # ------------------------------------------------------------------

    def _process(self, event: ActivityEvent) -> list[RuleOutcome]:
        if not event.board_id or not event.activity_type:
            logger.warning("Ignoring event without board or activity type: %r", event)
            return []

        try:
            candidates = [r for r in self._rules.list_rules(event.board_id) if r.enabled]
        except WekanRulesError as exc:
            logger.error("Could not load rules for board %s: %s", event.board_id, exc)
            return []

        outcomes: list[RuleOutcome] = []
        for rule in candidates:
            if not self._matcher.matches(rule.trigger, event, rule_id=rule.id):
                continue
            logger.debug(
                "Rule %s (%s) matched %s on board %s",
                rule.id,
                rule.title,
                event.activity_type,
                event.board_id,
            )
            outcome = self._dispatch(rule, event)
            self._record(rule, event, outcome)
            outcomes.append(outcome)
        return outcomes

    def _context_for(self, rule: Rule) -> DispatchContext:
        return DispatchContext(
            actor_id=rule.actor_id or self._config.service_actor_id,
            board_api=self._board_api,
            directory=self._directory,
            mail_api=self._mail_api,
            clock=self._clock,
        )

    def _dispatch(self, rule: Rule, event: ActivityEvent) -> RuleOutcome:
        try:
            result = self._dispatcher.execute(rule.action, event, self._context_for(rule))
        except Exception as exc:
            result = ActionResult.failure(
                "CollaboratorError", f"{type(exc).__name__}: {exc}"
            )
        return RuleOutcome(
            rule_id=rule.id,
            rule_title=rule.title,
            outcome="executed" if result.ok else "error",
            result=result,
        )

    # ------------------------------------------------------------------
    # Failure reporting and audit
    # ------------------------------------------------------------------

    def _record(self, rule: Rule, event: ActivityEvent, outcome: RuleOutcome) -> None:
        result = outcome.result
        if not result.ok:
            logger.error(
                "Rule %s (%s) failed on %s: %s: %s",
                rule.id,
                rule.title,
                event.activity_type,
                result.error_kind,
                result.error,
            )
            if self._on_failure is not None:
                try:
                    self._on_failure(outcome, event)
                except Exception:
                    logger.exception("Failure listener raised for rule %s", rule.id)

        if not self._config.audit_log or self._log_repo is None or self._storage is None:
            return

        from wekan_rules.storage.schema import RuleLogRow

        entry = RuleLogRow(
            board_id=event.board_id,
            rule_id=rule.id,
            activity_type=event.activity_type,
            action_type=rule.action.type,
            outcome=outcome.outcome,
            error_kind=result.error_kind,
            error_message=result.error,
            created_at=self._clock(),
        )
        try:
            with self._storage.transaction():
                self._log_repo.save_log_entry(entry)
        except StorageError as exc:
            logger.error("Could not write audit entry for rule %s: %s", rule.id, exc)
