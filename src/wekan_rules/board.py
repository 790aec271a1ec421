"""RulesBoard -- one-stop entry point wiring storage, stores and the engine.

Usage::

    with RulesBoard.open("rules.db", board_api=api, directory=api) as rb:
        rb.roles.assign_role("u1", "b1", "BoardAdmin")
        rb.rules.create_rule("b1", "Colour urgent", trigger, action, actor_id="u1")
        rb.on_activity(event)

Opened without collaborators (as the CLI does) a RulesBoard still manages
roles, rules and the audit log; call :meth:`connect` before feeding events.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from wekan_rules.actions.dispatcher import ActionDispatcher
from wekan_rules.actions.mail import mailer_from_config
from wekan_rules.engine import RuleEngine
from wekan_rules.models.config import RulesConfig
from wekan_rules.models.results import RuleLogEntry
from wekan_rules.permissions.service import RoleService
from wekan_rules.rules.builder import RuleBuilder
from wekan_rules.rules.store import RuleStore
from wekan_rules.storage.engine import create_rules_engine, create_session_factory, init_db
from wekan_rules.storage.sqlite import (
    SqliteRoleRepository,
    SqliteRuleLogRepository,
    SqliteRuleRepository,
)
from wekan_rules.storage.unit import StorageUnit
from wekan_rules.triggers.matcher import TriggerMatcher

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

    from wekan_rules.models.activity import ActivityEvent
    from wekan_rules.models.results import RuleOutcome
    from wekan_rules.protocols import BoardDirectory, BoardMutationAPI, MailAPI
    from wekan_rules.storage.schema import RuleLogRow

logger = logging.getLogger(__name__)


def _log_entry(row: RuleLogRow) -> RuleLogEntry:
    return RuleLogEntry(
        id=row.id,
        board_id=row.board_id,
        rule_id=row.rule_id,
        activity_type=row.activity_type,
        action_type=row.action_type,
        outcome=row.outcome,
        error_kind=row.error_kind,
        error_message=row.error_message,
        created_at=row.created_at,
    )


class RulesBoard:
    """Roles, rules, the audit log and the rule engine over one database.

    Use :meth:`open` rather than the constructor.
    """

    def __init__(
        self,
        *,
        engine: Engine | None,
        session: Session,
        config: RulesConfig,
    ) -> None:
        self._engine = engine
        self._session = session
        self._config = config
        self._closed = False

        self._storage = StorageUnit(session)
        self._rule_repo = SqliteRuleRepository(session)
        self._role_repo = SqliteRoleRepository(session)
        self._log_repo = SqliteRuleLogRepository(session)

        self.roles = RoleService(self._role_repo, self._storage)
        self.rules = RuleStore(self._rule_repo, self._storage)
        self.matcher = TriggerMatcher()
        self.dispatcher = ActionDispatcher(self.roles)
        self._rule_engine: RuleEngine | None = None

    @classmethod
    def open(
        cls,
        path: str | None = None,
        *,
        config: RulesConfig | None = None,
        board_api: BoardMutationAPI | None = None,
        directory: BoardDirectory | None = None,
        mail_api: MailAPI | None = None,
    ) -> RulesBoard:
        """Open (or create) a rules database.

        Args:
            path: SQLite path, ``":memory:"`` by default. Overrides
                ``config.db_path`` when given.
            config: Instance configuration. Defaults created if *None*.
            board_api: Mutation collaborator. With *directory*, the
                engine is connected immediately.
            directory: Name-to-id lookups.
            mail_api: Mail collaborator. Built from the SMTP settings of
                *config* when omitted.
        """
        if config is None:
            config = RulesConfig(db_path=path or ":memory:")
        elif path is not None:
            config = config.model_copy(update={"db_path": path})

        engine = create_rules_engine(config.db_path, url=config.db_url)
        init_db(engine)
        session = create_session_factory(engine)()

        board = cls(engine=engine, session=session, config=config)
        if board_api is not None and directory is not None:
            board.connect(board_api, directory, mail_api)
        return board

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> RulesConfig:
        return self._config

    @property
    def storage(self) -> StorageUnit:
        return self._storage

    @property
    def engine(self) -> RuleEngine:
        """The connected RuleEngine; raises RuntimeError before :meth:`connect`."""
        if self._rule_engine is None:
            raise RuntimeError("RulesBoard is not connected to board collaborators")
        return self._rule_engine

    # ------------------------------------------------------------------
    # Engine
    # ------------------------------------------------------------------

    def connect(
        self,
        board_api: BoardMutationAPI,
        directory: BoardDirectory,
        mail_api: MailAPI | None = None,
        *,
        on_failure: Callable[[RuleOutcome, ActivityEvent], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> RuleEngine:
        """Build the RuleEngine against the host's collaborators."""
        extra = {} if clock is None else {"clock": clock}
        self._rule_engine = RuleEngine(
            self.rules,
            self.matcher,
            self.dispatcher,
            board_api=board_api,
            directory=directory,
            mail_api=mail_api if mail_api is not None else mailer_from_config(self._config),
            log_repo=self._log_repo,
            storage=self._storage,
            config=self._config,
            on_failure=on_failure,
            **extra,
        )
        return self._rule_engine

    def on_activity(self, event: ActivityEvent) -> list[RuleOutcome]:
        return self.engine.on_activity(event)

    def builder(
        self,
        board_id: str,
        *,
        actor_id: str | None = None,
        directory: BoardDirectory | None = None,
    ) -> RuleBuilder:
        """Start the title -> trigger -> action flow for a new rule."""
        return RuleBuilder(self.rules, board_id, directory=directory, actor_id=actor_id)

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def get_log(
        self,
        *,
        board_id: str | None = None,
        rule_id: str | None = None,
        since: datetime | None = None,
        outcome: str | None = None,
        limit: int = 100,
    ) -> list[RuleLogEntry]:
        """Audit entries, newest first."""
        with self._storage.reading():
            rows = self._log_repo.get_log(
                board_id=board_id,
                rule_id=rule_id,
                since=since,
                outcome=outcome,
                limit=limit,
            )
            return [_log_entry(r) for r in rows]

    def prune_log(self, before: datetime, *, board_id: str | None = None) -> int:
        """Delete audit entries older than *before*; returns how many."""
        with self._storage.transaction():
            removed = self._log_repo.delete_log_entries(before, board_id=board_id)
        logger.info("Pruned %d rule log entries older than %s", removed, before)
        return removed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the session and dispose the engine."""
        if self._closed:
            return
        self._closed = True
        self._storage.close()
        if self._engine is not None:
            self._engine.dispose()

    def __enter__(self) -> RulesBoard:
        return self

    def __exit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"RulesBoard(db='{self._config.db_path}', {state})"
