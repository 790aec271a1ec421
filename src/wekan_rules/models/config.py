"""Configuration models for WeKan rules.

RulesConfig holds per-instance settings: storage location, the board
service identity, engine limits and outgoing mail.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class RulesConfig(BaseModel):
    """Per-instance configuration."""

    db_path: str = ":memory:"
    db_url: Optional[str] = None
    # Actor used for rules that carry no editing user.
    service_actor_id: Optional[str] = None
    max_chained_events: int = 50
    audit_log: bool = True

    smtp_host: Optional[str] = None
    smtp_port: int = 25
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: Optional[str] = None
    smtp_starttls: bool = True
    # Attempts per message for transient relay errors.
    smtp_max_retries: int = 3
