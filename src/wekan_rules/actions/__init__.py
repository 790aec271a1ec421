"""Action dispatch and the mail collaborators."""

from wekan_rules.actions.dispatcher import ActionDispatcher, DispatchContext, required_permission
from wekan_rules.actions.mail import LoggingMailer, SmtpMailer, mailer_from_config

__all__ = [
    "ActionDispatcher",
    "DispatchContext",
    "LoggingMailer",
    "SmtpMailer",
    "mailer_from_config",
    "required_permission",
]
