# Slack integration module
from app.integrations.slack.client import SlackClient
from app.integrations.slack.models import SlackMessage, SlackConversation, ConversationContext
from app.integrations.slack.parser import parse_permalink, resolve_thread_reference

__all__ = [
    "SlackClient",
    "SlackMessage",
    "SlackConversation",
    "ConversationContext",
    "parse_permalink",
    "resolve_thread_reference",
]
