"""IRC subsystem package.

Contains line parsing, message builders, the ordered line classifier, the
event registry, transports and the chat session built on top of them.
"""

from .classifier import (  # noqa: F401
    Classification,
    DispatchContext,
    LineClassifier,
    Rule,
)
from .commands import CommandInvocation, parse_command  # noqa: F401
from .emotes import (  # noqa: F401
    EmoteSet,
    EmoteSpan,
    MessageEmote,
    MessageEmoteCollection,
    UserTier,
)
from .events import (  # noqa: F401
    ChannelStateChanged,
    ChatCommandReceived,
    Connected,
    Disconnected,
    Event,
    EventRegistry,
    ExistingUsersDetected,
    HostLeft,
    HostingStarted,
    HostingStopped,
    IncorrectLogin,
    MessageReceived,
    MessageSent,
    MessageThrottled,
    ModeratorJoined,
    ModeratorLeft,
    NewSubscriberReceived,
    RawLineReceived,
    ReSubscriberReceived,
    UserStateChanged,
    ViewerJoined,
    ViewerLeft,
    WhisperCommandReceived,
    WhisperReceived,
    WhisperSent,
)
from .models import (  # noqa: F401
    Badge,
    ChannelState,
    ChatMessage,
    ConnectionState,
    NewSubscriber,
    ReSubscriber,
    SubscriptionPlan,
    UserState,
    WhisperMessage,
)
from .parser import IRCMessage, parse_irc_message  # noqa: F401
from .session import TwitchChatClient  # noqa: F401
from .transport import (  # noqa: F401
    LineTransport,
    Priority,
    TcpLineTransport,
    WebSocketLineTransport,
)

__all__ = [
    "Badge",
    "ChannelState",
    "ChannelStateChanged",
    "ChatCommandReceived",
    "ChatMessage",
    "Classification",
    "CommandInvocation",
    "Connected",
    "ConnectionState",
    "Disconnected",
    "DispatchContext",
    "EmoteSet",
    "EmoteSpan",
    "Event",
    "EventRegistry",
    "ExistingUsersDetected",
    "HostLeft",
    "HostingStarted",
    "HostingStopped",
    "IRCMessage",
    "IncorrectLogin",
    "LineClassifier",
    "LineTransport",
    "MessageEmote",
    "MessageEmoteCollection",
    "MessageReceived",
    "MessageSent",
    "MessageThrottled",
    "ModeratorJoined",
    "ModeratorLeft",
    "NewSubscriber",
    "NewSubscriberReceived",
    "Priority",
    "RawLineReceived",
    "ReSubscriber",
    "ReSubscriberReceived",
    "Rule",
    "SubscriptionPlan",
    "TcpLineTransport",
    "TwitchChatClient",
    "UserState",
    "UserStateChanged",
    "UserTier",
    "ViewerJoined",
    "ViewerLeft",
    "WebSocketLineTransport",
    "WhisperCommandReceived",
    "WhisperMessage",
    "WhisperReceived",
    "WhisperSent",
    "parse_command",
    "parse_irc_message",
]
