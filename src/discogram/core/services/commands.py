from typing import List, Optional, Tuple

import structlog

from discogram.core.errors import StoreError
from discogram.core.infrastructure.store import SubscriptionStore
from discogram.core.models import AllowListScope, RoutingPolicy
from discogram.core.services.allowlist import ChannelAllowList

CHANNEL_REGISTERED = "Discord channel registered"
CHANNEL_UNREGISTERED = "Discord channel unregistered"
CHAT_REGISTERED = "Chat registered"

Reply = Tuple[int, str]


class CommandInterpreter:
    """Turns Telegram messages into subscription changes.

    Understands ``/add <selector>`` and ``/remove <selector>``; every other
    message is ignored as a command. Independently of that, the first message
    from an unknown chat registers the chat.
    """

    def __init__(
        self,
        policy: RoutingPolicy,
        store: SubscriptionStore,
        allow_list: ChannelAllowList,
        allowlist_scope: AllowListScope = AllowListScope.GLOBAL,
        bot_username: Optional[str] = None,
    ):
        self.log = structlog.get_logger(self.__class__.__name__)
        self._policy = policy
        self._store = store
        self._allow_list = allow_list
        self._allowlist_scope = allowlist_scope
        # Known after getMe; until then any @suffix is accepted
        self.bot_username = bot_username

    async def process_update(self, update: dict) -> List[Reply]:
        """Process a Telegram update.

        Args:
            update: Telegram update dictionary

        Returns:
            List of (chat_id, text) replies to send, in order
        """
        message = update.get("message")
        if not message:
            self.log.debug("Update does not contain a message", update_id=update.get("update_id"))
            return []

        chat_id = message["chat"]["id"]
        return self.handle_text(chat_id, message.get("text") or "")

    def handle_text(self, chat_id: int, text: str) -> List[Reply]:
        replies: List[Reply] = []

        reply = self._process_command(chat_id, text)
        if reply is not None:
            replies.append((chat_id, reply))

        try:
            if self._store.register(chat_id):
                replies.append((chat_id, CHAT_REGISTERED))
        except StoreError as e:
            self.log.error("Failed to register chat", chat_id=chat_id, error=str(e))

        return replies

    def _process_command(self, chat_id: int, text: str) -> Optional[str]:
        tokens = text.split()
        if len(tokens) < 2:
            return None

        verb, _, addressee = tokens[0].partition("@")
        selector = tokens[1]
        if addressee and not self._addressed_to_me(addressee):
            self.log.debug("Ignoring command for another bot", command=verb, addressee=addressee, chat_id=chat_id)
            return None

        if self._policy == RoutingPolicy.BROADCAST or verb not in ("/add", "/remove"):
            return None

        self.log.info("Processing command", command=verb, selector=selector, chat_id=chat_id)
        try:
            if verb == "/add":
                self._add(chat_id, selector)
                return CHANNEL_REGISTERED
            self._remove(chat_id, selector)
            return CHANNEL_UNREGISTERED
        except StoreError as e:
            self.log.error("Failed to apply command", command=verb, selector=selector, chat_id=chat_id, error=str(e))
            return None

    def _addressed_to_me(self, addressee: str) -> bool:
        # Group commands may be addressed as /add@bot_name
        return self.bot_username is None or addressee.lower() == self.bot_username.lower()

    def _add(self, chat_id: int, selector: str) -> None:
        if self._policy == RoutingPolicy.ALLOWLIST:
            self._allow_list.add(selector, chat_id)
        else:
            self._store.add_selector(chat_id, selector)

    def _remove(self, chat_id: int, selector: str) -> None:
        if self._policy == RoutingPolicy.ALLOWLIST:
            owner = chat_id if self._allowlist_scope == AllowListScope.CONVERSATION else None
            self._allow_list.remove(selector, owner)
        else:
            self._store.remove_selector(chat_id, selector)
