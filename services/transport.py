import logging
from typing import Optional, Protocol

from services.errors import TransportError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What the order services need from a chat transport"""

    async def send_message(self, receiver: str, text: str, reply_to: Optional[str] = None) -> str:
        ...

    async def edit_message(self, receiver: str, text: str, message_id: str) -> None:
        ...

    async def add_reaction(self, receiver: str, message_id: str, reaction: str) -> None:
        ...

    def mention(self, transport_id: str) -> str:
        ...


class Notifier:
    """Sends messages and swallows transport failures after logging them"""

    def __init__(self, transport: Transport):
        self.transport = transport

    def mention(self, transport_id: str) -> str:
        return self.transport.mention(transport_id)

    async def inform(
        self,
        receiver: str,
        text: str,
        reaction: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Optional[str]:
        """Returns the sent message ID, or None if sending failed"""
        try:
            message_id = await self.transport.send_message(receiver, text, reply_to)
        except TransportError as e:
            logger.error(f"Error informing event to receiver {receiver!r}: {e}")
            return None

        if reaction:
            try:
                await self.transport.add_reaction(receiver, message_id, reaction)
            except TransportError as e:
                logger.error(f"Error adding reaction to message ID {message_id}: {e}")
        return message_id

    async def edit(self, receiver: str, text: str, message_id: str) -> bool:
        try:
            await self.transport.edit_message(receiver, text, message_id)
        except TransportError as e:
            logger.error(f"Error editing message {message_id} at {receiver!r}: {e}")
            return False
        return True
