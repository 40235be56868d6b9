from typing import List

from aiogram import F, Router
from aiogram.types import Message
from services.coordinator import LinkRequest
from services.errors import TooManyRequestsError
from services.ingress import WorkerPool
import logging

logger = logging.getLogger(__name__)

router = Router()


def extract_links(message: Message) -> List[str]:
    """URLs of a message, both plain and hidden behind text"""
    text = message.text or message.caption or ""
    entities = message.entities or message.caption_entities or []

    links = []
    for entity in entities:
        if entity.type == "url":
            links.append(entity.extract_from(text))
        elif entity.type == "text_link" and entity.url:
            links.append(entity.url)
    return links


@router.message(F.text.contains("/group/") | F.caption.contains("/group/"))
async def link_shared(message: Message, link_pool: WorkerPool):
    """Hand a shared Wolt group link to the order coordinator"""
    links = extract_links(message)
    if not links:
        return

    request = LinkRequest(
        links=links,
        channel=str(message.chat.id),
        message_id=str(message.message_id),
    )
    try:
        await link_pool.submit(request)
    except TooManyRequestsError:
        await message.reply("😵 Too many orders right now, share the link again in a minute")
        return

    logger.info(f"🔗 Link from {message.from_user.id if message.from_user else '?'} queued: {links}")
