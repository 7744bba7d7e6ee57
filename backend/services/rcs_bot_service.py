"""
RCS Bot Service

Persists an RCS bot together with its contact and media rows. A bot and
its children are always written in one transaction.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from db import transaction
from models import RcsBot, RcsBotContact, RcsBotMedia
from models_rbac import User

logger = logging.getLogger(__name__)


class RcsBotService:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        owner: User,
        fields: Dict[str, Any],
        contacts: Optional[List[Dict[str, Any]]] = None,
        media: Optional[List[Dict[str, Any]]] = None,
    ) -> RcsBot:
        """
        Create a bot with its contacts and media.

        If any row fails to insert, nothing is kept.
        """
        with transaction(self.db):
            bot = RcsBot(user_id=owner.id, **fields)
            self.db.add(bot)
            self.db.flush()

            self._add_children(bot, contacts or [], media or [])

        logger.info(f"Created RCS bot {bot.id} for user {owner.id}")
        return bot

    def update(
        self,
        bot: RcsBot,
        fields: Dict[str, Any],
        contacts: Optional[List[Dict[str, Any]]] = None,
        media: Optional[List[Dict[str, Any]]] = None,
    ) -> RcsBot:
        """
        Apply a partial update. A contacts or media list, when given,
        replaces the existing rows of that kind.
        """
        with transaction(self.db):
            for field, value in fields.items():
                setattr(bot, field, value)

            if contacts is not None:
                bot.contacts.clear()
            if media is not None:
                bot.media.clear()
            self.db.flush()

            self._add_children(bot, contacts or [], media or [])

        logger.info(f"Updated RCS bot {bot.id}")
        return bot

    def delete(self, bot: RcsBot) -> None:
        bot_id = bot.id
        with transaction(self.db):
            self.db.delete(bot)
        logger.info(f"Deleted RCS bot {bot_id}")

    def _add_children(self, bot: RcsBot, contacts: List[Dict[str, Any]], media: List[Dict[str, Any]]) -> None:
        for contact in contacts:
            bot.contacts.append(RcsBotContact(
                contact_type=contact.get("contact_type"),
                contact_value=contact.get("contact_value"),
                label=contact.get("label"),
            ))
        for item in media:
            bot.media.append(RcsBotMedia(
                media_type=item.get("media_type"),
                media_url=item.get("media_url"),
            ))
        self.db.flush()
