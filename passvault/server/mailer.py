import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    link: str
    token: str


class DevMailer:
    """Doesn't send anything: logs the link and keeps recent messages in ``outbox``."""

    def __init__(self, max_messages: int = 100):
        self.outbox: Deque[OutgoingEmail] = deque(maxlen=max_messages)

    def send(self, to: str, subject: str, link: str, token: str):
        self.outbox.append(OutgoingEmail(to=to, subject=subject, link=link, token=token))
        logger.info("[mail] to=%s subject=%r link=%s", to, subject, link)

    def last_for(self, to: str) -> Optional[OutgoingEmail]:
        for message in reversed(self.outbox):
            if message.to == to:
                return message
        return None


mailer = DevMailer()


def get_mailer() -> DevMailer:
    return mailer
