"""IMAP mail store wrapping imap-tools.

imap-tools is synchronous. ImapClient's fetch/setup methods use
asyncio.to_thread(); ImapThread is a synchronous ThreadHandle meant to be
driven from a worker thread by the pipeline.

Labels:
- Gmail: a label is a folder, and adding one is an IMAP COPY.
- Everything else: a label is an IMAP keyword flag on the message.

Trash and archive are deferred until the thread context exits, so label
operations never race a message that has already left the inbox.

Usage::

    async with ImapClient(account_config, policy) as imap:
        emails = await imap.fetch_messages(limit=50)
        with imap.thread(emails[0]) as thread:
            thread.add_label("FAMILY")
"""

import asyncio
import logging
import re
from email.utils import parseaddr
from urllib.parse import quote

from imap_tools import AND, MailBox, MailboxLoginError, MailMessage

from eisenbox.schemas.email import EmailAccountConfig, EmailEnvelope, EmailMessage
from eisenbox.schemas.policy import LabelSpec, PolicyConfig

logger = logging.getLogger(__name__)

IMPORTANT_FLAG = "\\Flagged"


def _parse_message(msg: MailMessage, account_email: str) -> EmailMessage:
    """Convert an imap-tools MailMessage to an EmailMessage."""
    from_name, from_addr = parseaddr(msg.from_)
    return EmailMessage(
        uid=msg.uid,
        account_email=account_email,
        from_address=from_addr or msg.from_,
        from_name=from_name,
        to=[addr for addr in msg.to],
        subject=msg.subject or "(no subject)",
        date=msg.date,
        flags=list(msg.flags),
        body_text=msg.text or "",
        body_html=msg.html or "",
    )


def label_keyword(prefix: str, key: str) -> str:
    """IMAP keyword for a label key (atom characters only)."""
    return re.sub(r"[^A-Za-z0-9_.-]", "_", f"{prefix}_{key}")


def label_folder(prefix: str, spec: LabelSpec) -> str:
    """Gmail label folder for a label spec."""
    return f"{prefix}/{spec.display_name}"


class ImapThread:
    """A single message exposed as a ThreadHandle.

    Label and flag changes are applied immediately; trash/archive are
    applied once when the context exits without error.
    """

    def __init__(
        self,
        mailbox: MailBox,
        config: EmailAccountConfig,
        policy: PolicyConfig,
        envelope: EmailEnvelope,
        known_folders: set[str],
    ) -> None:
        self._mailbox = mailbox
        self._config = config
        self._policy = policy
        self._envelope = envelope
        self._known_folders = known_folders
        self._labels: set[str] = set()
        self._disposition: str | None = None  # "trash" or "archive"

    def __enter__(self) -> "ImapThread":
        return self

    def __exit__(self, exc_type: object, *exc: object) -> None:
        if exc_type is None:
            self.finalize()

    @property
    def uid(self) -> str:
        return self._envelope.uid

    @property
    def subject(self) -> str:
        return self._envelope.subject

    @property
    def permalink(self) -> str:
        return (
            f"imap://{quote(self._config.email)}@{self._config.server}/"
            f"{quote(self._config.inbox_folder)};UID={self.uid}"
        )

    @property
    def labels(self) -> set[str]:
        return set(self._labels)

    def _spec(self, key: str) -> LabelSpec:
        try:
            return self._policy.label_spec(key)
        except KeyError:
            logger.warning("No label spec for '%s', using the key as its name", key)
            return LabelSpec(key=key, display_name=key)

    def add_label(self, key: str) -> None:
        if key in self._labels:
            return
        spec = self._spec(key)
        if self._config.is_gmail:
            folder = label_folder(self._config.label_prefix, spec)
            if folder not in self._known_folders:
                self._mailbox.folder.create(folder)
                self._known_folders.add(folder)
                logger.info("Created label folder: %s", folder)
            self._mailbox.copy([self.uid], folder)
        else:
            keyword = label_keyword(self._config.label_prefix, spec.key)
            self._mailbox.flag([self.uid], {keyword}, True)
        self._labels.add(key)
        logger.debug("Labeled email %s with %s", self.uid, spec.display_name)

    def mark_important(self) -> None:
        self._mailbox.flag([self.uid], {IMPORTANT_FLAG}, True)

    def move_to_trash(self) -> None:
        self._disposition = "trash"

    def move_to_archive(self) -> None:
        if self._disposition != "trash":
            self._disposition = "archive"

    def finalize(self) -> None:
        """Apply the deferred trash/archive move, at most once."""
        disposition, self._disposition = self._disposition, None
        if disposition == "trash":
            self._move(self._config.trash_folder)
        elif disposition == "archive":
            if self._config.is_gmail:
                # Deleting from INBOX on Gmail only removes the Inbox label.
                self._mailbox.delete([self.uid])
                logger.info("Archived email %s", self.uid)
            else:
                self._move(self._config.archive_folder)

    def _move(self, target_folder: str) -> None:
        if self._config.is_gmail:
            # Gmail IMAP doesn't support MOVE reliably: COPY + DELETE.
            self._mailbox.copy([self.uid], target_folder)
            self._mailbox.delete([self.uid])
        else:
            self._mailbox.move([self.uid], target_folder)
        logger.info("Moved email %s to %s", self.uid, target_folder)


class ImapClient:
    """Async IMAP client wrapping imap-tools."""

    def __init__(self, config: EmailAccountConfig, policy: PolicyConfig) -> None:
        self._config = config
        self._policy = policy
        self._mailbox: MailBox | None = None
        self._known_folders: set[str] = set()

    async def __aenter__(self) -> "ImapClient":
        self._mailbox = await asyncio.to_thread(self._connect)
        return self

    async def __aexit__(self, *exc: object) -> None:
        if self._mailbox:
            await asyncio.to_thread(self._disconnect)
            self._mailbox = None

    def _connect(self) -> MailBox:
        """Connect and login (sync, called via to_thread)."""
        if self._config.ssl:
            mb = MailBox(self._config.server, port=self._config.port)
        else:
            from imap_tools import MailBoxUnencrypted

            mb = MailBoxUnencrypted(self._config.server, port=self._config.port)

        try:
            mb.login(self._config.email, self._config.password)
        except MailboxLoginError:
            logger.error("IMAP login failed for %s", self._config.email)
            raise

        logger.info("Connected to %s as %s", self._config.server, self._config.email)
        return mb

    def _disconnect(self) -> None:
        """Logout and close (sync, called via to_thread)."""
        if self._mailbox:
            try:
                self._mailbox.logout()
            except Exception:
                logger.debug("Error during IMAP logout", exc_info=True)

    @property
    def mailbox(self) -> MailBox:
        if self._mailbox is None:
            raise RuntimeError("ImapClient is not connected. Use 'async with' context.")
        return self._mailbox

    async def fetch_messages(self, *, limit: int = 0) -> list[EmailMessage]:
        """Fetch unread messages from the inbox, newest first.

        Args:
            limit: Maximum number of emails to fetch (0 = all unseen).
        """

        def _fetch() -> list[EmailMessage]:
            self.mailbox.folder.set(self._config.inbox_folder)
            msgs = self.mailbox.fetch(
                AND(seen=False),
                mark_seen=False,
                reverse=True,
                limit=limit if limit > 0 else None,
            )
            return [_parse_message(m, self._config.email) for m in msgs]

        return await asyncio.to_thread(_fetch)

    async def ensure_labels(self) -> None:
        """Get-or-create every label folder the policy can produce (Gmail only)."""
        if not self._config.is_gmail:
            return

        def _ensure() -> None:
            self._known_folders.update(f.name for f in self.mailbox.folder.list())
            for spec in self._policy.all_labels():
                folder = label_folder(self._config.label_prefix, spec)
                if folder not in self._known_folders:
                    self.mailbox.folder.create(folder)
                    self._known_folders.add(folder)
                    logger.info("Created label folder: %s", folder)
            # Label operations run against the inbox.
            self.mailbox.folder.set(self._config.inbox_folder)

        await asyncio.to_thread(_ensure)

    def thread(self, envelope: EmailEnvelope) -> ImapThread:
        """Wrap one fetched message as a ThreadHandle."""
        return ImapThread(
            self.mailbox, self._config, self._policy, envelope, self._known_folders
        )
