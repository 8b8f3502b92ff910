"""Schemas for mail accounts and messages."""

from datetime import datetime

from pydantic import BaseModel, Field


class EmailAccountConfig(BaseModel):
    """Configuration for a single email account."""

    name: str
    server: str
    email: str
    password: str
    # logical name -> IMAP folder path; "inbox", "archive" and "trash" are used
    folders: dict[str, str] = Field(default_factory=dict)
    label_prefix: str = "Eisenbox"
    is_gmail: bool = False
    port: int = 993
    ssl: bool = True

    @property
    def inbox_folder(self) -> str:
        return self.folders.get("inbox", "INBOX")

    @property
    def archive_folder(self) -> str:
        if self.is_gmail:
            return self.folders.get("archive", "[Gmail]/All Mail")
        return self.folders.get("archive", "Archive")

    @property
    def trash_folder(self) -> str:
        if self.is_gmail:
            return self.folders.get("trash", "[Gmail]/Trash")
        return self.folders.get("trash", "Trash")


class EmailEnvelope(BaseModel):
    """Lightweight email representation (headers only)."""

    uid: str
    account_email: str
    from_address: str
    from_name: str = ""
    to: list[str] = Field(default_factory=list)
    subject: str
    date: datetime
    flags: list[str] = Field(default_factory=list)


class EmailMessage(EmailEnvelope):
    """Full email with body content, as handed to the AI classifier."""

    body_text: str = ""
    body_html: str = ""

    @property
    def is_self_sent(self) -> bool:
        """True when the sender is also one of the recipients."""
        sender = self.from_address.strip().lower()
        return bool(sender) and sender in {addr.strip().lower() for addr in self.to}
