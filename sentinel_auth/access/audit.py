"""
SENTINEL AUTH - Audit Logging System

The auth service emits semantic audit facts after each operation. Sinks
decide how facts are redacted, formatted and stored; emitting is
fire-and-forget from the service's point of view.
"""

import hashlib
import hmac
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

import aiofiles
import aiofiles.os


logger = logging.getLogger("SENTINEL_Audit")


# ============================================================
# Audit Fact Structure
# ============================================================


class AuditStatus(str, Enum):
    """Result of an audited action."""

    SUCCESS = "success"
    FAIL = "fail"


class AuditVerbosity(str, Enum):
    """How much metadata a sink keeps."""

    MINIMAL = "minimal"  # drop metadata
    NORMAL = "normal"    # redacted metadata
    VERBOSE = "verbose"  # redacted metadata, nothing else dropped


@dataclass
class AuditActor:
    """Who performed the action."""

    user_id: Optional[str] = None
    email: Optional[str] = None


@dataclass
class AuditFact:
    """A semantic fact emitted by the auth service."""

    action: str
    resource: str
    status: AuditStatus
    actor: Optional[AuditActor] = None
    target_id: Optional[str] = None
    session_id: Optional[str] = None
    reason: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class AuditRecord:
    """Stored audit entry. Never holds a clear-text IP."""

    id: str
    ts: datetime
    action: str
    status: AuditStatus
    resource: Optional[str] = None
    target_id: Optional[str] = None
    session_id: Optional[str] = None
    reason: Optional[str] = None
    actor: Optional[AuditActor] = None
    ip_hash: Optional[str] = None
    user_agent: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        actor = None
        if self.actor is not None:
            actor = {k: v for k, v in asdict(self.actor).items() if v is not None}
        return {
            "id": self.id,
            "ts": self.ts.isoformat(),
            "action": self.action,
            "resource": self.resource,
            "targetId": self.target_id,
            "sessionId": self.session_id,
            "status": self.status.value,
            "reason": self.reason,
            "actor": actor,
            "ipHash": self.ip_hash,
            "userAgent": self.user_agent,
            "meta": self.meta,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditRecord":
        actor = data.get("actor")
        ts = datetime.fromisoformat(str(data["ts"]).replace("Z", "+00:00"))
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return cls(
            id=data["id"],
            ts=ts,
            action=data["action"],
            status=AuditStatus(data["status"]),
            resource=data.get("resource"),
            target_id=data.get("targetId"),
            session_id=data.get("sessionId"),
            reason=data.get("reason"),
            actor=AuditActor(
                user_id=actor.get("userId") or actor.get("user_id"),
                email=actor.get("email"),
            ) if isinstance(actor, dict) else None,
            ip_hash=data.get("ipHash"),
            user_agent=data.get("userAgent"),
            meta=data.get("meta"),
        )


# ============================================================
# Redaction
# ============================================================


SENSITIVE_KEYS = frozenset({
    "password", "pass", "pwd",
    "token", "accessToken", "refreshToken", "jwt",
    "secret", "mfaSecret", "otp", "otpCode",
    "recoveryCodes",
})

REDACTED = "[REDACTED]"
MAX_META_STRING = 1024


def redact_meta(meta: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Mask sensitive keys and truncate long strings."""
    if not meta:
        return None
    out: Dict[str, Any] = {}
    for key, value in meta.items():
        if key in SENSITIVE_KEYS:
            out[key] = REDACTED
        elif isinstance(value, str) and len(value) > MAX_META_STRING:
            out[key] = value[:MAX_META_STRING] + "…"
        else:
            out[key] = value
    return out


def hash_ip(ip: Optional[str], salt: str) -> Optional[str]:
    """HMAC-SHA256 of an IP address so the clear address is never stored."""
    if not ip:
        return None
    return hmac.new(salt.encode(), ip.encode(), hashlib.sha256).hexdigest()


def _sanitize_actor(actor: Optional[AuditActor]) -> Optional[AuditActor]:
    if actor is None:
        return None
    return AuditActor(
        user_id=actor.user_id or None,
        email=actor.email.lower() if actor.email else None,
    )


def build_record(
    fact: AuditFact,
    verbosity: AuditVerbosity = AuditVerbosity.NORMAL,
    ip_salt: str = "",
    now: Optional[datetime] = None,
) -> AuditRecord:
    """Turn a fact into a storable record, applying the redaction policy."""
    meta = None if verbosity == AuditVerbosity.MINIMAL else redact_meta(fact.meta)
    return AuditRecord(
        id=str(uuid4()),
        ts=now or datetime.now(timezone.utc),
        action=fact.action,
        status=fact.status,
        resource=fact.resource,
        target_id=fact.target_id,
        session_id=fact.session_id,
        reason=fact.reason,
        actor=_sanitize_actor(fact.actor),
        ip_hash=hash_ip(fact.ip, ip_salt),
        user_agent=fact.user_agent,
        meta=meta,
    )


# ============================================================
# Sinks
# ============================================================


class AuditSink(ABC):
    """Write-only destination for audit facts."""

    @abstractmethod
    async def emit(self, fact: AuditFact) -> None:
        """Record a fact."""


class LoggingAuditSink(AuditSink):
    """Sends redacted audit records to the standard logger."""

    def __init__(
        self,
        verbosity: AuditVerbosity = AuditVerbosity.NORMAL,
        ip_salt: str = "",
    ):
        self.verbosity = AuditVerbosity(verbosity)
        self.ip_salt = ip_salt

    async def emit(self, fact: AuditFact) -> None:
        record = build_record(fact, self.verbosity, self.ip_salt)
        logger.info("AUDIT", extra={"audit_event": record.to_dict()})


class JsonlAuditSink(AuditSink):
    """
    Appends audit records to a JSON-lines file, one record per line.

    The parent directory and file are created on first use.
    """

    def __init__(
        self,
        path: Union[str, Path],
        verbosity: AuditVerbosity = AuditVerbosity.NORMAL,
        ip_salt: str = "",
    ):
        self.path = Path(path)
        self.verbosity = AuditVerbosity(verbosity)
        self.ip_salt = ip_salt

    async def _ensure_file(self) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        if not await aiofiles.os.path.exists(self.path):
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write("")

    async def emit(self, fact: AuditFact) -> None:
        record = build_record(fact, self.verbosity, self.ip_salt)
        await self._ensure_file()
        async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
            await f.write(record.to_json() + "\n")

    async def read(
        self,
        limit: int = 100,
        since: Optional[datetime] = None,
        action_prefix: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[AuditStatus] = None,
    ) -> List[AuditRecord]:
        """
        Read audit records, newest first.

        Args:
            limit: Maximum number of records returned
            since: Only records at or after this time
            action_prefix: e.g. ``"auth."`` for login/logout records
            user_id: Match the actor or the target id
            status: Only records with this status

        Returns:
            Matching records, most recent first
        """
        await self._ensure_file()
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            content = await f.read()

        out: List[AuditRecord] = []
        for line in reversed([ln for ln in content.split("\n") if ln.strip()]):
            if len(out) >= limit:
                break
            try:
                record = AuditRecord.from_dict(json.loads(line))
            except (ValueError, KeyError, TypeError):
                logger.warning("Skipping malformed audit line")
                continue

            if since is not None and record.ts < since:
                continue
            if action_prefix and not record.action.startswith(action_prefix):
                continue
            if user_id:
                actor_id = record.actor.user_id if record.actor else None
                if actor_id != user_id and record.target_id != user_id:
                    continue
            if status is not None and record.status != AuditStatus(status):
                continue
            out.append(record)

        return out


class MemoryAuditSink(AuditSink):
    """Keeps facts in memory. Used by tests and embedding applications."""

    def __init__(self) -> None:
        self.facts: List[AuditFact] = []

    async def emit(self, fact: AuditFact) -> None:
        self.facts.append(fact)

    def actions(self) -> List[str]:
        return [f.action for f in self.facts]
