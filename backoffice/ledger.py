"""Two-tier credit ledger: one system balance, one balance per client.

Every balance mutation appends exactly one immutable :class:`HistoryEntry`
to an append-only JSON-lines log; an allocation from the system pool to a
client appends one entry to each log, or none at all.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from .codec import encode, utc_now
from .collection import EntityCollection
from .errors import InsufficientBalance, InvalidAmount, NotFound
from .models import Client, HistoryEntry, LedgerScope, SystemCredits, TransactionType

logger = logging.getLogger(__name__)

SYSTEM_HISTORY_FILE = "system-credits-history.jsonl"
CLIENT_HISTORY_FILE = "client-credits-history.jsonl"

_TIMESTAMP = TypeAdapter(datetime)


class HistoryFilter(BaseModel):
    """Inclusive date range, transaction type and result cap for history queries."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Optional[TransactionType] = None
    limit: Optional[int] = Field(None, ge=1)

    @field_validator("start_date", "end_date", "type", mode="before")
    @classmethod
    def blank_is_unset(cls, value: Any) -> Any:
        return value or None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def timestamp_to_utc_date(cls, value: Any) -> Any:
        if isinstance(value, str) and "T" in value:
            try:
                value = _TIMESTAMP.validate_python(value)
            except ValidationError as exc:
                raise ValueError(f"invalid timestamp {value!r}") from exc
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            return value.date()
        return value


FilterInput = Union[HistoryFilter, Mapping[str, Any], None]


@dataclass(frozen=True)
class SystemCreditsUpdate:
    system_credits: SystemCredits
    history: HistoryEntry


@dataclass(frozen=True)
class ClientCreditsUpdate:
    client: Client
    history: HistoryEntry


@dataclass(frozen=True)
class Allocation:
    system_credits: SystemCredits
    client: Client
    system_history: HistoryEntry
    client_history: HistoryEntry


def _positive(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"amount must be an integer, got {amount!r}")
    if amount <= 0:
        raise InvalidAmount(f"amount must be positive, got {amount}")
    return amount


def _non_negative(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"amount must be an integer, got {amount!r}")
    if amount < 0:
        raise InvalidAmount(f"balance cannot be negative, got {amount}")
    return amount


def _coerce_filters(filters: FilterInput) -> HistoryFilter:
    if filters is None:
        return HistoryFilter()
    if isinstance(filters, HistoryFilter):
        return filters
    return HistoryFilter.model_validate(dict(filters))


class HistoryLog:
    """Append-only JSON-lines log of history entries for one scope."""

    def __init__(self, path: Path, scope: LedgerScope) -> None:
        self.path = Path(path)
        self.scope = scope
        self._lock = threading.Lock()
        self._entries: List[HistoryEntry] = []
        self._next_id = 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def load(self) -> int:
        """Read persisted entries; malformed lines are skipped."""
        entries: List[HistoryEntry] = []
        if self.path.exists():
            try:
                with self.path.open("r", encoding="utf-8") as handle:
                    for number, line in enumerate(handle, start=1):
                        line = line.strip()
                        if not line:
                            continue
                        try:
                            entries.append(HistoryEntry.model_validate(json.loads(line)))
                        except (ValueError, ValidationError) as exc:
                            logger.warning(
                                "skipping malformed history line",
                                extra={"path": str(self.path), "line": number, "error": str(exc)},
                            )
            except OSError as exc:
                logger.warning("ignoring unreadable history log", extra={"path": str(self.path), "error": str(exc)})
        with self._lock:
            self._entries = entries
            self._next_id = max((entry.id for entry in entries), default=0) + 1
        return len(entries)

    def latest(self) -> Optional[HistoryEntry]:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def record(
        self,
        *,
        type: TransactionType,
        amount: int,
        previous_balance: int,
        new_balance: int,
        reason: Optional[str],
        performed_by: Optional[int],
        client_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> HistoryEntry:
        with self._lock:
            entry = HistoryEntry(
                id=self._next_id,
                scope=self.scope,
                client_id=client_id,
                type=type,
                amount=amount,
                previous_balance=previous_balance,
                new_balance=new_balance,
                reason=reason,
                performed_by=performed_by,
                created_at=utc_now(),
                metadata=metadata or {},
            )
            self._next_id += 1
            self._entries.append(entry)
            self._append(entry)
            return entry

    def query(self, filters: FilterInput = None, *, client_id: Optional[int] = None) -> List[HistoryEntry]:
        """Return matching entries newest first, capped after sorting."""
        criteria = _coerce_filters(filters)
        with self._lock:
            entries = list(self._entries)
        if client_id is not None:
            entries = [entry for entry in entries if entry.client_id == client_id]
        if criteria.start_date is not None:
            entries = [entry for entry in entries if entry.created_at.date() >= criteria.start_date]
        if criteria.end_date is not None:
            entries = [entry for entry in entries if entry.created_at.date() <= criteria.end_date]
        if criteria.type is not None:
            entries = [entry for entry in entries if entry.type == criteria.type]
        entries.sort(key=lambda entry: (entry.created_at, entry.id), reverse=True)
        if criteria.limit is not None:
            entries = entries[: criteria.limit]
        return entries

    def _append(self, entry: HistoryEntry) -> None:
        payload = json.dumps(encode(entry), separators=(",", ":"), sort_keys=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(payload + "\n")
        except OSError as exc:
            logger.error(
                "failed to append history entry",
                extra={"path": str(self.path), "entry_id": entry.id, "error": str(exc)},
            )


class SystemLedger:
    """The single process-wide credit balance."""

    def __init__(self, history: HistoryLog, initial_balance: int) -> None:
        self.history = history
        self.lock = threading.RLock()
        latest = history.latest()
        if latest is not None:
            self._balance = latest.new_balance
            self._updated_at = latest.created_at
            self._metadata: Dict[str, Any] = {
                "last_update_reason": latest.reason,
                "last_updated_by": latest.performed_by,
            }
        else:
            self._balance = _non_negative(initial_balance)
            self._updated_at = utc_now()
            self._metadata = {"last_update_reason": "Initial system credits", "last_updated_by": None}

    @property
    def balance(self) -> int:
        with self.lock:
            return self._balance

    def snapshot(self) -> SystemCredits:
        with self.lock:
            return SystemCredits(balance=self._balance, updated_at=self._updated_at, metadata=dict(self._metadata))

    def add(self, amount: int, actor: Optional[int] = None, reason: Optional[str] = None) -> SystemCreditsUpdate:
        amount = _positive(amount)
        with self.lock:
            return self._commit("add", amount, self._balance + amount, actor, reason)

    def deduct(self, amount: int, actor: Optional[int] = None, reason: Optional[str] = None) -> SystemCreditsUpdate:
        amount = _positive(amount)
        with self.lock:
            if amount > self._balance:
                raise InsufficientBalance("system", amount, self._balance)
            return self._commit("deduct", amount, self._balance - amount, actor, reason)

    def set(self, amount: int, actor: Optional[int] = None, reason: Optional[str] = None) -> SystemCreditsUpdate:
        amount = _non_negative(amount)
        with self.lock:
            return self._commit("set", amount - self._balance, amount, actor, reason)

    def _commit(
        self,
        type: TransactionType,
        amount: int,
        new_balance: int,
        actor: Optional[int],
        reason: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SystemCreditsUpdate:
        with self.lock:
            previous = self._balance
            entry = self.history.record(
                type=type,
                amount=amount,
                previous_balance=previous,
                new_balance=new_balance,
                reason=reason,
                performed_by=actor,
                metadata=metadata,
            )
            self._balance = new_balance
            self._updated_at = entry.created_at
            self._metadata = {"last_update_reason": reason, "last_updated_by": actor}
            logger.info(
                "system credits updated",
                extra={"type": type, "amount": amount, "previous_balance": previous, "new_balance": new_balance},
            )
            return SystemCreditsUpdate(system_credits=self.snapshot(), history=entry)


class ClientLedger:
    """Per-client balances embedded in the Client records."""

    def __init__(self, clients: EntityCollection[Client], history: HistoryLog) -> None:
        self.clients = clients
        self.history = history
        self._locks: Dict[int, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def lock_for(self, client_id: int) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(client_id, threading.RLock())

    def require(self, client_id: int) -> Client:
        client = self.clients.get(client_id)
        if client is None:
            raise NotFound("client", client_id)
        return client

    def add(
        self,
        client_id: int,
        amount: int,
        actor: Optional[int] = None,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ClientCreditsUpdate:
        amount = _positive(amount)
        with self.lock_for(client_id):
            client = self.require(client_id)
            return self._commit(
                client,
                "add",
                amount,
                client.email_credits + amount,
                actor,
                reason,
                metadata,
                purchased=client.email_credits_purchased + amount,
            )

    def deduct(
        self,
        client_id: int,
        amount: int,
        actor: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> ClientCreditsUpdate:
        amount = _positive(amount)
        with self.lock_for(client_id):
            client = self.require(client_id)
            if amount > client.email_credits:
                raise InsufficientBalance("client", amount, client.email_credits)
            return self._commit(
                client,
                "deduct",
                amount,
                client.email_credits - amount,
                actor,
                reason,
                used=client.email_credits_used + amount,
            )

    def set(
        self,
        client_id: int,
        amount: int,
        actor: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> ClientCreditsUpdate:
        amount = _non_negative(amount)
        with self.lock_for(client_id):
            client = self.require(client_id)
            return self._commit(client, "set", amount - client.email_credits, amount, actor, reason)

    def _commit(
        self,
        client: Client,
        type: TransactionType,
        amount: int,
        new_balance: int,
        actor: Optional[int],
        reason: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
        *,
        purchased: Optional[int] = None,
        used: Optional[int] = None,
    ) -> ClientCreditsUpdate:
        changes: Dict[str, Any] = {"email_credits": new_balance, "last_credit_update_at": utc_now()}
        if purchased is not None:
            changes["email_credits_purchased"] = purchased
        if used is not None:
            changes["email_credits_used"] = used
        # Raises PersistenceFailure in strict mode before any history exists.
        updated = self.clients.update(client.id, changes)
        entry = self.history.record(
            type=type,
            amount=amount,
            previous_balance=client.email_credits,
            new_balance=new_balance,
            reason=reason,
            performed_by=actor,
            client_id=client.id,
            metadata=metadata,
        )
        logger.info(
            "client credits updated",
            extra={
                "client_id": client.id,
                "type": type,
                "amount": amount,
                "previous_balance": client.email_credits,
                "new_balance": new_balance,
            },
        )
        return ClientCreditsUpdate(client=updated, history=entry)


class CreditLedger:
    """System and client ledgers plus the allocation between them."""

    def __init__(
        self,
        clients: EntityCollection[Client],
        system_history: HistoryLog,
        client_history: HistoryLog,
        initial_system_credits: int,
    ) -> None:
        self.system = SystemLedger(system_history, initial_system_credits)
        self.client = ClientLedger(clients, client_history)

    @classmethod
    def open(cls, clients: EntityCollection[Client], ledger_dir: Path, initial_system_credits: int) -> "CreditLedger":
        """Load both history logs from ``ledger_dir`` and restore the balances."""
        ledger_dir = Path(ledger_dir)
        system_history = HistoryLog(ledger_dir / SYSTEM_HISTORY_FILE, "system")
        client_history = HistoryLog(ledger_dir / CLIENT_HISTORY_FILE, "client")
        system_history.load()
        client_history.load()
        return cls(clients, system_history, client_history, initial_system_credits)

    # ------------------------------------------------------------ system

    def get_system_credits(self) -> SystemCredits:
        return self.system.snapshot()

    def add_system_credits(self, amount: int, actor: Optional[int] = None, reason: Optional[str] = None) -> SystemCreditsUpdate:
        return self.system.add(amount, actor, reason)

    def deduct_system_credits(self, amount: int, actor: Optional[int] = None, reason: Optional[str] = None) -> SystemCreditsUpdate:
        return self.system.deduct(amount, actor, reason)

    def set_system_credits(self, amount: int, actor: Optional[int] = None, reason: Optional[str] = None) -> SystemCreditsUpdate:
        return self.system.set(amount, actor, reason)

    def allocate_client_credits_from_system(
        self,
        client_id: int,
        amount: int,
        actor: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Allocation:
        """Move ``amount`` credits from the system pool to one client.

        Both preconditions (client exists, enough system credits) are checked
        before either ledger is touched, so a failure leaves balances and
        history logs unchanged.
        """

        amount = _positive(amount)
        with self.system.lock, self.client.lock_for(client_id):
            client = self.client.require(client_id)
            available = self.system.balance
            if amount > available:
                raise InsufficientBalance("system", amount, available)
            reason = reason or f"Credits allocated to client {client.name}"
            client_update = self.client._commit(
                client,
                "add",
                amount,
                client.email_credits + amount,
                actor,
                reason,
                {"source": "system"},
                purchased=client.email_credits_purchased + amount,
            )
            system_update = self.system._commit(
                "allocate",
                amount,
                available - amount,
                actor,
                reason,
                {"client_id": client.id, "client_name": client.name},
            )
        return Allocation(
            system_credits=system_update.system_credits,
            client=client_update.client,
            system_history=system_update.history,
            client_history=client_update.history,
        )

    # ------------------------------------------------------------ client

    def add_client_credits(
        self, client_id: int, amount: int, actor: Optional[int] = None, reason: Optional[str] = None
    ) -> ClientCreditsUpdate:
        return self.client.add(client_id, amount, actor, reason)

    def deduct_client_credits(
        self, client_id: int, amount: int, actor: Optional[int] = None, reason: Optional[str] = None
    ) -> ClientCreditsUpdate:
        return self.client.deduct(client_id, amount, actor, reason)

    def set_client_credits(
        self, client_id: int, amount: int, actor: Optional[int] = None, reason: Optional[str] = None
    ) -> ClientCreditsUpdate:
        return self.client.set(client_id, amount, actor, reason)

    def get_client_credit_summary(self, client_id: int) -> Dict[str, Any]:
        client = self.client.require(client_id)
        return {
            "client_id": client.id,
            "balance": client.email_credits,
            "purchased": client.email_credits_purchased,
            "used": client.email_credits_used,
            "last_updated": client.last_credit_update_at,
        }

    # ------------------------------------------------------------ history

    def get_history(
        self, scope: LedgerScope, filters: FilterInput = None, *, client_id: Optional[int] = None
    ) -> List[HistoryEntry]:
        if scope == "system":
            return self.system.history.query(filters)
        if client_id is None:
            raise ValueError("client_id is required for client history")
        return self.client.history.query(filters, client_id=client_id)

    def get_system_history(self, filters: FilterInput = None) -> List[HistoryEntry]:
        return self.get_history("system", filters)

    def get_client_history(self, client_id: int, filters: FilterInput = None) -> List[HistoryEntry]:
        return self.get_history("client", filters, client_id=client_id)
