"""
Audit Entry Module

The persisted form of an audited operation. Entries are hash-chained with
SHA-256 so that any edit or removal in the stored trail is detectable.
"""

import hashlib
import json
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional

from .operations import Operation, OperationKind


@dataclass
class AuditEntry:
    """
    Immutable audit fact with hash chaining for tamper detection.

    `denied` separates an authorization refusal from an operation that was
    allowed but failed; both carry success=False.
    """
    id: str
    timestamp: datetime
    kind: OperationKind
    description: str
    success: bool
    actor_id: Optional[int] = None
    actor_name: Optional[str] = None
    account_id: Optional[int] = None
    amount: Optional[str] = None  # Decimal as string
    denied: bool = False
    denial_reason: Optional[str] = None
    previous_hash: str = ""
    current_hash: str = ""

    @classmethod
    def from_operation(cls, operation: Operation, success: bool, denied: bool = False,
                       denial_reason: Optional[str] = None) -> 'AuditEntry':
        """Build an unchained entry; the store fills in the hashes on append"""
        return cls(
            id=str(uuid.uuid4()),
            timestamp=operation.timestamp,
            kind=operation.kind,
            description=operation.description,
            success=success,
            actor_id=operation.actor_id,
            actor_name=operation.actor.name if operation.actor else None,
            account_id=operation.account_id,
            amount=str(operation.amount) if operation.amount is not None else None,
            denied=denied,
            denial_reason=denial_reason,
        )

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this entry
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = self.to_dict()
        del hash_data['current_hash']

        # Create deterministic JSON string
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        result['timestamp'] = self.timestamp.isoformat()
        result['kind'] = self.kind.value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEntry':
        data = dict(data)
        if isinstance(data['timestamp'], str):
            data['timestamp'] = datetime.fromisoformat(data['timestamp'])
        if isinstance(data['kind'], str):
            data['kind'] = OperationKind(data['kind'])
        return cls(**data)
