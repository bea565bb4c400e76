"""Company email allocation: derive ``first.last@domain`` and keep it unique.

Candidates are probed in order: the bare base address, then the same local
part with suffixes ``1..max_suffix``. Uniqueness is enforced by the ledger's
conditional insert, so a concurrent allocation of the same candidate shows up
as a failed insert and the next suffix is tried.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Iterator

from triguard.core.exceptions import AllocationExhausted
from triguard.core.protocols import IEmailLedger
from triguard.models.tasks import EmailAddressRecord

logger = logging.getLogger(__name__)

_DISALLOWED = re.compile(r"[^a-z0-9]")
MAX_PART_LENGTH = 20


def normalize_name_part(value: str) -> str:
    """Lowercase, keep only ``[a-z0-9]``, truncate to 20 characters."""
    return _DISALLOWED.sub("", value.lower())[:MAX_PART_LENGTH]


def candidate_addresses(
    first_name: str, last_name: str, domain: str, max_suffix: int = 99
) -> Iterator[str]:
    local = f"{normalize_name_part(first_name)}.{normalize_name_part(last_name)}"
    yield f"{local}@{domain}"
    for n in range(1, max_suffix + 1):
        yield f"{local}{n}@{domain}"


class EmailAllocator:
    """Allocates one ledger-backed company address per call."""

    def __init__(self, ledger: IEmailLedger, domain: str, max_suffix: int = 99) -> None:
        self._ledger = ledger
        self._domain = domain
        self._max_suffix = max_suffix

    @property
    def domain(self) -> str:
        return self._domain

    async def allocate(self, first_name: str, last_name: str) -> str:
        """Record and return the first free candidate for this name pair.

        Raises:
            AllocationExhausted: the base address and every suffix are taken.
        """
        base = None
        for candidate in candidate_addresses(first_name, last_name, self._domain, self._max_suffix):
            base = base or candidate
            if await self._ledger.exists(candidate):
                continue
            record = EmailAddressRecord(
                email=candidate,
                first_name=first_name,
                last_name=last_name,
                is_active=True,
                created_at=datetime.now(timezone.utc),
            )
            if await self._ledger.insert_if_absent(record):
                logger.info("Allocated company email %s", candidate)
                return candidate
            logger.debug("Lost race for %s; probing next suffix", candidate)

        logger.error("Email suffixes exhausted for %s", base)
        raise AllocationExhausted(base or "", self._max_suffix)
