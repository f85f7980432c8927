"""Module license records and per-capability validation."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Protocol

from solver_supervisor.errors import LicenseError, LicenseUnavailableError
from solver_supervisor.models import MissingCapability, ProblemType

logger = logging.getLogger(__name__)


class LicenseSource(Protocol):
    """Validated set of license records."""

    def validate_record(self, capability_id: str, account: str, password: str) -> bool:
        """Return True when a valid record covers the capability."""


LicenseSourceFactory = Callable[[Path], LicenseSource]


@dataclass(frozen=True, slots=True)
class LicenseRecord:
    """One product grant for one account."""

    product_id: str
    account: str
    password_sha256: str
    expires: date | None = None

    def is_expired(self, today: date) -> bool:
        return self.expires is not None and today > self.expires


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class LicenseFile:
    """License records read from a JSON license file."""

    def __init__(self, records: Iterable[LicenseRecord], *, today: date | None = None) -> None:
        self.records = tuple(records)
        self._today = today

    @classmethod
    def read(cls, path: Path) -> LicenseFile:
        """Parse a license file; raises ``LicenseError`` on read or format errors."""

        try:
            raw = json.loads(Path(path).read_text("utf-8"))
        except OSError as error:
            raise LicenseError(f"Failed to read license file: {error}") from error
        except UnicodeDecodeError as error:
            raise LicenseError(f"License file is not valid UTF-8: {error}") from error
        except json.JSONDecodeError as error:
            raise LicenseError(f"License file is not valid JSON: {error}") from error
        if not isinstance(raw, dict):
            raise LicenseError("Expected JSON object in license file.")
        raw_records = raw.get("records")
        if not isinstance(raw_records, list):
            raise LicenseError("license.records must be an array")
        return cls(_parse_record(item) for item in raw_records)

    def validate_record(self, capability_id: str, account: str, password: str) -> bool:
        today = self._today or datetime.now(tz=UTC).date()
        password_hash = hash_password(password)
        for record in self.records:
            if record.product_id != capability_id or record.account != account:
                continue
            if not hmac.compare_digest(record.password_sha256.lower(), password_hash):
                continue
            if record.is_expired(today):
                continue
            return True
        return False


def _parse_record(item: object) -> LicenseRecord:
    if not isinstance(item, dict):
        raise LicenseError("license record must be an object")
    fields = {}
    for key in ("product_id", "account", "password_sha256"):
        value = item.get(key)
        if not isinstance(value, str) or not value:
            raise LicenseError(f"license record.{key} must be a non-empty string")
        fields[key] = value
    expires_raw = item.get("expires")
    expires: date | None = None
    if expires_raw is not None:
        try:
            expires = date.fromisoformat(str(expires_raw))
        except ValueError as error:
            raise LicenseError(f"Invalid license expiry date: {expires_raw!r}") from error
    return LicenseRecord(expires=expires, **fields)


def validate_licenses(
    required: Iterable[ProblemType],
    license_path: Path,
    account: str,
    password: str,
    *,
    source_factory: LicenseSourceFactory = LicenseFile.read,
) -> list[MissingCapability]:
    """Check each required capability and report those without a valid record.

    Raises ``LicenseUnavailableError`` when the license file cannot be used at all.
    Missing capabilities are logged as warnings and returned, never raised.
    """

    try:
        source = source_factory(license_path)
    except LicenseError as error:
        raise LicenseUnavailableError(
            f"Failed to validate module license file '{license_path}'. {error}",
            license_path=str(license_path),
        ) from error

    missing: list[MissingCapability] = []
    seen: set[str] = set()
    for problem_type in required:
        if problem_type.id in seen:
            continue
        seen.add(problem_type.id)
        if source.validate_record(problem_type.id, account, password):
            continue
        logger.warning(
            "Missing license for '%s' (product-id: %s)",
            problem_type.name,
            problem_type.id,
        )
        missing.append(MissingCapability(capability_id=problem_type.id, name=problem_type.name))
    return missing
