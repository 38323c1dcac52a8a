"""
Shared data models for the ShiftSync application.
Used by the local store, the sync engine and the command line launcher.
"""

import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Collection(Enum):
    """Synchronized collections, valued by their name on the wire and in the local store"""
    EMPLOYEES = "Employees"
    TIMESHEET = "Timesheet"
    SETTINGS = "Settings"
    HOLIDAYS = "Holidays"
    PUBLIC_HOLIDAYS = "Public Holidays"
    COMPANY = "Company"

    @property
    def key_field(self) -> Optional[str]:
        """Identity field of the collection's records (None for the singleton)"""
        return COLLECTION_KEYS[self]

    @classmethod
    def from_name(cls, name: str) -> 'Collection':
        for member in cls:
            if member.value == name or member.name == name:
                return member
        raise ValueError(f"Unknown collection: {name}")


COLLECTION_KEYS: Dict[Collection, Optional[str]] = {
    Collection.EMPLOYEES: "employeeId",
    Collection.TIMESHEET: "id",
    Collection.SETTINGS: "taxType",
    Collection.HOLIDAYS: "id",
    Collection.PUBLIC_HOLIDAYS: "id",
    Collection.COMPANY: None,
}

REVISION_FIELD = "updatedAt"


class TaxType(Enum):
    """Payroll contribution types with a configurable percentage"""
    SOCIAL_INSURANCE_EMPLOYEE = "Social Insurance Employee"
    SOCIAL_INSURANCE_EMPLOYER = "Social Insurance Employer"
    COHESION = "Social Cohesion Fund"
    REDUNDANCY = "Redundancy Fund"
    INDUSTRIAL = "Industrial Training"
    GESY_EMPLOYEE = "GESY (Healthcare)Employee"
    GESY_EMPLOYER = "GESY (Healthcare)Employer"


INITIAL_SETTINGS: List[Dict[str, Any]] = [
    {"taxType": TaxType.SOCIAL_INSURANCE_EMPLOYEE.value, "percentage": 8.8},
    {"taxType": TaxType.SOCIAL_INSURANCE_EMPLOYER.value, "percentage": 8.8},
    {"taxType": TaxType.GESY_EMPLOYEE.value, "percentage": 2.65},
    {"taxType": TaxType.GESY_EMPLOYER.value, "percentage": 2.9},
    {"taxType": TaxType.COHESION.value, "percentage": 2.0},
    {"taxType": TaxType.REDUNDANCY.value, "percentage": 1.2},
    {"taxType": TaxType.INDUSTRIAL.value, "percentage": 0.5},
]

DEFAULT_COMPANY: Dict[str, Any] = {
    "name": "Decathlan HR Services",
    "email": "hr@decathlan.com",
}

ENDPOINT_FIELD = "appsScriptUrl"


class SyncOutcome(Enum):
    """Outcome of a sync or push operation"""
    OK = "ok"
    CONFIG_ERROR = "config_error"        # no endpoint, or a document link
    TRANSPORT_ERROR = "transport_error"  # pull failed, nothing changed locally
    PUSH_FAILED = "push_failed"          # local state advanced, remote not updated
    BUSY = "busy"                        # another cycle is already in flight


@dataclass
class SyncResult:
    """Typed result of a sync cycle; truthy only when the cycle fully completed"""
    outcome: SyncOutcome
    local_updated: bool = False
    pushed: bool = False
    error: Optional[str] = None
    counts: Dict[str, int] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.outcome is SyncOutcome.OK

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['outcome'] = self.outcome.value
        return data


@dataclass
class SyncStatus:
    """Status information for sync operations"""
    is_syncing: bool = False
    last_sync: Optional[str] = None
    last_error: Optional[str] = None
    last_outcome: Optional[str] = None
    endpoint: Optional[str] = None
    open_entries: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TimesheetEntry:
    """Timesheet entry as stored locally (instants in ISO-8601 UTC)"""
    employeeId: str
    date: str
    timeIn: str
    id: str = ""
    employeeName: str = "Unknown"
    timeOut: Optional[str] = None
    totalHours: float = 0
    breakMinutes: int = 0

    def __post_init__(self):
        """Generate id if not provided"""
        if not self.id:
            self.id = str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigurationError(ValueError):
    """Raised when device sync settings are out of range"""


@dataclass
class SyncConfig:
    """Device-local sync settings with validation"""
    device_id: str = ""
    timeout: int = 10  # seconds
    timezone: str = ""  # IANA name; empty means the system zone
    ntp_server: str = ""  # empty disables NTP correction of revision stamps

    def __post_init__(self) -> None:
        if not (1 <= self.timeout <= 120):
            raise ConfigurationError(f"Timeout must be between 1 and 120 seconds, got {self.timeout}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
