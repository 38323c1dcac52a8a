"""
Client application layer for ShiftSync.
Manual add / edit / delete operations on the local collections.
"""

import uuid
from typing import Any, Dict, List, Optional

from shared.db_helpers import DatabaseException, EntityStore, SQLiteEntityStore
from shared.logging_config import get_client_logger
from shared.models import Collection

logger = get_client_logger()


class TimeClockClient:
    """
    Client abstraction layer over the local entity store. Every write goes
    through the store so it receives a fresh revision; nothing here talks to
    the network.
    """

    def __init__(self, store: Optional[EntityStore] = None):
        self.store = store or SQLiteEntityStore()

    # Employee operations
    def get_all_employees(self) -> List[Dict[str, Any]]:
        return self.store.get_all(Collection.EMPLOYEES)

    def get_employee(self, employee_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(Collection.EMPLOYEES, employee_id)

    def add_employee(self, employee: Dict[str, Any]) -> Dict[str, Any]:
        """Add a new employee; the employeeId must not already be taken"""
        employee_id = str(employee.get('employeeId') or '').strip()
        if not employee_id:
            raise DatabaseException("Employee ID cannot be empty")
        if self.get_employee(employee_id) is not None:
            raise DatabaseException(f"Employee {employee_id} already exists")
        return self.store.upsert(Collection.EMPLOYEES, dict(employee, employeeId=employee_id))

    def update_employee(self, employee_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update employee fields. The employeeId itself cannot change."""
        existing = self.get_employee(employee_id)
        if existing is None:
            logger.warning(f"update_employee: no employee {employee_id}")
            return None
        if 'employeeId' in updates and str(updates['employeeId']) != str(employee_id):
            raise DatabaseException("Employee ID is immutable")
        existing.update(updates)
        return self.store.upsert(Collection.EMPLOYEES, existing)

    def delete_employee(self, employee_id: str) -> bool:
        return self.store.remove(Collection.EMPLOYEES, employee_id)

    # Timesheet operations
    def get_timesheet(self, employee_id: Optional[str] = None) -> List[Dict[str, Any]]:
        entries = self.store.get_all(Collection.TIMESHEET)
        if employee_id is None:
            return entries
        return [e for e in entries if str(e.get('employeeId')) == str(employee_id)]

    def update_timesheet_entry(self, entry_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        existing = self.store.get(Collection.TIMESHEET, entry_id)
        if existing is None:
            return None
        updates = {k: v for k, v in updates.items() if k != 'id'}
        if 'totalHours' in updates:
            updates['totalHours'] = max(0.0, float(updates['totalHours'] or 0))
        existing.update(updates)
        return self.store.upsert(Collection.TIMESHEET, existing)

    def delete_timesheet_entry(self, entry_id: str) -> bool:
        return self.store.remove(Collection.TIMESHEET, entry_id)

    # Leave operations
    def get_leave(self) -> List[Dict[str, Any]]:
        return self.store.get_all(Collection.HOLIDAYS)

    def add_leave(self, employee_id: str, start_date: str, end_date: str,
                  total_days: float, employee_name: str = '') -> Dict[str, Any]:
        if not employee_name:
            employee = self.get_employee(employee_id) or {}
            employee_name = employee.get('nameAndSurname', 'Unknown')
        return self.store.upsert(Collection.HOLIDAYS, {
            'id': str(uuid.uuid4()),
            'employeeId': employee_id,
            'employeeName': employee_name,
            'startDate': start_date,
            'endDate': end_date,
            'totalDays': total_days,
        })

    def update_leave(self, leave_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        existing = self.store.get(Collection.HOLIDAYS, leave_id)
        if existing is None:
            return None
        existing.update({k: v for k, v in updates.items() if k != 'id'})
        return self.store.upsert(Collection.HOLIDAYS, existing)

    def delete_leave(self, leave_id: str) -> bool:
        return self.store.remove(Collection.HOLIDAYS, leave_id)

    # Public holiday operations
    def get_public_holidays(self) -> List[Dict[str, Any]]:
        return self.store.get_all(Collection.PUBLIC_HOLIDAYS)

    def add_public_holiday(self, name: str, date: str) -> Dict[str, Any]:
        return self.store.upsert(Collection.PUBLIC_HOLIDAYS, {
            'id': str(uuid.uuid4()),
            'name': name,
            'date': date,
        })

    def delete_public_holiday(self, holiday_id: str) -> bool:
        return self.store.remove(Collection.PUBLIC_HOLIDAYS, holiday_id)

    # Tax settings
    def get_tax_settings(self) -> List[Dict[str, Any]]:
        return self.store.get_all(Collection.SETTINGS)

    def set_tax_percentage(self, tax_type: str, percentage: float) -> Dict[str, Any]:
        return self.store.upsert(Collection.SETTINGS, {'taxType': tax_type, 'percentage': float(percentage)})

    # Company profile
    def get_company(self) -> Dict[str, Any]:
        return self.store.get_company()

    def update_company(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        company = self.store.get_company()
        company.update(updates)
        return self.store.update_company(company)


_client = None


def get_client() -> TimeClockClient:
    """Get the global client instance"""
    global _client
    if _client is None:
        _client = TimeClockClient()
    return _client
