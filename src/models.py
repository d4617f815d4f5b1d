from dataclasses import dataclass


@dataclass
class Department:
    id: str
    name: str
    description: str | None = None


@dataclass
class Asset:
    id: str
    name: str
    category: str
    serial_number: str
    department_id: str | None  # None when unassigned
    purchase_date: str  # ISO date
    status: str = "active"  # active, maintenance, retired


@dataclass
class MaintenanceRecord:
    id: str
    asset_id: str
    maintenance_date: str  # ISO date
    type: str
    technician: str
    remarks: str | None = None
