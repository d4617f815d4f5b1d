"""Inventory of departments, assets and maintenance records with JSON persistence."""

import json
import logging
import threading
from dataclasses import asdict
from pathlib import Path
from typing import TypeVar

from src.models import Asset, Department, MaintenanceRecord

logger = logging.getLogger(__name__)

T = TypeVar("T", Department, Asset)


class InventoryError(Exception):
    """Raised when an inventory change cannot be applied."""


def _find_by_name(items: list[T], partial: str, extra_keys: tuple[str, ...] = ()) -> list[T]:
    partial_lower = partial.lower()

    # Exact name match wins over exact match on any other key
    for item in items:
        if item.name.lower() == partial_lower:
            return [item]

    for key in extra_keys:
        for item in items:
            if str(getattr(item, key)).lower() == partial_lower:
                return [item]

    # Fall back to substring match
    return [item for item in items if partial_lower in item.name.lower()]


class InventoryStore:
    """Thread-safe inventory store.

    Handlers run on the event loop while deletes are persisted from a worker
    thread, so all access to the collections must be protected.
    """

    def __init__(self, json_path: str):
        """Initialize InventoryStore.

        Args:
            json_path: Path to JSON file for persistence.
        """
        self._json_path = Path(json_path)
        self._departments: dict[str, Department] = {}
        self._assets: dict[str, Asset] = {}
        self._maintenance: dict[str, MaintenanceRecord] = {}
        self._lock = threading.Lock()
        self._load()

    def add_department(self, department: Department) -> None:
        with self._lock:
            self._departments[department.id] = department
            self._save()

    def add_asset(self, asset: Asset) -> None:
        with self._lock:
            if asset.department_id is not None and asset.department_id not in self._departments:
                raise InventoryError(f"Unknown department: {asset.department_id}")
            self._assets[asset.id] = asset
            self._save()

    def add_maintenance(self, record: MaintenanceRecord) -> None:
        with self._lock:
            if record.asset_id not in self._assets:
                raise InventoryError(f"Unknown asset: {record.asset_id}")
            self._maintenance[record.id] = record
            self._save()

    def get_department(self, department_id: str) -> Department | None:
        with self._lock:
            return self._departments.get(department_id)

    def get_asset(self, asset_id: str) -> Asset | None:
        with self._lock:
            return self._assets.get(asset_id)

    def get_departments(self) -> list[Department]:
        with self._lock:
            return sorted(self._departments.values(), key=lambda d: d.name)

    def get_assets(self) -> list[Asset]:
        with self._lock:
            return list(self._assets.values())

    def get_maintenance(self, asset_id: str | None = None) -> list[MaintenanceRecord]:
        with self._lock:
            return [
                r for r in self._maintenance.values()
                if asset_id is None or r.asset_id == asset_id
            ]

    def find_departments(self, partial: str) -> list[Department]:
        with self._lock:
            return _find_by_name(list(self._departments.values()), partial)

    def find_assets(self, partial: str) -> list[Asset]:
        """Find assets by name, or by exact serial number."""
        with self._lock:
            return _find_by_name(list(self._assets.values()), partial, extra_keys=("serial_number",))

    def count_assets_in(self, department_id: str) -> int:
        with self._lock:
            return sum(1 for a in self._assets.values() if a.department_id == department_id)

    def delete_department(self, department_id: str) -> int:
        """Delete a department and unassign it from its assets.

        Returns:
            Number of assets that were unassigned.
        """
        with self._lock:
            if department_id not in self._departments:
                raise InventoryError(f"Department not found: {department_id}")

            affected = [a for a in self._assets.values() if a.department_id == department_id]
            department = self._departments.pop(department_id)
            for asset in affected:
                asset.department_id = None

            try:
                self._save()
            except InventoryError:
                self._departments[department_id] = department
                for asset in affected:
                    asset.department_id = department_id
                raise

        logger.info(f"Deleted department {department_id} ({len(affected)} assets unassigned)")
        return len(affected)

    def delete_asset(self, asset_id: str) -> None:
        """Delete an asset that has no maintenance history."""
        with self._lock:
            if asset_id not in self._assets:
                raise InventoryError(f"Asset not found: {asset_id}")

            records = sum(1 for r in self._maintenance.values() if r.asset_id == asset_id)
            if records:
                raise InventoryError(
                    f"Asset still has {records} maintenance record(s) and cannot be deleted"
                )

            asset = self._assets.pop(asset_id)
            try:
                self._save()
            except InventoryError:
                self._assets[asset_id] = asset
                raise

        logger.info(f"Deleted asset {asset_id}")

    def _load(self) -> None:
        """Load inventory from JSON file."""
        if not self._json_path.exists():
            return

        try:
            with open(self._json_path, encoding="utf-8") as f:
                data = json.load(f)
            departments = [Department(**d) for d in data.get("departments", [])]
            assets = [Asset(**a) for a in data.get("assets", [])]
            records = [MaintenanceRecord(**r) for r in data.get("maintenance", [])]
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning(f"Failed to load inventory from {self._json_path}: {e}")
            return

        self._departments = {d.id: d for d in departments}
        self._assets = {a.id: a for a in assets}
        self._maintenance = {r.id: r for r in records}
        logger.info(
            f"Loaded {len(departments)} departments, {len(assets)} assets, "
            f"{len(records)} maintenance records"
        )

    def _save(self) -> None:
        """Save inventory to JSON file. Caller must hold the lock."""
        data = {
            "departments": [asdict(d) for d in self._departments.values()],
            "assets": [asdict(a) for a in self._assets.values()],
            "maintenance": [asdict(r) for r in self._maintenance.values()],
        }

        try:
            self._json_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._json_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except IOError as e:
            logger.error(f"Failed to save inventory to {self._json_path}: {e}")
            raise InventoryError(f"Could not save inventory: {e}") from e
