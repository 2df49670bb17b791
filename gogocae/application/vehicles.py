from __future__ import annotations

from gogocae.core.errors import Conflict, NotFound, ValidationError
from gogocae.domain import User, VehicleModel
from gogocae.domain.lifecycle import require_manager
from gogocae.infrastructure.datastore import ANALYSIS_REQUESTS, VEHICLE_MODELS, Datastore


class VehicleService:
    """Catalogue of vehicle models requests are filed against."""

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    def list_vehicles(self) -> list[VehicleModel]:
        return [VehicleModel.from_row(row) for row in self._datastore.query(VEHICLE_MODELS, order_by="name")]

    def get(self, vehicle_id: str) -> VehicleModel:
        try:
            return VehicleModel.from_row(self._datastore.get(VEHICLE_MODELS, vehicle_id))
        except NotFound:
            raise NotFound("Vehicle model", vehicle_id) from None

    def add(self, name: str, acting_user: User | None) -> VehicleModel:
        require_manager(acting_user, "manage vehicle models")
        clean = (name or "").strip()
        if not clean:
            raise ValidationError("Vehicle model name is required", details={"name": "empty"})
        if self._datastore.query(VEHICLE_MODELS, {"name": clean}, limit=1):
            raise Conflict(f"Vehicle model '{clean}' already exists")
        return VehicleModel.from_row(self._datastore.insert(VEHICLE_MODELS, {"name": clean}))

    def delete(self, vehicle_id: str, acting_user: User | None) -> None:
        require_manager(acting_user, "manage vehicle models")
        vehicle = self.get(vehicle_id)
        if self._datastore.query(ANALYSIS_REQUESTS, {"vehicle_model_id": vehicle.id}, limit=1):
            raise Conflict(f"Vehicle model '{vehicle.name}' is referenced by existing requests")
        self._datastore.delete(VEHICLE_MODELS, vehicle.id)
