from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gogocae.application import build_services, reset_desk_state
from gogocae.core.schema import NewRequestPayload, UserPayload
from gogocae.core.settings import Settings
from gogocae.core.uploads import UploadedFile


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture(autouse=True)
def reset_state():
    reset_desk_state()
    yield
    reset_desk_state()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def desk(clock):
    return build_services(Settings(), clock=clock)


@pytest.fixture()
def people(desk):
    users = desk.users
    return {
        "requester": users.register(UserPayload(name="Kim Design", department="Body", role="client")),
        "other_client": users.register(UserPayload(name="Lee Chassis", department="Chassis", role="client")),
        "u1": users.register(UserPayload(name="Park Analyst", department="CAE", role="manager")),
        "u2": users.register(UserPayload(name="Choi Analyst", department="CAE", role="manager")),
    }


@pytest.fixture()
def vehicle(desk, people):
    return desk.vehicles.add("SUV-X1", people["u1"])


def design_files(count: int = 1) -> list[UploadedFile]:
    return [
        UploadedFile(name=f"bracket_{index}.stp", data=b"ISO-10303-21;" * (index + 1), content_type="model/step")
        for index in range(count)
    ]


@pytest.fixture()
def submit(desk, people, vehicle):
    """Create a pending request owned by the requester."""

    def _submit(name: str = "Front bracket stiffness", files: int = 1, requester=None):
        request, _ = desk.requests.create_request(
            NewRequestPayload(analysis_name=name, vehicle_model_id=vehicle.id),
            design_files(files),
            requester or people["requester"],
        )
        return request

    return _submit
