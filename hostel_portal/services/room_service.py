"""Room and block management for administrators."""

from __future__ import annotations

from dataclasses import dataclass
from threading import RLock
from typing import Optional

from hostel_portal.domain.models import Block, Room
from hostel_portal.repository.api_repository import HostelApiRepository, ResourceNotFoundError
from hostel_portal.utils.logger import get_logger


logger = get_logger(__name__)

ROOM_CAPACITY_CHOICES = (2, 3, 4)
DEFAULT_ROOM_CAPACITY = 4


class RoomValidationError(ValueError):
    """Raised when a room form is incomplete or inconsistent."""


@dataclass(frozen=True)
class RoomForm:
    block: str = ""
    room_number: str = ""
    capacity: int = DEFAULT_ROOM_CAPACITY

    def to_payload(self) -> dict[str, object]:
        return {
            "block": self.block.strip(),
            "roomNumber": self.room_number.strip(),
            "capacity": self.capacity,
        }


@dataclass(frozen=True)
class CapacitySummary:
    total_rooms: int
    total_capacity: int
    occupied_capacity: int

    @property
    def available_capacity(self) -> int:
        return self.total_capacity - self.occupied_capacity

    @property
    def occupancy_rate(self) -> float:
        if self.total_capacity <= 0:
            return 0.0
        return round(self.occupied_capacity / self.total_capacity * 100, 1)


def validate_room_form(form: RoomForm) -> None:
    if not form.block.strip():
        raise RoomValidationError("Block is required")
    if not form.room_number.strip():
        raise RoomValidationError("Room number is required")
    if form.capacity < 1:
        raise RoomValidationError("Capacity must be at least 1")


class RoomService:
    """Loads rooms and blocks and applies create, update and delete."""

    def __init__(self, repository: HostelApiRepository) -> None:
        self._repository = repository
        self._lock = RLock()
        self._rooms: list[Room] = []
        self._blocks: list[Block] = []

    @property
    def rooms(self) -> list[Room]:
        with self._lock:
            return list(self._rooms)

    @property
    def blocks(self) -> list[Block]:
        with self._lock:
            return list(self._blocks)

    def load(self) -> list[Room]:
        rooms = self._repository.list_rooms()
        try:
            blocks = self._repository.list_blocks()
        except ResourceNotFoundError:
            logger.info("Blocks endpoint not available; showing rooms only")
            blocks = []
        with self._lock:
            self._rooms = rooms
            self._blocks = blocks
        logger.info("Loaded %s rooms in %s blocks", len(rooms), len(blocks))
        return list(rooms)

    def create_room(self, form: RoomForm) -> Room:
        validate_room_form(form)
        room = self._repository.create_room(form.to_payload())
        logger.info("Created room %s-%s", room.block, room.room_number)
        self.load()
        return room

    def update_room(self, room_id: str, form: RoomForm) -> Room:
        validate_room_form(form)
        room = self._repository.update_room(room_id, form.to_payload())
        logger.info("Updated room %s", room_id)
        self.load()
        return room

    def delete_room(self, room_id: str) -> None:
        self._repository.delete_room(room_id)
        logger.info("Deleted room %s", room_id)
        self.load()

    def form_for(self, room: Optional[Room] = None) -> RoomForm:
        if room is None:
            return RoomForm()
        return RoomForm(block=room.block, room_number=room.room_number, capacity=room.capacity)

    def rooms_in_block(self, block: Optional[str] = None) -> list[Room]:
        if block is None or block == "all":
            return self.rooms
        return [room for room in self.rooms if room.block == block]

    def summary(self) -> CapacitySummary:
        """Totals from the block overview, or from the room list when it is missing."""
        blocks = self.blocks
        if blocks:
            return CapacitySummary(
                total_rooms=sum(block.total_rooms for block in blocks),
                total_capacity=sum(block.total_capacity for block in blocks),
                occupied_capacity=sum(block.occupied_capacity for block in blocks),
            )
        rooms = self.rooms
        return CapacitySummary(
            total_rooms=len(rooms),
            total_capacity=sum(room.capacity for room in rooms),
            occupied_capacity=sum(room.occupied_capacity for room in rooms),
        )
