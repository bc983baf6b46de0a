import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..flows.types import CellId, EntityId
from ..tools.distance import Position, nearest_cell


class NetworkStateManager:
    """Manages cells, entity attachments and the applied handover history."""

    def __init__(self, cells: Optional[Dict[CellId, Position]] = None):
        # cell_id -> (x, y, z); insertion order is the tie-break order
        self.cells: Dict[CellId, Position] = {}
        self.attachments: Dict[EntityId, CellId] = {}  # entity -> serving cell
        # entity -> simulated time of the last attachment change
        self.last_change: Dict[EntityId, float] = {}
        self.handover_history = []  # list of {ue_id, from, to, timestamp}
        self.logger = logging.getLogger("NetworkStateManager")
        for cell_id, position in (cells or {}).items():
            self.add_cell(cell_id, position)

    def add_cell(self, cell_id: CellId, position: Sequence[float]) -> None:
        self.cells[cell_id] = _as_position(position)

    def cell_list(self) -> List[Tuple[CellId, Position]]:
        """Cells in registration order."""
        return list(self.cells.items())

    def serving_cell(self, entity_id: EntityId) -> Optional[CellId]:
        return self.attachments.get(entity_id)

    def attach(self, entity_id: EntityId, cell_id: CellId, timestamp: float = 0.0) -> None:
        if cell_id not in self.cells:
            raise KeyError(f"Cell {cell_id} unknown")
        self.attachments[entity_id] = cell_id
        self.last_change[entity_id] = timestamp

    def attach_to_nearest(
        self, entity_id: EntityId, position: Sequence[float], timestamp: float = 0.0
    ) -> CellId:
        """Initial attachment of an entity to its closest cell."""
        if not self.cells:
            raise KeyError("No cells registered")
        cell_id, dist = nearest_cell(position, self.cell_list())
        self.attach(entity_id, cell_id, timestamp)
        self.logger.info(
            f"Entity {entity_id} attached to nearest cell {cell_id} ({dist:.1f} m)"
        )
        return cell_id

    def apply_handover(self, entity_id: EntityId, target_cell_id: CellId, timestamp: float):
        """Apply a handover confirmed by the network collaborator."""
        if target_cell_id not in self.cells:
            raise KeyError(f"Cell {target_cell_id} unknown")
        prev = self.attachments.get(entity_id)
        self.attachments[entity_id] = target_cell_id
        self.last_change[entity_id] = timestamp

        ev = {
            "ue_id": entity_id,
            "from": prev,
            "to": target_cell_id,
            "timestamp": timestamp,
        }
        self.handover_history.append(ev)
        self.logger.info(f"Handover for entity {entity_id}: {prev} → {target_cell_id}")
        return ev

    def attachment_snapshot(self) -> Dict[EntityId, CellId]:
        return dict(self.attachments)


def _as_position(position: Sequence[float]) -> Position:
    coords = tuple(float(c) for c in position)
    if len(coords) == 2:
        coords = coords + (0.0,)
    if len(coords) != 3:
        raise ValueError(f"Position must have 2 or 3 coordinates, got {position!r}")
    return coords
