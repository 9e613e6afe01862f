"""Configuration classes for sitesurvey components."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ValidationConfig:
    """Validation policy for tree and ledger mutations.

    Strict checks raise ``ValidationError``; relaxed checks log a warning and
    let the value through.
    """

    # Reject fiber terminations with more terminated than total strands
    strict_fiber_strands: bool = True

    # Margin bounds in percent
    min_margin: float = 0.0
    max_margin: float = 100.0
    strict_margin: bool = True

    # Building connections are kept as independent links unless enabled
    dedupe_building_connections: bool = False
    # Treat A->B and B->A as the same pair when deduplicating
    symmetric_connection_dedupe: bool = True

    def margin_in_range(self, margin: float) -> bool:
        """Return True if ``margin`` lies within the configured bounds."""
        return self.min_margin <= margin <= self.max_margin


@dataclass
class DiagramConfig:
    """Options for projecting the infrastructure tree into a diagram graph.

    ``None`` for a cap means every child is projected.
    """

    max_rack_devices: Optional[int] = None
    max_room_devices: Optional[int] = None
    max_rooms_per_floor: Optional[int] = None

    # Project devices that were created from BOM products/services
    include_equipment_devices: bool = True

    root_label: str = "SITE SURVEY"


# Global configuration instances
VALIDATION = ValidationConfig()
DIAGRAM = DiagramConfig()
