"""Projection of the infrastructure tree into a node/edge diagram graph.

The projection is read-only and deterministic: node and edge ids are derived
from tree positions (``b0``, ``b0-cr``, ``b0-f1``, ``b0-f1-r0``,
``b0-f1-room2``, ``...-d0``) and from building-connection ids, and elements
are visited in tree order. The same tree always yields the same graph.

Shape of the graph:

- one root node with survey-wide counts, linked to every building;
- building -> central rack (if present) -> each floor; floors hang directly
  from the building when there is no central rack;
- floor -> each floor rack and floor -> each room;
- a second edge into each room from the rack its connection type names: the
  floor's first rack, or the building's central rack (omitted when that rack
  does not exist);
- rack/room -> each device;
- one edge per building connection between the two building nodes.

Layout is left to the consumer; :meth:`DiagramGraph.to_networkx` hands the
graph to networkx with a ``layer`` attribute suited to
``nx.multipartite_layout``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import networkx as nx

from sitesurvey.config import DIAGRAM, DiagramConfig
from sitesurvey.logging import get_logger
from sitesurvey.model.enums import RackConnection
from sitesurvey.model.infrastructure import Device, InfrastructureTree, Rack
from sitesurvey.tree import aggregate_totals, building_totals, floor_totals

logger = get_logger(__name__)

ROOT_ID = "site-survey-root"


@dataclass
class DiagramNode:
    """A diagram node.

    Attributes:
        id: Stable node id.
        kind: One of ``siteSurvey``, ``building``, ``centralRack``, ``floor``,
            ``floorRack``, ``room``, ``device``.
        label: Display label.
        data: Kind-specific figures shown on the node.
    """

    id: str
    kind: str
    label: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.kind, "label": self.label, "data": dict(self.data)}


@dataclass
class DiagramEdge:
    """A directed diagram edge; building connections are symmetric in meaning."""

    id: str
    source: str
    target: str
    kind: str
    label: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.kind,
        }
        if self.label is not None:
            result["label"] = self.label
        if self.data:
            result["data"] = dict(self.data)
        return result


@dataclass
class DiagramGraph:
    """Nodes and edges produced by :func:`project`."""

    nodes: List[DiagramNode] = field(default_factory=list)
    edges: List[DiagramEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[DiagramNode]:
        for candidate in self.nodes:
            if candidate.id == node_id:
                return candidate
        return None

    def edges_into(self, node_id: str) -> List[DiagramEdge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    def to_networkx(self) -> nx.MultiDiGraph:
        """Return the graph as an ``nx.MultiDiGraph`` keyed by edge id.

        Node attributes: ``kind``, ``label``, ``data`` and ``layer`` (hop
        distance from the root over hierarchy edges; building connections are
        not followed).
        """
        graph = nx.MultiDiGraph()
        for node in self.nodes:
            graph.add_node(node.id, kind=node.kind, label=node.label, data=dict(node.data))
        for edge in self.edges:
            graph.add_edge(
                edge.source,
                edge.target,
                key=edge.id,
                kind=edge.kind,
                label=edge.label,
                data=dict(edge.data),
            )

        hierarchy = nx.DiGraph()
        hierarchy.add_nodes_from(graph.nodes)
        hierarchy.add_edges_from(
            (e.source, e.target) for e in self.edges if e.kind != "buildingConnection"
        )
        layers: Dict[str, int] = {}
        if ROOT_ID in hierarchy:
            layers = nx.single_source_shortest_path_length(hierarchy, ROOT_ID)
        for node_id in graph.nodes:
            graph.nodes[node_id]["layer"] = layers.get(node_id, 0)
        return graph


def _capped(items: List[Any], cap: Optional[int]) -> List[Any]:
    return items if cap is None else items[:cap]


def _device_nodes(
    graph: DiagramGraph,
    parent_id: str,
    devices: List[Device],
    cap: Optional[int],
    config: DiagramConfig,
) -> None:
    visible = [d for d in devices if config.include_equipment_devices or not d.is_equipment]
    for d_idx, device in enumerate(_capped(visible, cap)):
        dev_id = f"{parent_id}-d{d_idx}"
        graph.nodes.append(
            DiagramNode(
                id=dev_id,
                kind="device",
                label=device.name,
                data={
                    "deviceType": device.type.value,
                    "brand": device.brand,
                    "model": device.model,
                    "equipment": device.is_equipment,
                },
            )
        )
        graph.edges.append(
            DiagramEdge(id=f"{dev_id}-edge", source=parent_id, target=dev_id, kind="device")
        )


def _rack_node(node_id: str, kind: str, rack: Rack) -> DiagramNode:
    return DiagramNode(
        id=node_id,
        kind=kind,
        label=rack.name,
        data={"code": rack.code, "units": rack.units, "devices": len(rack.devices)},
    )


def _connection_label(connection) -> str:
    label = connection.connection_type.value
    if connection.distance:
        label += f" - {connection.distance:g}m"
    if connection.description:
        label += f"\n{connection.description}"
    return label


def project(
    tree: InfrastructureTree, config: Optional[DiagramConfig] = None
) -> DiagramGraph:
    """Project ``tree`` and its building connections into a diagram graph.

    Args:
        tree: Survey tree; not modified.
        config: Device/room caps and labels. Defaults to ``DIAGRAM``.

    Returns:
        A new :class:`DiagramGraph`.
    """
    config = config or DIAGRAM
    graph = DiagramGraph()

    totals = aggregate_totals(tree)
    graph.nodes.append(
        DiagramNode(
            id=ROOT_ID,
            kind="siteSurvey",
            label=config.root_label,
            data={
                "buildings": len(tree.buildings),
                "floors": totals.floors,
                "rooms": totals.rooms,
                "outlets": totals.outlets,
            },
        )
    )

    for b_idx, building in enumerate(tree.buildings):
        building_id = f"b{b_idx}"
        stats = building_totals(building)
        graph.nodes.append(
            DiagramNode(
                id=building_id,
                kind="building",
                label=building.name,
                data={
                    "code": building.code,
                    "floors": stats.floors,
                    "rooms": stats.rooms,
                    "outlets": stats.outlets,
                },
            )
        )
        graph.edges.append(
            DiagramEdge(
                id=f"{ROOT_ID}-{building_id}-edge",
                source=ROOT_ID,
                target=building_id,
                kind="building",
                label=f"Building {b_idx + 1}",
            )
        )

        central_id: Optional[str] = None
        if building.central_rack is not None:
            central_id = f"{building_id}-cr"
            graph.nodes.append(_rack_node(central_id, "centralRack", building.central_rack))
            graph.edges.append(
                DiagramEdge(
                    id=f"{central_id}-edge",
                    source=building_id,
                    target=central_id,
                    kind="centralRack",
                    label="Main Distribution",
                )
            )
            _device_nodes(
                graph, central_id, building.central_rack.devices, config.max_rack_devices, config
            )

        for f_idx, floor in enumerate(building.floors):
            floor_id = f"{building_id}-f{f_idx}"
            floor_stats = floor_totals(floor)
            graph.nodes.append(
                DiagramNode(
                    id=floor_id,
                    kind="floor",
                    label=floor.name,
                    data={
                        "level": floor.level,
                        "rooms": floor_stats.rooms,
                        "outlets": floor_stats.outlets,
                        "racks": len(floor.racks),
                    },
                )
            )
            level = floor.level if floor.level is not None else f_idx + 1
            graph.edges.append(
                DiagramEdge(
                    id=f"{central_id or building_id}-f{f_idx}-edge",
                    source=central_id or building_id,
                    target=floor_id,
                    kind="floor",
                    label=f"Floor {level}",
                )
            )

            for r_idx, rack in enumerate(floor.racks):
                rack_id = f"{floor_id}-r{r_idx}"
                graph.nodes.append(_rack_node(rack_id, "floorRack", rack))
                graph.edges.append(
                    DiagramEdge(
                        id=f"{rack_id}-edge",
                        source=floor_id,
                        target=rack_id,
                        kind="floorRack",
                        label="IDF",
                    )
                )
                _device_nodes(graph, rack_id, rack.devices, config.max_rack_devices, config)

            for room_idx, room in enumerate(_capped(floor.rooms, config.max_rooms_per_floor)):
                room_id = f"{floor_id}-room{room_idx}"
                graph.nodes.append(
                    DiagramNode(
                        id=room_id,
                        kind="room",
                        label=room.name,
                        data={
                            "roomType": room.type.value,
                            "outlets": room.outlets,
                            "devices": len(room.devices),
                            "isTypical": room.is_typical_room,
                            "count": room.identical_rooms_count,
                        },
                    )
                )
                graph.edges.append(
                    DiagramEdge(
                        id=f"{room_id}-edge",
                        source=floor_id,
                        target=room_id,
                        kind="room",
                        label=f"{room.outlets} outlets",
                    )
                )
                if room.connection_type == RackConnection.CENTRAL_RACK:
                    if central_id is not None:
                        graph.edges.append(
                            DiagramEdge(
                                id=f"cr-{room_id}-edge",
                                source=central_id,
                                target=room_id,
                                kind="directToRoom",
                                label="Direct",
                            )
                        )
                elif floor.racks:
                    graph.edges.append(
                        DiagramEdge(
                            id=f"{floor_id}-r0-{room_id}-edge",
                            source=f"{floor_id}-r0",
                            target=room_id,
                            kind="rackToRoom",
                            label=f"{room.outlets} outlets",
                        )
                    )
                _device_nodes(graph, room_id, room.devices, config.max_room_devices, config)

    building_count = len(tree.buildings)
    for connection in tree.connections:
        ends = (connection.from_building, connection.to_building)
        if any(end < 0 or end >= building_count for end in ends):
            logger.warning(
                "Skipping connection %s: references missing building (%d -> %d)",
                connection.id,
                *ends,
            )
            continue
        graph.edges.append(
            DiagramEdge(
                id=f"conn-{connection.id}",
                source=f"b{connection.from_building}",
                target=f"b{connection.to_building}",
                kind="buildingConnection",
                label=_connection_label(connection),
                data={
                    "connectionType": connection.connection_type.value,
                    "distance": connection.distance,
                },
            )
        )

    logger.debug("Projected %d nodes and %d edges", len(graph.nodes), len(graph.edges))
    return graph
