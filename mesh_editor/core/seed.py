"""
The fixed demo mesh the editor starts with and returns to on reset.

An MQTT ingest pipeline: broker -> filter -> transform, fanning out to
PostgreSQL and a REST API.
"""

from .models import GraphEdge, GraphNode, Position, ServiceStatus, ServiceType


def seed_nodes() -> list[GraphNode]:
    """Fresh copies of the seed nodes."""
    return [
        GraphNode(
            id="mqtt-source",
            label="MQTT Broker",
            service_type=ServiceType.MESSAGE_BROKER.value,
            status=ServiceStatus.HEALTHY,
            position=Position(x=0, y=0),
            attributes={
                "address": "mqtt://broker.naseej.io:1883",
                "topic": "sensors/#",
                "requests_per_sec": 142,
            },
        ),
        GraphNode(
            id="filter-node",
            label="Data Filter",
            service_type=ServiceType.FILTER.value,
            status=ServiceStatus.HEALTHY,
            position=Position(x=250, y=0),
            attributes={"description": "Filter by device_id", "requests_per_sec": 89},
        ),
        GraphNode(
            id="transform-node",
            label="JSON Transform",
            service_type=ServiceType.TRANSFORM.value,
            status=ServiceStatus.HEALTHY,
            position=Position(x=500, y=0),
            attributes={"description": "Rhai script", "requests_per_sec": 89},
        ),
        GraphNode(
            id="postgres-sink",
            label="PostgreSQL",
            service_type=ServiceType.DATABASE.value,
            status=ServiceStatus.HEALTHY,
            position=Position(x=750, y=0),
            attributes={
                "address": "postgres://db.naseej.io:5432/iot",
                "requests_per_sec": 67,
            },
        ),
        GraphNode(
            id="http-api",
            label="REST API",
            service_type=ServiceType.HTTP_ENDPOINT.value,
            status=ServiceStatus.WARNING,
            position=Position(x=500, y=150),
            attributes={"address": "https://api.naseej.io/v1", "requests_per_sec": 234},
        ),
    ]


def seed_edges() -> list[GraphEdge]:
    """Fresh copies of the seed edges."""
    return [
        GraphEdge(source="mqtt-source", target="filter-node"),
        GraphEdge(source="filter-node", target="transform-node"),
        GraphEdge(source="transform-node", target="postgres-sink"),
        GraphEdge(source="transform-node", target="http-api", animated=False),
    ]
