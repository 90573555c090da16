"""
Declaration of the Salad App.

Invariants:
    - Each handler is granted only what it touches: CreateOrderLambda
      writes the table and the bucket, GetOrderLambda reads the table
    - Handlers discover the table and bucket only through TABLE_NAME and
      BUCKET_NAME

Example:
    >>> from infra.salad_app.app import build_graph
    >>> print(build_graph().emit().to_json())
"""

from __future__ import annotations

from typing import Optional

from ..appgraph import ApplicationGraph
from ..appgraph.config import AppGraphConfig
from ..appgraph.model.types import (
    ApiSettings,
    Bundling,
    Capability,
    HandlerRef,
    MethodLoggingLevel,
    ResourceKind,
    ResourceRef,
    RetentionPolicy,
)

BUCKET_ID = "SaladBucket"
TABLE_ID = "SaladAppDB"
CREATE_ORDER_ID = "CreateOrderLambda"
GET_ORDER_ID = "GetOrderLambda"


def build_graph(config: Optional[AppGraphConfig] = None) -> ApplicationGraph:
    """Assemble the Salad App graph (not yet validated)."""
    config = config or AppGraphConfig()
    memory = config.assembly.default_memory_mb
    bundling = Bundling(minify=True, external_modules=("aws-sdk",))

    graph = ApplicationGraph(
        name="SaladApp",
        api=ApiSettings(
            name="SaladAppApi",
            description="Salad App API",
            stage_name="prod",
            logging_level=MethodLoggingLevel.INFO,
            deploy=True,
        ),
        strict=config.assembly.strict,
    )

    graph.declare_resource(
        BUCKET_ID,
        ResourceKind.OBJECT_STORE,
        RetentionPolicy.PRESERVE,
        {"bucket_name": "salad-app-example-bucket"},
    )
    graph.declare_resource(
        TABLE_ID,
        ResourceKind.KEYED_TABLE,
        RetentionPolicy.DESTROY,
        {
            "table_name": "salad-app-db",
            "billing_mode": "PAY_PER_REQUEST",
            "encryption": "AWS_MANAGED",
            "point_in_time_recovery": False,
            "contributor_insights": True,
            "partition_key": {"name": "id", "type": "STRING"},
        },
    )

    graph.declare_compute_unit(
        CREATE_ORDER_ID,
        HandlerRef(
            entry="src/handlers/create-order/create-order.ts",
            runtime=config.assembly.default_runtime,
            bundling=bundling,
        ),
        memory,
        {
            "TABLE_NAME": ResourceRef(TABLE_ID),
            "BUCKET_NAME": ResourceRef(BUCKET_ID),
        },
    )
    graph.declare_compute_unit(
        GET_ORDER_ID,
        HandlerRef(
            entry="src/handlers/get-order/get-order.ts",
            runtime=config.assembly.default_runtime,
            bundling=bundling,
        ),
        memory,
        {"TABLE_NAME": ResourceRef(TABLE_ID)},
    )

    orders = graph.add_resource(graph.root, "orders")
    order = graph.add_resource(orders, "{id}")
    graph.add_method(orders, "POST", CREATE_ORDER_ID)
    graph.add_method(order, "GET", GET_ORDER_ID)

    graph.grant(GET_ORDER_ID, TABLE_ID, Capability.READ)
    graph.grant(CREATE_ORDER_ID, TABLE_ID, Capability.WRITE)
    graph.grant(CREATE_ORDER_ID, BUCKET_ID, Capability.WRITE)

    return graph
