"""
Salad App - the reference serverless application.

One bucket, one table, one REST API and two order handlers:
- POST /orders       -> CreateOrderLambda (writes the table and the bucket)
- GET  /orders/{id}  -> GetOrderLambda    (reads the table)
"""

from .app import build_graph

__all__ = ["build_graph"]
