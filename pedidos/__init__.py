"""Servicio de pedidos: order creation, pricing and status tracking."""
