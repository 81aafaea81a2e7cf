"""
                        Services Module

Business logic behind the HTTP and websocket endpoints.

Services:
    - table_token: table access token codec
    - tables: QR issuance, regeneration and token verification
    - orders: order store, state machine and lifecycle orchestration
    - realtime: role-scoped websocket fan-out and staff presence
    - qr: QR image rendering
"""

from restopos.services.table_token import TableToken, TableTokenCodec, get_token_codec

__all__ = ["TableToken", "TableTokenCodec", "get_token_codec"]
