# Focus - External Integrations

from .gateway import (
    MEETINGS_TABLE,
    SKIPS_TABLE,
    TABLE_BY_KIND,
    TIME_BLOCKS_TABLE,
    TODOS_TABLE,
    GatewayError,
    RemoteGateway,
    table_for_kind,
)

__all__ = [
    "RemoteGateway",
    "GatewayError",
    "table_for_kind",
    "TABLE_BY_KIND",
    "TIME_BLOCKS_TABLE",
    "MEETINGS_TABLE",
    "TODOS_TABLE",
    "SKIPS_TABLE",
]
