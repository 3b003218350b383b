from logsplit.clients.loki import LokiClient

__all__ = ["LokiClient"]
