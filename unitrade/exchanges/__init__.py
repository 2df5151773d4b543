"""
Exchange Connectors Package

Each exchange has its own subfolder with:
- __init__.py: Connector class implementing ExchangeConnector, plus create_connector()
- api_client.py: REST API logic (HTTP session, signing, error mapping)

Registering the factory in ExchangeManager is all it takes to expose a new
exchange through new_exchange().
"""
