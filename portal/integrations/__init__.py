"""portal.integrations — downstream system gateways.

Every call into the Central Module (CM), FICA or SOM goes through a gateway
in this package, never directly from services or blueprints.

Current gateways:
  cm_gateway.CMGateway — simulated CM / FICA / SOM landscape
"""
