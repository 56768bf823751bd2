"""app.integrations — External service collaborators.

All outbound HTTP calls to third-party APIs must go through a gateway in
this package, never via bare `requests` calls in services or blueprints.

Current modules:
  graph_gateway.GraphGateway — Microsoft Graph (calendar, To Do, OneDrive)
  storage                    — attachment byte storage (local disk / OneDrive)
"""
