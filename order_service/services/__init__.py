"""
                        Services Module

Business logic and the collaborators it talks to. Each collaborator has a
real implementation and a disabled one, chosen by configuration.

Services:
    - payment: HTTP and Stripe payment gateways
    - policy: Open Policy Agent authorization
    - messaging: Redis pub/sub domain events
    - orders: order use cases
    - webhooks: Stripe payment reconciliation
"""
