"""KIS OpenAPI integration for daily-bar pricing.

Endpoint paths and TR-IDs stay configurable because KIS occasionally revises
them.

Covered here:
- OAuth2 access token issuance and single-row token storage
- Domestic daily price (inquire-daily-price)
- Foreign daily price per exchange code (dailyprice)
"""
