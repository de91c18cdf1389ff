"""
HTTP API blueprints for PostPurchase Pro.
"""
