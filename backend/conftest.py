import os

# Delivery tests run against the in-memory stores
os.environ["DELIVERY_MODE"] = "test"
